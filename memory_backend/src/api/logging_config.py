import logging

from src.api.config import LOG_LEVEL

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_configured = False


def configure_logging(level_name: str = LOG_LEVEL) -> None:
    """Attach a single stream handler to the root logger (idempotent)."""
    global _configured

    level = getattr(logging, level_name.upper(), logging.INFO)
    root = logging.getLogger()
    if not _configured:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
        _configured = True
    root.setLevel(level)
