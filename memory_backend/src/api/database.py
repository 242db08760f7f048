from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.api.config import DATABASE_URL
from src.api.models import Base


def build_engine(url: str = DATABASE_URL):
    """
    Engine whose connection pool is shared by every request thread.
    """
    is_sqlite = url.startswith("sqlite")
    # SQLite needs check_same_thread=False for multithreading in FastAPI
    connect_args = {"check_same_thread": False} if is_sqlite else {}
    return create_engine(url, connect_args=connect_args, pool_pre_ping=not is_sqlite, future=True)


engine = build_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None) -> None:
    """Create any missing tables."""
    Base.metadata.create_all(bind=bind or engine)


def get_db():
    """
    Dependency that provides a database session and ensures proper cleanup.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
