import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from fastapi import Request
from jose import JWTError, jwt

from src.api import config
from src.api.clock import ensure_utc, utcnow
from src.api.errors import InvalidEmail, TokenAlreadyUsed, TokenExpired, TokenNotFound, Unauthenticated
from src.api.store import NoteStore, TokenStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionIdentity:
    """Who a request is acting for, once the session cookie has been checked."""
    email: str


def create_session_token(email: str, expires_delta: Optional[timedelta] = None, now: Optional[datetime] = None) -> str:
    """Create the signed JWT stored in the session cookie."""
    issued = now or utcnow()
    expire = issued + (expires_delta or timedelta(days=config.SESSION_DAYS))
    to_encode = {"sub": email, "iat": int(issued.timestamp()), "exp": int(expire.timestamp())}
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def read_session_token(token: Optional[str]) -> Optional[SessionIdentity]:
    """Decode a session cookie; tampered, expired or empty cookies yield None."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError:
        return None
    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        return None
    return SessionIdentity(email=subject)


# PUBLIC_INTERFACE
def get_session_identity(request: Request) -> Optional[SessionIdentity]:
    """Dependency returning the caller's identity, or None without a valid cookie."""
    return read_session_token(request.cookies.get(config.SESSION_COOKIE_NAME))


# PUBLIC_INTERFACE
def require_session(request: Request) -> SessionIdentity:
    """
    Dependency for endpoints that need a session.

    Raises:
        Unauthenticated (401) if the cookie is missing or invalid.
    """
    identity = get_session_identity(request)
    if identity is None:
        raise Unauthenticated()
    return identity


class MagicLinkService:
    """
    Issues and consumes single-use login tokens.

    A token is Issued on ``request_login`` and ends either Consumed (first
    successful ``verify`` before expiry) or Expired; both are terminal.
    """

    def __init__(
        self,
        tokens: TokenStore,
        notes: NoteStore,
        mailer,
        now: Callable[[], datetime] = utcnow,
        ttl: Optional[timedelta] = None,
        base_url: Optional[str] = None,
    ):
        self.tokens = tokens
        self.notes = notes
        self.mailer = mailer
        self.now = now
        self.ttl = ttl or timedelta(minutes=config.LOGIN_TOKEN_TTL_MINUTES)
        self.base_url = (base_url or config.BASE_URL).rstrip("/")

    def login_link(self, token: str) -> str:
        return f"{self.base_url}/login/verify?token={token}"

    # PUBLIC_INTERFACE
    def request_login(self, email: str) -> str:
        """
        Create a login token for ``email`` and mail the link.

        The token row only becomes visible once the email has been handed off;
        a failed send rolls it back.

        Returns:
            The token value.
        Raises:
            InvalidEmail, StoreError, NotificationError
        """
        email = (email or "").strip()
        if not email or "@" not in email:
            raise InvalidEmail()

        token = secrets.token_urlsafe(32)
        expires_at = self.now() + self.ttl
        self.tokens.add(email=email, token=token, expires_at=expires_at)
        try:
            self.mailer.send_login_link(email, self.login_link(token), int(self.ttl.total_seconds() // 60))
        except Exception:
            self.tokens.rollback()
            raise
        self.tokens.commit()
        logger.info("Login token issued for %s, expires %s", email, expires_at.isoformat())
        return token

    # PUBLIC_INTERFACE
    def verify(self, token: str) -> SessionIdentity:
        """
        Consume ``token`` and return the identity it grants.

        Raises:
            TokenNotFound, TokenExpired, TokenAlreadyUsed, StoreError
        """
        row = self.tokens.get_by_value(token) if token else None
        if row is None:
            logger.info("Login attempt with unknown token")
            raise TokenNotFound()
        if self.now() >= ensure_utc(row.expires_at):
            logger.info("Login attempt with expired token for %s", row.email)
            raise TokenExpired()
        if row.used:
            logger.info("Login attempt with already used token for %s", row.email)
            raise TokenAlreadyUsed()

        email = row.email
        # Only the request whose UPDATE flips the flag may proceed
        if not self.tokens.mark_used(token):
            logger.info("Lost the race consuming a token for %s", email)
            raise TokenAlreadyUsed()

        self.notes.upsert_user(email)
        logger.info("Login token consumed for %s", email)
        return SessionIdentity(email=email)
