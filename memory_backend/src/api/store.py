"""
Persistence adapters over a SQLAlchemy session.

These classes hold no business rules. Lookups return ``None`` for a missing
row; any SQLAlchemy failure is rolled back and re-raised as ``StoreError``.
"""
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from src.api.errors import StoreError
from src.api.models import LoginToken, Note, PushSubscription, User

logger = logging.getLogger(__name__)


class _SessionAdapter:
    def __init__(self, db: Session):
        self.db = db

    def _fail(self, action: str, exc: Exception) -> StoreError:
        self.db.rollback()
        logger.exception("Store failure while trying to %s", action)
        return StoreError()


class NoteStore(_SessionAdapter):
    """Users, notes and push subscriptions."""

    def get_user_by_email(self, email: str) -> Optional[User]:
        try:
            return self.db.execute(select(User).where(User.email == email)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise self._fail("look up a user", exc) from exc

    def upsert_user(self, email: str) -> User:
        """Return the user for ``email``, creating it on first sight."""
        user = self.get_user_by_email(email)
        if user is not None:
            return user
        try:
            user = User(email=email)
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)
            logger.info("Created user %s", user.id)
            return user
        except IntegrityError:
            # A concurrent verification created it first
            self.db.rollback()
            user = self.get_user_by_email(email)
            if user is None:
                raise StoreError()
            return user
        except SQLAlchemyError as exc:
            raise self._fail("create a user", exc) from exc

    def insert_note(
        self,
        user_id: int,
        title: str,
        content: str,
        reminder_at: Optional[datetime] = None,
    ) -> Note:
        try:
            note = Note(user_id=user_id, title=title, content=content, reminder_at=reminder_at)
            self.db.add(note)
            self.db.commit()
            self.db.refresh(note)
            return note
        except SQLAlchemyError as exc:
            raise self._fail("insert a note", exc) from exc

    def list_notes(self, user_id: int, newest_first: bool = False) -> List[Note]:
        """Every note of the user; never truncated."""
        order = (Note.created_at.desc(), Note.id.desc()) if newest_first else (Note.created_at, Note.id)
        try:
            return list(self.db.execute(select(Note).where(Note.user_id == user_id).order_by(*order)).scalars())
        except SQLAlchemyError as exc:
            raise self._fail("list notes", exc) from exc

    def save_push_subscription(self, user_id: int, subscription: Dict[str, Any]) -> PushSubscription:
        endpoint = subscription["endpoint"]
        payload = json.dumps(subscription, sort_keys=True)
        try:
            row = self.db.execute(
                select(PushSubscription).where(PushSubscription.endpoint == endpoint)
            ).scalar_one_or_none()
            if row is None:
                row = PushSubscription(user_id=user_id, endpoint=endpoint, payload=payload)
                self.db.add(row)
            else:
                row.user_id = user_id
                row.payload = payload
            self.db.commit()
            self.db.refresh(row)
            return row
        except SQLAlchemyError as exc:
            raise self._fail("save a push subscription", exc) from exc


class TokenStore(_SessionAdapter):
    """Magic-link tokens."""

    def add(self, email: str, token: str, expires_at: datetime) -> LoginToken:
        """Stage a token in the current transaction; the caller commits."""
        try:
            row = LoginToken(email=email, token=token, expires_at=expires_at, used=False)
            self.db.add(row)
            self.db.flush()
            return row
        except SQLAlchemyError as exc:
            raise self._fail("insert a login token", exc) from exc

    def commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("commit a login token", exc) from exc

    def rollback(self) -> None:
        self.db.rollback()

    def get_by_value(self, token: str) -> Optional[LoginToken]:
        try:
            return self.db.execute(select(LoginToken).where(LoginToken.token == token)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise self._fail("look up a login token", exc) from exc

    def mark_used(self, token: str) -> bool:
        """
        Flip ``used`` to True in a single conditional UPDATE.

        Returns True only for the one caller that performed the transition.
        """
        try:
            result = self.db.execute(
                update(LoginToken)
                .where(LoginToken.token == token, LoginToken.used.is_(False))
                .values(used=True)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("mark a login token used", exc) from exc
        return result.rowcount == 1
