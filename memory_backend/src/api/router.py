"""
Message router: decides whether a message is a QUESTION or a NOTE and acts on it.

QUESTION  -> answer from the user's notes only, nothing is written.
NOTE      -> extract a structured note, normalize its reminder, store it.
"""
import logging
from datetime import datetime
from typing import Callable, Iterable, Optional

from src.api import config
from src.api.auth import SessionIdentity
from src.api.classifier import Intent
from src.api.clock import local_now, to_absolute, utcnow
from src.api.errors import ClassifierError, InvalidMessage, Unauthenticated, UserNotFound
from src.api.models import Note
from src.api.store import NoteStore

logger = logging.getLogger(__name__)

NOTE_SAVED_REPLY = "Got it. I'll remember that for you."
NOTHING_FOUND_REPLY = "I couldn't find anything about that in your notes."


def build_context(notes: Iterable[Note]) -> str:
    """One ``• title — content`` line per note, skipping notes with neither."""
    lines = []
    for note in notes:
        title = (note.title or "").strip()
        content = (note.content or "").strip()
        if not title and not content:
            continue
        lines.append(f"• {title} — {content}")
    return "\n".join(lines)


def keep_original(content: str, message: str) -> str:
    """Make sure the stored content still carries the user's own words."""
    content = (content or "").strip()
    if message in content:
        return content
    if not content:
        return message
    return f"{message}\n\n{content}"


class MessageRouter:
    """
    Routes one message per call. Holds no state between calls besides the
    injected adapters.
    """

    def __init__(
        self,
        classifier,
        notes: NoteStore,
        timezone_name: Optional[str] = None,
        now: Callable[[], datetime] = utcnow,
    ):
        self.classifier = classifier
        self.notes = notes
        self.timezone_name = timezone_name or config.USER_TIMEZONE
        self.now = now

    # PUBLIC_INTERFACE
    def handle_message(self, identity: Optional[SessionIdentity], text: str) -> str:
        """
        Classify ``text`` and either answer it or store it.

        Raises:
            Unauthenticated, InvalidMessage, UserNotFound, ClassifierError, StoreError
        """
        if identity is None:
            raise Unauthenticated()
        text = (text or "").strip()
        if not text:
            raise InvalidMessage()

        user = self.notes.get_user_by_email(identity.email)
        if user is None:
            logger.error("Session for %s has no backing user", identity.email)
            raise UserNotFound()

        intent = self.classifier.classify_intent(text)
        logger.info("Message from user %s classified as %s", user.id, intent.value)
        logger.debug("Message text: %r", text)

        if intent == Intent.QUESTION:
            return self._answer(user.id, text)
        return self._remember(user.id, text)

    def _answer(self, user_id: int, question: str) -> str:
        context = build_context(self.notes.list_notes(user_id))
        if not context:
            return NOTHING_FOUND_REPLY
        return self.classifier.answer_from_context(context, question)

    def _remember(self, user_id: int, text: str) -> str:
        reference = local_now(self.timezone_name, self.now())
        extracted = self.classifier.extract_note(text, reference, self.timezone_name)

        reminder_at = None
        if extracted.reminder is not None:
            try:
                reminder_at = to_absolute(extracted.reminder, self.timezone_name)
            except ValueError as exc:
                logger.error("Unusable reminder from extraction: %r", extracted.reminder)
                raise ClassifierError() from exc

        note = self.notes.insert_note(
            user_id=user_id,
            title=extracted.title.strip()[:255],
            content=keep_original(extracted.content, text),
            reminder_at=reminder_at,
        )
        logger.info("Stored note %s for user %s (reminder=%s)", note.id, user_id, reminder_at)
        return NOTE_SAVED_REPLY
