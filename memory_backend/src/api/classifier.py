"""
Text-completion adapter.

Three narrow contracts over an OpenAI-compatible chat completion client:
``classify_intent``, ``answer_from_context`` and ``extract_note``. Calls are
single-shot (no retries); any transport failure or malformed output becomes a
``ClassifierError``.
"""
import json
import logging
import re
from datetime import datetime
from enum import Enum

from openai import OpenAI
from pydantic import ValidationError

from src.api.errors import ClassifierError
from src.api.schemas import ExtractedNote

logger = logging.getLogger(__name__)


class Intent(str, Enum):
    QUESTION = "QUESTION"
    NOTE = "NOTE"


INTENT_PROMPT = """
Answer with exactly one word: "QUESTION" or "NOTE".

QUESTION = the user is looking for information they already noted.
NOTE = the user is handing over new information to remember.
"""

ANSWER_PROMPT = """
You are a calm and reliable personal memory.

Here are the user's previous notes:
{context}

Rules:
- Answer only with the information present above.
- Never invent anything.
- If the information cannot be found, say so plainly.
"""

EXTRACT_PROMPT = """
Right now it is {reference} (local time).
The user's timezone is {timezone}.
Every date and time must be interpreted in that timezone.

You are a calm and reliable external memory.
You ALWAYS turn the message into a note with these fields:
- title
- content
- reminder (optional)

Rules:
- Never ask a question.
- Make a reasonable assumption when a date is vague.
- If no date can be detected, use null.
- The content must contain the original sentence.

Reply STRICTLY with valid JSON in this format:

{{
  "title": "...",
  "content": "...",
  "reminder": null | "YYYY-MM-DDTHH:MM"
}}
"""


def parse_intent(raw: str) -> Intent:
    """Anything not recognisably QUESTION is kept as a NOTE."""
    words = set(re.findall(r"[A-Z]+", (raw or "").upper()))
    if "QUESTION" in words and "NOTE" not in words:
        return Intent.QUESTION
    return Intent.NOTE


class OpenAIClassifier:
    """
    Classifier backed by ``openai.OpenAI`` chat completions.

    The client is shared across requests; the OpenAI client is thread-safe.
    """

    def __init__(self, client, model: str = "gpt-4o-mini"):
        self.client = client
        self.model = model

    def _complete(self, system: str, user: str, json_mode: bool = False) -> str:
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            completion = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                **kwargs,
            )
            content = completion.choices[0].message.content
        except Exception as exc:
            # openai raises APIError subclasses, httpx may leak transport errors
            logger.exception("Completion call failed")
            raise ClassifierError() from exc
        if content is None:
            raise ClassifierError()
        return content

    # PUBLIC_INTERFACE
    def classify_intent(self, text: str) -> Intent:
        raw = self._complete(INTENT_PROMPT, text)
        intent = parse_intent(raw)
        logger.debug("Raw intent %r -> %s", raw, intent.value)
        return intent

    # PUBLIC_INTERFACE
    def answer_from_context(self, context: str, question: str) -> str:
        return self._complete(ANSWER_PROMPT.format(context=context), question).strip()

    # PUBLIC_INTERFACE
    def extract_note(self, text: str, reference: datetime, timezone_name: str) -> ExtractedNote:
        system = EXTRACT_PROMPT.format(reference=reference.strftime("%Y-%m-%d %H:%M (%A)"), timezone=timezone_name)
        raw = self._complete(system, text, json_mode=True)
        try:
            return ExtractedNote.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as exc:
            logger.error("Malformed extraction output: %r", raw)
            raise ClassifierError() from exc


def build_openai_classifier(api_key, model, timeout):
    """Construct the production classifier; no automatic retries."""
    return OpenAIClassifier(OpenAI(api_key=api_key, timeout=timeout, max_retries=0), model=model)
