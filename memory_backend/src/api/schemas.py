from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer, field_validator

from src.api.clock import ensure_utc


# Auth

class LoginRequest(BaseModel):
    """Request a magic link for an email"""
    email: str = Field(..., description="Email that will receive the login link")


class SuccessResponse(BaseModel):
    success: bool = True


class MeResponse(BaseModel):
    """Session status of the caller"""
    loggedIn: bool
    email: Optional[str] = None


# Messages

class MessageRequest(BaseModel):
    """Free-text message from the user"""
    message: str = Field(..., description="A note to remember or a question about past notes")


class MessageResponse(BaseModel):
    reply: str


# Notes

class NoteResponse(BaseModel):
    """Note as returned to the client"""
    model_config = ConfigDict(from_attributes=True)

    title: str
    content: str
    reminder: Optional[datetime] = Field(None, validation_alias=AliasChoices("reminder", "reminder_at"))
    created_at: datetime = Field(
        ..., validation_alias=AliasChoices("createdAt", "created_at"), serialization_alias="createdAt"
    )

    @field_serializer("reminder", "created_at")
    def _as_utc_iso(self, value: Optional[datetime]) -> Optional[str]:
        if value is None:
            return None
        return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


class NotesListResponse(BaseModel):
    notes: List[NoteResponse]


# Push

class PushSubscriptionRequest(BaseModel):
    """Opaque push subscription produced by the browser's PushManager"""
    model_config = ConfigDict(extra="allow")

    endpoint: str = Field(..., min_length=1)
    keys: Optional[Dict[str, Any]] = None


# Classifier output

class ExtractedNote(BaseModel):
    """Structured note returned by the extraction step; any other shape is rejected."""
    model_config = ConfigDict(strict=True, extra="ignore")

    title: str
    content: str
    reminder: Optional[str] = None

    @field_validator("reminder")
    @classmethod
    def _blank_reminder_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value
