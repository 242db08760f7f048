import logging
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from sqlalchemy.orm import Session

from src.api import config
from src.api.auth import (
    MagicLinkService,
    SessionIdentity,
    create_session_token,
    get_session_identity,
    require_session,
)
from src.api.classifier import build_openai_classifier
from src.api.database import get_db, init_db
from src.api.errors import AssistantError, TokenError, UserNotFound
from src.api.logging_config import configure_logging
from src.api.mailer import SMTPMailer
from src.api.router import MessageRouter
from src.api.schemas import (
    LoginRequest,
    MeResponse,
    MessageRequest,
    MessageResponse,
    NoteResponse,
    NotesListResponse,
    PushSubscriptionRequest,
    SuccessResponse,
)
from src.api.store import NoteStore, TokenStore

configure_logging()
logger = logging.getLogger(__name__)

# Initialize database tables
init_db()

app = FastAPI(
    title="Memory Assistant API",
    description="Personal memory assistant: store notes and ask about them, with magic-link login.",
    version="1.0.0",
    openapi_tags=[
        {"name": "Health", "description": "Service health and status."},
        {"name": "Auth", "description": "Passwordless login with magic links."},
        {"name": "Memory", "description": "Messages, notes and reminders."},
    ],
)

# CORS setup - allow frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.FRONTEND_ORIGIN],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -------- Error handling --------

@app.exception_handler(AssistantError)
async def handle_assistant_error(request: Request, exc: AssistantError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %r", type(exc).__name__, request.method, request.url.path, exc.__cause__)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


# -------- Capabilities --------

@lru_cache(maxsize=1)
def get_classifier():
    """Shared text-completion classifier, built once per process."""
    return build_openai_classifier(config.OPENAI_API_KEY, config.OPENAI_MODEL, config.OPENAI_TIMEOUT_SECONDS)


@lru_cache(maxsize=1)
def get_mailer():
    return SMTPMailer()


def get_note_store(db: Session = Depends(get_db)) -> NoteStore:
    return NoteStore(db)


def get_auth_service(
    db: Session = Depends(get_db),
    notes: NoteStore = Depends(get_note_store),
    mailer=Depends(get_mailer),
) -> MagicLinkService:
    return MagicLinkService(TokenStore(db), notes, mailer)


def get_message_router(
    notes: NoteStore = Depends(get_note_store),
    classifier=Depends(get_classifier),
) -> MessageRouter:
    return MessageRouter(classifier, notes)


def set_session_cookie(response, email: str) -> None:
    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=create_session_token(email),
        max_age=config.SESSION_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


# PUBLIC_INTERFACE
@app.get("/", tags=["Health"], summary="Health Check")
def health_check():
    """
    Health check endpoint.

    Returns:
        JSON object indicating service status.
    """
    return {"message": "Healthy"}


# -------- Auth Routes --------

# PUBLIC_INTERFACE
@app.post("/login", response_model=SuccessResponse, tags=["Auth"], summary="Email a magic login link")
def login(payload: LoginRequest, auth: MagicLinkService = Depends(get_auth_service)):
    """
    Create a single-use login token and send it by email.

    Body:
        email: address that receives the link

    Raises:
        400 if the email is missing, 500 on storage failure, 502 if the email cannot be sent.
    """
    auth.request_login(payload.email)
    return SuccessResponse()


# PUBLIC_INTERFACE
@app.get("/login/verify", tags=["Auth"], summary="Consume a magic link and open a session")
def verify_login(
    token: Optional[str] = Query(None, description="Token from the emailed link"),
    auth: MagicLinkService = Depends(get_auth_service),
):
    """
    Verify a login token, set the session cookie and redirect to the assistant.

    Failures (missing, unknown, expired or used token) are plain-text messages.
    """
    if not token:
        return PlainTextResponse("Invalid link.", status_code=status.HTTP_400_BAD_REQUEST)
    try:
        identity = auth.verify(token)
    except TokenError as exc:
        return PlainTextResponse(exc.message, status_code=exc.status_code)
    response = RedirectResponse(url="/", status_code=status.HTTP_303_SEE_OTHER)
    set_session_cookie(response, identity.email)
    return response


# PUBLIC_INTERFACE
@app.get("/me", response_model=MeResponse, tags=["Auth"], summary="Current session")
def me(identity: Optional[SessionIdentity] = Depends(get_session_identity)):
    """Report whether the caller has a valid session."""
    if identity is None:
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"loggedIn": False})
    return MeResponse(loggedIn=True, email=identity.email)


# PUBLIC_INTERFACE
@app.post("/logout", response_model=SuccessResponse, tags=["Auth"], summary="Clear the session cookie")
def logout():
    response = JSONResponse({"success": True})
    response.delete_cookie(config.SESSION_COOKIE_NAME, path="/")
    return response


# -------- Memory Routes --------

# PUBLIC_INTERFACE
@app.post("/message", response_model=MessageResponse, tags=["Memory"], summary="Send a note or a question")
def post_message(
    payload: MessageRequest,
    identity: SessionIdentity = Depends(require_session),
    router: MessageRouter = Depends(get_message_router),
):
    """
    Route a free-text message.

    Questions are answered from the user's notes; anything else is stored as
    a note, with a reminder when the message mentions a time.

    Raises:
        401 without a session, 502 if the assistant model fails.
    """
    return MessageResponse(reply=router.handle_message(identity, payload.message))


# PUBLIC_INTERFACE
@app.get("/get-notes", response_model=NotesListResponse, tags=["Memory"], summary="List the user's notes")
def get_notes(
    identity: SessionIdentity = Depends(require_session),
    notes: NoteStore = Depends(get_note_store),
):
    """All notes of the current user, newest first."""
    user = notes.get_user_by_email(identity.email)
    if user is None:
        raise UserNotFound()
    items = notes.list_notes(user.id, newest_first=True)
    return NotesListResponse(notes=[NoteResponse.model_validate(n) for n in items])


# PUBLIC_INTERFACE
@app.post(
    "/api/save-push-subscription",
    response_model=SuccessResponse,
    tags=["Memory"],
    summary="Store a browser push subscription",
)
def save_push_subscription(
    payload: PushSubscriptionRequest,
    identity: SessionIdentity = Depends(require_session),
    notes: NoteStore = Depends(get_note_store),
):
    """Persist the opaque subscription JSON against the current user."""
    user = notes.get_user_by_email(identity.email)
    if user is None:
        raise UserNotFound()
    subscription: Dict[str, Any] = payload.model_dump(exclude_unset=True)
    notes.save_push_subscription(user.id, subscription)
    return SuccessResponse()
