"""
Error taxonomy shared by the services and the HTTP layer.

Every error carries the HTTP status it maps to and a message that is safe to
show to the user. Adapter failures keep the underlying exception as
``__cause__`` so the server log has the full detail.
"""
from fastapi import status


class AssistantError(Exception):
    """Base class for every failure surfaced to a client."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Something went wrong. Please try again."

    def __init__(self, message=None):
        super().__init__(message or self.message)
        self.message = message or self.message


class Unauthenticated(AssistantError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Unauthenticated"


class UserNotFound(AssistantError):
    # The session is valid but its user row is gone; the client must log in again.
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "User not found"


class InvalidEmail(AssistantError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Email missing or invalid"


class InvalidMessage(AssistantError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Message is empty"


class TokenError(AssistantError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid link."


class TokenNotFound(TokenError):
    message = "Login link not found."


class TokenExpired(TokenError):
    message = "Login link expired."


class TokenAlreadyUsed(TokenError):
    message = "Login link already used."


class ClassifierError(AssistantError):
    status_code = status.HTTP_502_BAD_GATEWAY
    message = "The assistant is unavailable right now. Please try again."


class StoreError(AssistantError):
    message = "Storage is unavailable right now. Please try again."


class NotificationError(AssistantError):
    status_code = status.HTTP_502_BAD_GATEWAY
    message = "The login email could not be sent. Please try again."
