# chat_relay/domain/exceptions.py


class ChatError(Exception):
    """Base class for failures reported back to the client that caused them."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict:
        return {"message": self.message, "kind": self.kind}


class AuthenticationError(ChatError):
    kind = "authentication"
    status_code = 401

    def __init__(self, message: str, reason: str = "invalid_token"):
        super().__init__(message)
        self.reason = reason

    def to_payload(self) -> dict:
        return {**super().to_payload(), "reason": self.reason}


class AuthorizationError(ChatError):
    kind = "authorization"
    status_code = 403


class NotFoundError(ChatError):
    kind = "not_found"
    status_code = 404


class ValidationError(ChatError):
    kind = "validation"
    status_code = 400


class UpstreamError(ChatError):
    kind = "upstream"
    status_code = 502
