"""
Error taxonomy shared by the chat core, the HTTP routes and the WebSocket route.

Every error carries a machine-readable ``kind`` and the HTTP status it maps to,
so the API layer can report "you may not see this" (401) separately from
"this does not exist" (404).
"""


class ChatError(Exception):
    kind = "chat_error"
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    def to_dict(self) -> dict:
        return {"detail": self.message, "kind": self.kind}


class ValidationError(ChatError):
    """Empty or otherwise invalid message body."""
    kind = "validation_error"
    status_code = 400


class NotFoundError(ChatError):
    """Referenced conversation does not exist."""
    kind = "not_found"
    status_code = 404


class UnauthorizedError(ChatError):
    """Admin-only operation attempted without admin capability."""
    kind = "unauthorized"
    status_code = 401


class PersistenceError(ChatError):
    """Durable store unreachable or a write failed."""
    kind = "persistence_error"
    status_code = 503


class ProtocolError(ChatError):
    """Malformed real-time event."""
    kind = "protocol_error"
    status_code = 400
