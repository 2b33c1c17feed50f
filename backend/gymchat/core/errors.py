# backend/gymchat/core/errors.py

from __future__ import annotations


class ChatError(Exception):
    """
    Base class for every rejection the realtime core reports to a caller.

    Each subclass carries a stable ``kind`` string that is sent to clients
    (WebSocket acks and REST error bodies) so the UI can tell failures apart.
    None of these are fatal: the connection stays usable afterwards.
    """

    kind = "ChatError"
    status_code = 400
    default_message = "Request rejected"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class NotInGym(ChatError):
    kind = "NotInGym"
    status_code = 404
    default_message = "You must be in a gym to chat"


class InvalidParticipants(ChatError):
    kind = "InvalidParticipants"
    status_code = 400
    default_message = "These participants cannot chat with each other"


class EmptyMessage(ChatError):
    kind = "EmptyMessage"
    status_code = 400
    default_message = "Message is required"


class Forbidden(ChatError):
    kind = "Forbidden"
    status_code = 403
    default_message = "Access denied"


class NotFound(ChatError):
    kind = "NotFound"
    status_code = 404
    default_message = "Not found"
