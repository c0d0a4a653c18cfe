"""
errors.py — Typed failures raised by the chat coordinators.
Each error carries the HTTP status the routes answer with and a detail message
that is safe to show to the caller.
"""


class ChatError(Exception):
    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class Unauthenticated(ChatError):
    status_code = 401
    default_detail = "Unauthorized"


class NotFound(ChatError):
    status_code = 404
    default_detail = "Not found"


class Forbidden(ChatError):
    status_code = 403
    default_detail = "Forbidden"


class Conflict(ChatError):
    """Invalid state transition."""
    status_code = 409
    default_detail = "Conflict"


class BadRequest(Conflict):
    status_code = 400
    default_detail = "Bad request"


class UploadFailed(ChatError):
    status_code = 502
    default_detail = "Failed to upload image"


class Internal(ChatError):
    status_code = 500


class StorageUnavailable(Internal):
    pass
