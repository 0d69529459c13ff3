# zyra/core/exceptions.py
class ZyraException(Exception):
    """Base class for errors that map onto an HTTP status."""
    default_message = "Request failed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class UnauthorizedException(ZyraException):
    """Raised when no valid session identity accompanies the request."""
    default_message = "Unauthorized"


class ForbiddenException(ZyraException):
    """Raised when the session user does not own the referenced canvas."""
    default_message = "Forbidden"


class NotFoundException(ZyraException):
    default_message = "Not found"


class CanvasNotFoundException(NotFoundException):
    default_message = "Canvas not found"


class NoteNotFoundException(NotFoundException):
    default_message = "Note not found"


class MessageNotFoundException(NotFoundException):
    default_message = "Message not found"


class PDFNotFoundException(NotFoundException):
    default_message = "PDF not found"


class ValidationException(ZyraException):
    """Raised for missing or invalid request fields."""
    default_message = "Invalid request"


class UpstreamServiceException(ZyraException):
    """Raised when the AI or storage provider fails."""
    default_message = "Upstream service error"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StorageConfigurationException(ZyraException):
    default_message = "Server configuration error: Missing Cloudinary credentials"
