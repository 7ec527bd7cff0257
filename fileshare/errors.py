"""Error kinds raised by the file-sharing core.

Each class carries the HTTP status the boundary layer answers with.
"""


class FileShareError(Exception):
    """Base exception for all file-sharing errors."""

    status_code = 400

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail)
        self.detail = detail or self.__class__.__name__


class ValidationError(FileShareError):
    """Raised when a required input is missing or malformed."""

    status_code = 422


class NotFoundError(FileShareError):
    status_code = 404


class UserNotFound(NotFoundError):
    """Raised when a referenced user id does not exist."""


class OwnerNotFound(UserNotFound):
    """Raised when the owner of a new upload record does not exist."""


class RecordNotFound(NotFoundError):
    """Raised when no upload record matches an owner/file pair."""


class BlobNotFound(NotFoundError):
    """Raised when a stored blob is missing from the storage root."""


class SelfShareError(FileShareError):
    """Raised when a user tries to share a file with themselves."""


class InvalidPath(FileShareError):
    """Raised when a download path resolves outside the storage root."""


class FileIdConflict(FileShareError):
    """Raised when an upload record with the same file id already exists."""

    status_code = 409


class UserAlreadyExists(FileShareError):
    status_code = 409
