"""Error taxonomy for uploads, downloads and the file registry."""


class TransferError(Exception):
    """Base class; carries the HTTP status and error code it maps to."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)


class NoFilesError(TransferError):
    status_code = 400
    code = "NO_FILES"
    message = "No files uploaded"


class TooManyFilesError(TransferError):
    status_code = 400
    code = "TOO_MANY_FILES"
    message = "Too many files in one upload"


class FileTooLargeError(TransferError):
    status_code = 413
    code = "FILE_TOO_LARGE"
    message = "File too large"


class StorageFailure(TransferError):
    code = "STORAGE_FAILURE"
    message = "File storage failed"


class DuplicateCodeError(TransferError):
    code = "CODE_COLLISION"
    message = "Could not allocate a share code"


class NotFoundError(TransferError):
    status_code = 404
    code = "NOT_FOUND"
    message = "File not found"


class ExpiredError(TransferError):
    status_code = 410
    code = "EXPIRED"
    message = "This share code has expired"


class InvalidFileReference(TransferError):
    status_code = 404
    code = "INVALID_FILE"
    message = "File not found in this share"


class BlobMissing(StorageFailure):
    """The blob is no longer on disk, usually because its group was just purged."""

    message = "Stored file is unavailable"
