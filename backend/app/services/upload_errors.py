"""
Error taxonomy for the upload pipeline.

Every collaborator failure is converted into one of these at the saga
step where it happens. Each class knows the HTTP status it maps to and
the message shown to clients; the original exception is kept as
``cause`` so it can be surfaced as ``details`` outside production.
"""
from typing import Optional


class UploadPipelineError(Exception):
    """Base class for errors that end an upload request."""

    status_code = 500
    default_message = "Upload failed"

    def __init__(self, message: Optional[str] = None, cause: Optional[BaseException] = None):
        self.message = message or self.default_message
        self.cause = cause
        super().__init__(self.message)

    @property
    def reason(self) -> str:
        return type(self).__name__

    @property
    def details(self) -> Optional[str]:
        if self.cause is None:
            return None
        return str(self.cause) or type(self.cause).__name__


class AuthError(UploadPipelineError):
    status_code = 401
    default_message = "Invalid token"


class ValidationError(UploadPipelineError):
    status_code = 400
    default_message = "Invalid file type"


class PayloadTooLargeError(UploadPipelineError):
    status_code = 413
    default_message = "File too large"


class InsertError(UploadPipelineError):
    default_message = "Failed to save metadata"


class UploadError(UploadPipelineError):
    default_message = "File upload failed"


class TranscodeError(UploadPipelineError):
    default_message = "Thumbnail generation failed"


class UpdateError(UploadPipelineError):
    default_message = "Failed to update metadata"
