"""
Exceptions raised by the upload workflow and file services
"""

from typing import Any, List, Optional


class UploadError(Exception):
    """Base class for errors surfaced on an upload task or an API response.

    ``status_code`` is the HTTP status the API answers with. A status
    reported by the storage or webhook backend is kept in ``upstream_status``.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[Any] = None
    ):
        super().__init__(message)
        self.message = message
        self.upstream_status = status_code
        self.response_body = response_body
        self.rolled_back = False
        self.rollback_failures: List["RollbackPartialFailure"] = []

    def __str__(self) -> str:
        return self.message


class ValidationError(UploadError):
    """Candidate file rejected before any side effect.

    ``code`` is one of ``schema``, ``stored_duplicate`` or ``queued_duplicate``
    so callers can tell a policy violation (shrink or convert the file) from a
    name collision (rename, or wait for the queued copy).
    """

    status_code = 400

    SCHEMA = "schema"
    STORED_DUPLICATE = "stored_duplicate"
    QUEUED_DUPLICATE = "queued_duplicate"

    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.code = code


class StorageError(UploadError):
    """Object store call failed."""

    status_code = 502


class StorageWriteError(StorageError):
    """Object store rejected the write; nothing was persisted."""


class StorageVerificationError(StorageError):
    """Write reported success but the object could not be listed back."""


class StorageObjectNotFoundError(StorageError):
    status_code = 404


class RecordWriteError(UploadError):
    """Relational store write failed."""

    status_code = 500


class WebhookError(UploadError):
    """Webhook answered with a non-2xx status or could not be reached."""

    status_code = 502


class WebhookTimeoutError(WebhookError):
    status_code = 504


class UploadCancelledError(UploadError):
    status_code = 409


class InvalidTransitionError(UploadError):
    status_code = 409


class RetryLimitExceededError(UploadError):
    status_code = 409


class TaskNotFoundError(UploadError):
    status_code = 404


class FileNotFoundInStoreError(UploadError):
    """No ``files`` row for the requested id and user."""

    status_code = 404


class PreviewNotSupportedError(UploadError):
    status_code = 415


class RollbackPartialFailure(Exception):
    """A compensating delete failed; the object or row needs manual cleanup.

    Collected on the originating error's ``rollback_failures``, never raised.
    """

    def __init__(self, target: str, detail: str):
        super().__init__(f"Failed to clean up {target}: {detail}")
        self.target = target
        self.detail = detail
