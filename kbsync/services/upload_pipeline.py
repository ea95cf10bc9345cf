"""
Upload pipeline: storage commit, metadata write, webhook notification and rollback
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from kbsync.config import get_settings
from kbsync.core.exceptions import (
    RecordWriteError,
    RollbackPartialFailure,
    StorageError,
    UploadCancelledError,
    UploadError,
    WebhookError,
    WebhookTimeoutError
)
from kbsync.schemas.auth import CurrentUser
from kbsync.schemas.upload import HistoryStatus, UploadTask
from kbsync.schemas.webhook import UploadNotification, WebhookOutcome
from kbsync.services.record_service import RecordService
from kbsync.services.storage_service import StorageService, build_storage_path
from kbsync.services.webhook_service import WebhookService

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]

ROLLED_BACK_NOTE = "Rolled back: file deleted from storage and database"


def _ignore_progress(progress: int, message: str) -> None:
    return None


class UploadPipeline:
    """
    Runs one upload attempt for one task.

    Steps, in order: history row (``pending``), storage write, storage
    verification, ``files`` row, webhook notification, history ``success``.
    Progress is reported as 10, 40, 50, 70 and 85; the caller sets 100.

    Any failure after the storage write triggers the compensating
    transaction: the object and the ``files`` row are deleted and the history
    row is marked ``failed`` with a "Rolled back" note. Compensation failures
    are collected as ``RollbackPartialFailure`` on the raised error rather
    than raised themselves.
    """

    def __init__(
        self,
        storage: StorageService,
        records: RecordService,
        notifier: WebhookService,
        webhook_timeout: Optional[float] = None,
        webhook_max_retries: Optional[int] = None,
        retry_backoff_seconds: Optional[float] = None
    ):
        settings = get_settings()
        self.storage = storage
        self.records = records
        self.notifier = notifier
        self.webhook_timeout = webhook_timeout if webhook_timeout is not None else settings.webhook_timeout_seconds
        self.webhook_max_retries = webhook_max_retries if webhook_max_retries is not None else settings.webhook_max_retries
        self.retry_backoff_seconds = (
            retry_backoff_seconds if retry_backoff_seconds is not None
            else settings.webhook_retry_backoff_seconds
        )

    async def run(
        self,
        task: UploadTask,
        user: CurrentUser,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> str:
        """
        Upload one task.

        Args:
            task: Task with a stable id and its file bytes
            user: Owner of the upload
            on_progress: Called with (percent, message) after each step
            cancel_event: When set, the attempt stops at the next step
                boundary (or while waiting on the webhook) and compensates

        Returns:
            The storage path of the committed object

        Raises:
            UploadError: The attempt failed; whatever it had written has been
                rolled back
        """
        report = on_progress or _ignore_progress
        cancel_event = cancel_event or asyncio.Event()
        storage_path = build_storage_path(user.id, task.id, task.file_name)
        object_written = False
        webhook_attempted = False
        retry_base = max(task.attempt - 1, 0)

        try:
            await self.records.start_history(
                task, user.id, self.notifier.upload_url, retry_count=retry_base
            )
            report(10, f"Uploading {task.file_name}...")
            _raise_if_cancelled(cancel_event)

            await self.storage.upload_object(
                storage_path,
                task.content,
                content_type=task.mime_type,
                metadata={"file-id": str(task.id), "user-id": str(user.id)}
            )
            object_written = True
            report(40, f"{task.file_name} written to storage, verifying...")
            _raise_if_cancelled(cancel_event)

            await self.storage.verify_object(user.id, task.id, task.file_name)
            report(50, f"{task.file_name} confirmed in storage")
            _raise_if_cancelled(cancel_event)

            await self.records.upsert_file(task, storage_path, user.id)
            report(70, f"{task.file_name} stored successfully, sending webhook notification...")

            webhook_attempted = True
            await self._notify(task, user, storage_path, cancel_event, retry_base)
            report(85, f"Knowledge base accepted {task.file_name}, finalizing...")

        except asyncio.CancelledError:
            logger.warning(f"Upload of {task.file_name} ({task.id}) was interrupted")
            error = UploadCancelledError("Upload interrupted before it finished")
            await self._settle_failure(task, user, storage_path, object_written, error, webhook_attempted)
            raise
        except UploadError as exc:
            await self._settle_failure(task, user, storage_path, object_written, exc, webhook_attempted)
            raise
        except Exception as exc:
            logger.exception(f"Unexpected error uploading {task.file_name} ({task.id})")
            error = UploadError(f"Unexpected upload failure: {str(exc)}")
            await self._settle_failure(task, user, storage_path, object_written, error, webhook_attempted)
            raise error from exc

        await self._mark_history(task, user, HistoryStatus.SUCCESS)
        logger.info(f"{task.file_name} uploaded successfully with ID: {task.id}")
        return storage_path

    async def _notify(
        self,
        task: UploadTask,
        user: CurrentUser,
        storage_path: str,
        cancel_event: asyncio.Event,
        retry_base: int
    ) -> WebhookOutcome:
        """Post to the webhook, retrying with exponential backoff before giving up."""
        retry_count = 0
        while True:
            notification = UploadNotification(
                file_id=task.id,
                file_name=task.file_name,
                file_size=task.size,
                mime_type=task.mime_type,
                uploaded_at=datetime.now(timezone.utc),
                storage_path=storage_path,
                bucket_name=self.storage.bucket_name,
                user_id=user.id,
                user_email=user.email,
                user_role=user.role
            )

            try:
                outcome = await self._await_webhook(
                    self.notifier.send_upload(notification, task.content),
                    cancel_event
                )
            except WebhookError as exc:
                await self._record_response(task, user, None, None, exc.message, retry_count, False)
                error = exc
            else:
                await self._record_response(
                    task,
                    user,
                    outcome.status_code,
                    outcome.detail or None,
                    None if outcome.ok else (outcome.text or None),
                    retry_count,
                    outcome.ok
                )
                if outcome.ok:
                    logger.info(f"Webhook response for {task.file_name}: {outcome.detail}")
                    return outcome
                error = WebhookError(
                    f"Upload failed: {outcome.status_code} - {outcome.text or 'Unknown error'}",
                    status_code=outcome.status_code,
                    response_body=outcome.detail
                )

            logger.error(
                f"Upload error for {task.file_name} "
                f"(attempt {retry_count + 1}/{self.webhook_max_retries + 1}): {error}"
            )
            if retry_count >= self.webhook_max_retries:
                raise error

            delay = self.retry_backoff_seconds * (2 ** retry_count)
            retry_count += 1
            logger.info(
                f"Retrying upload for {task.file_name} in {delay}s... "
                f"(Attempt {retry_count}/{self.webhook_max_retries})"
            )
            await self._mark_history(
                task, user, HistoryStatus.UPLOADING, retry_count=retry_base + retry_count
            )
            await _sleep_unless_cancelled(delay, cancel_event)

    async def _await_webhook(self, call: Any, cancel_event: asyncio.Event) -> WebhookOutcome:
        """Wait for the webhook call, bounded by the timeout and the cancel event."""
        request = asyncio.ensure_future(call)
        cancelled = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {request, cancelled},
                timeout=self.webhook_timeout,
                return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            cancelled.cancel()
            if not request.done():
                request.cancel()

        if request in done:
            return request.result()
        if cancel_event.is_set():
            raise UploadCancelledError("Upload cancelled while waiting for the webhook")
        raise WebhookTimeoutError(f"Webhook did not respond within {self.webhook_timeout}s")

    async def _settle_failure(
        self,
        task: UploadTask,
        user: CurrentUser,
        storage_path: str,
        object_written: bool,
        exc: UploadError,
        webhook_attempted: bool = False
    ) -> None:
        """Compensate what the attempt wrote and leave the audit trail reflecting it."""
        if object_written:
            await self._rollback(task, storage_path, exc)

        await self._mark_history(task, user, HistoryStatus.FAILED, error_message=annotate_failure(exc))

        if exc.rolled_back and webhook_attempted:
            await self._record_response(
                task, user, None, None, f"{exc.message} (Rolled back)", self.webhook_max_retries, False
            )

    async def _rollback(self, task: UploadTask, storage_path: str, exc: UploadError) -> None:
        failures = []

        try:
            await self.storage.remove_objects([storage_path])
            logger.info(f"Rollback: Successfully deleted file from storage: {storage_path}")
        except StorageError as e:
            logger.error(f"Rollback: Failed to delete file from storage: {e}")
            failures.append(RollbackPartialFailure("storage object", e.message))

        try:
            await self.records.delete_file(task.id)
            logger.info(f"Rollback: Successfully deleted database record: {task.id}")
        except RecordWriteError as e:
            logger.error(f"Rollback: Failed to delete database record: {e}")
            failures.append(RollbackPartialFailure("database record", e.message))

        exc.rolled_back = True
        exc.rollback_failures = failures
        if failures:
            logger.warning(f"Rollback of {task.file_name} incomplete, manual cleanup may be required")

    async def _mark_history(
        self,
        task: UploadTask,
        user: CurrentUser,
        status: HistoryStatus,
        error_message: Optional[str] = None,
        retry_count: Optional[int] = None
    ) -> None:
        try:
            await self.records.update_history(
                task.id, user.id, status, error_message=error_message, retry_count=retry_count
            )
        except RecordWriteError as e:
            logger.error(f"Could not mark upload history of {task.id} as {status.value}: {e}")

    async def _record_response(
        self,
        task: UploadTask,
        user: CurrentUser,
        status_code: Optional[int],
        response_body: Optional[Any],
        error_message: Optional[str],
        retry_count: int,
        success: bool
    ) -> None:
        try:
            await self.records.record_webhook_response(
                task,
                user.id,
                self.notifier.upload_url,
                status_code=status_code,
                response_body=response_body,
                error_message=error_message,
                retry_count=retry_count,
                success=success
            )
        except RecordWriteError as e:
            logger.error(f"Could not record webhook response for {task.id}: {e}")


def annotate_failure(exc: UploadError) -> str:
    """History error message, noting whether and how the attempt was rolled back."""
    if not exc.rolled_back:
        return exc.message
    if not exc.rollback_failures:
        return f"{exc.message} ({ROLLED_BACK_NOTE})"
    problems = "; ".join(str(failure) for failure in exc.rollback_failures)
    return f"{exc.message} (Rolled back with errors: {problems}; manual cleanup may be required)"


def _raise_if_cancelled(cancel_event: asyncio.Event) -> None:
    if cancel_event.is_set():
        raise UploadCancelledError("Upload cancelled")


async def _sleep_unless_cancelled(delay: float, cancel_event: asyncio.Event) -> None:
    _raise_if_cancelled(cancel_event)
    if delay <= 0:
        return
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return
    raise UploadCancelledError("Upload cancelled before webhook retry")
