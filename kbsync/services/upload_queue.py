"""
Upload queue: the per-user set of upload tasks and their state machines
"""

import asyncio
import logging
from typing import Dict, List, Optional, Set
from uuid import UUID, uuid4

from kbsync.config import get_settings
from kbsync.core.exceptions import (
    InvalidTransitionError,
    RetryLimitExceededError,
    TaskNotFoundError,
    UploadCancelledError,
    UploadError
)
from kbsync.schemas.auth import CurrentUser
from kbsync.schemas.upload import ErrorDetails, UploadStatus, UploadTask
from kbsync.services.record_service import RecordService
from kbsync.services.storage_service import build_storage_path
from kbsync.services.upload_pipeline import UploadPipeline
from kbsync.services.validation import validate_upload_candidate

logger = logging.getLogger(__name__)

_TRANSITIONS = {
    UploadStatus.PENDING: {UploadStatus.UPLOADING},
    UploadStatus.UPLOADING: {UploadStatus.SUCCESS, UploadStatus.ERROR},
    UploadStatus.ERROR: {UploadStatus.UPLOADING},
    UploadStatus.SUCCESS: set(),
}


def allocate_upload_id(existing: Optional[UUID] = None) -> UUID:
    """Return ``existing`` when the task already has an id, otherwise a new UUID4."""
    return existing or uuid4()


class UploadQueue:
    """
    A user's upload queue.

    Tasks are keyed by id and every state change is a synchronous
    check-then-set on that task's entry, with no await in between, so
    pipelines completing concurrently on the event loop cannot lose each
    other's updates.
    """

    def __init__(
        self,
        user: CurrentUser,
        pipeline: UploadPipeline,
        records: RecordService,
        max_attempts: Optional[int] = None,
        removal_delay: Optional[float] = None
    ):
        settings = get_settings()
        self.user = user
        self.pipeline = pipeline
        self.records = records
        self.max_attempts = max_attempts or settings.max_upload_attempts
        self.removal_delay = removal_delay if removal_delay is not None else settings.success_removal_delay_seconds
        self.stored_names: Set[str] = set()
        self._tasks: Dict[UUID, UploadTask] = {}
        self._cancel_events: Dict[UUID, asyncio.Event] = {}
        self._running: Dict[UUID, asyncio.Task] = {}

    async def refresh_stored_files(self) -> Set[str]:
        """Reload the names of the user's stored files used for collision checks."""
        self.stored_names = await self.records.list_file_names(self.user.id)
        return self.stored_names

    def enqueue(self, file_name: str, content: bytes, mime_type: str) -> UploadTask:
        """
        Validate a selected file and add it to the queue as ``pending``.

        Raises:
            ValidationError: If policy or a name collision rejects the file
        """
        validate_upload_candidate(
            file_name,
            len(content),
            mime_type,
            stored_names=self.stored_names,
            queued_names={task.file_name for task in self._tasks.values()}
        )

        task = UploadTask(
            id=allocate_upload_id(),
            file_name=file_name,
            size=len(content),
            mime_type=mime_type,
            content=content,
            message=f"{file_name} added to the upload queue"
        )
        self._tasks[task.id] = task
        logger.info(f"Queued {file_name} ({task.size} bytes) as {task.id} for user {self.user.id}")
        return task

    def list_tasks(self) -> List[UploadTask]:
        return list(self._tasks.values())

    def get(self, task_id: UUID) -> UploadTask:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError("Upload task not found")
        return task

    def remove(self, task_id: UUID) -> UploadTask:
        """Drop a task that is not currently uploading."""
        task = self.get(task_id)
        if task.status == UploadStatus.UPLOADING:
            raise InvalidTransitionError(f"{task.file_name} is uploading; cancel it first")
        del self._tasks[task_id]
        return task

    def start(self, task_id: UUID) -> "asyncio.Task[UploadTask]":
        """
        Begin an attempt for a pending or failed task in the background.

        Returns:
            The asyncio task running the pipeline; it resolves to the UploadTask
        """
        task = self._begin_attempt(task_id)
        runner = asyncio.create_task(self._execute(task))
        self._running[task.id] = runner
        runner.add_done_callback(lambda _: self._running.pop(task.id, None))
        return runner

    async def upload(self, task_id: UUID) -> UploadTask:
        """Run an attempt and wait for it to settle.

        The wait is shielded: a caller that goes away leaves the attempt running.
        """
        return await asyncio.shield(self.start(task_id))

    def upload_all(self) -> List["asyncio.Task[UploadTask]"]:
        """Start every pending task without waiting on any of them."""
        pending = [task.id for task in self._tasks.values() if task.status == UploadStatus.PENDING]
        return [self.start(task_id) for task_id in pending]

    def retry(self, task_id: UUID) -> "asyncio.Task[UploadTask]":
        """Start a new attempt for a failed task, reusing its id."""
        task = self.get(task_id)
        if task.status != UploadStatus.ERROR:
            raise InvalidTransitionError(f"Only failed uploads can be retried ({task.file_name} is {task.status.value})")
        return self.start(task_id)

    def cancel(self, task_id: UUID) -> UploadTask:
        """Ask an uploading task to stop; its pipeline rolls back what it wrote."""
        task = self.get(task_id)
        event = self._cancel_events.get(task_id)
        if task.status != UploadStatus.UPLOADING or event is None:
            raise InvalidTransitionError(f"{task.file_name} is not uploading")
        event.set()
        task.message = f"Cancelling {task.file_name}..."
        return task

    def _begin_attempt(self, task_id: UUID) -> UploadTask:
        task = self.get(task_id)
        if task.status == UploadStatus.ERROR and task.attempt >= self.max_attempts:
            raise RetryLimitExceededError(
                f"{task.file_name} already failed {task.attempt} times; remove it and add it again"
            )

        self._transition(task, UploadStatus.UPLOADING)
        task.id = allocate_upload_id(task.id)
        task.attempt += 1
        task.progress = 0
        task.error_details = None
        task.storage_path = build_storage_path(self.user.id, task.id, task.file_name)
        task.message = f"Uploading {task.file_name}..."
        self._cancel_events[task.id] = asyncio.Event()
        logger.info(f"Starting attempt {task.attempt} for {task.file_name} ({task.id})")
        return task

    async def _execute(self, task: UploadTask) -> UploadTask:
        try:
            storage_path = await self.pipeline.run(
                task,
                self.user,
                on_progress=lambda progress, message: self._advance(task, progress, message),
                cancel_event=self._cancel_events[task.id]
            )
        except asyncio.CancelledError:
            self._fail(task, UploadCancelledError(f"Upload of {task.file_name} was interrupted"))
            raise
        except UploadError as exc:
            self._fail(task, exc)
        except Exception as exc:
            logger.exception(f"Upload pipeline crashed for {task.file_name} ({task.id})")
            self._fail(task, UploadError(str(exc) or "Network error"))
        else:
            self._succeed(task, storage_path)
        finally:
            self._cancel_events.pop(task.id, None)
        return task

    def _advance(self, task: UploadTask, progress: int, message: str) -> None:
        if task.status != UploadStatus.UPLOADING:
            return
        task.progress = max(task.progress, progress)
        task.message = message
        logger.info(f"{task.file_name}: {progress}% - {message}")

    def _succeed(self, task: UploadTask, storage_path: str) -> None:
        self._transition(task, UploadStatus.SUCCESS)
        task.progress = 100
        task.storage_path = storage_path
        task.message = f"{task.file_name} uploaded successfully with ID: {task.id}"
        self.stored_names.add(task.file_name)
        asyncio.get_running_loop().call_later(self.removal_delay, self._discard_succeeded, task.id)

    def _discard_succeeded(self, task_id: UUID) -> None:
        task = self._tasks.get(task_id)
        if task is not None and task.status == UploadStatus.SUCCESS:
            del self._tasks[task_id]

    def _fail(self, task: UploadTask, exc: UploadError) -> None:
        self._transition(task, UploadStatus.ERROR)
        warnings = [str(failure) for failure in exc.rollback_failures]
        task.error_details = ErrorDetails(
            message=exc.message,
            status_code=exc.upstream_status,
            response_body=exc.response_body,
            rollback_warnings=warnings
        )
        task.message = f"Failed to upload {task.file_name}: {exc.message}"
        if exc.rolled_back:
            task.message += " (rolled back)"
        if warnings:
            task.message += ". Rollback incomplete, manual cleanup may be required"
        logger.warning(task.message)

    def _transition(self, task: UploadTask, target: UploadStatus) -> None:
        if target not in _TRANSITIONS[task.status]:
            raise InvalidTransitionError(
                f"Cannot move {task.file_name} from {task.status.value} to {target.value}"
            )
        task.status = target


class UploadQueueRegistry:
    """Holds one UploadQueue per user for the lifetime of the process."""

    def __init__(self, pipeline: UploadPipeline, records: RecordService):
        self.pipeline = pipeline
        self.records = records
        self._queues: Dict[UUID, UploadQueue] = {}

    def get_queue(self, user: CurrentUser) -> UploadQueue:
        queue = self._queues.get(user.id)
        if queue is None:
            queue = UploadQueue(user, self.pipeline, self.records)
            self._queues[user.id] = queue
        else:
            queue.user = user
        return queue
