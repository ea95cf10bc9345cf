"""
Upload queue API endpoints
"""

import asyncio
import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status

from kbsync.config import get_settings
from kbsync.core.dependencies import get_upload_queue
from kbsync.core.exceptions import ValidationError
from kbsync.schemas.upload import (
    EnqueueResponse,
    QueueResponse,
    RejectedFile,
    UploadTask,
    UploadTaskResponse
)
from kbsync.services.upload_queue import UploadQueue

logger = logging.getLogger(__name__)
router = APIRouter()


def _to_response(task: UploadTask) -> UploadTaskResponse:
    return UploadTaskResponse(**task.model_dump())


@router.post("/queue", response_model=EnqueueResponse, status_code=status.HTTP_201_CREATED)
async def enqueue_files(
    files: List[UploadFile] = File(..., description="Files to add to the upload queue"),
    queue: UploadQueue = Depends(get_upload_queue)
) -> EnqueueResponse:
    """
    Validate selected files and add the acceptable ones to the queue.

    Rejected files are reported individually; nothing is written to
    storage, the database or the webhook at this stage.

    Args:
        files: Selected files
        queue: Caller's upload queue

    Returns:
        EnqueueResponse: Accepted tasks and rejected files with reasons
    """
    max_files = get_settings().max_files_per_request
    if len(files) > max_files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"At most {max_files} files can be added per request"
        )

    await queue.refresh_stored_files()

    result = EnqueueResponse()
    for upload in files:
        file_name = upload.filename or ""
        content = await upload.read()
        try:
            task = queue.enqueue(file_name, content, upload.content_type or "")
        except ValidationError as e:
            logger.info(f"Rejected {file_name}: {e.message}")
            result.rejected.append(RejectedFile(file_name=file_name, reason=e.message, code=e.code))
            continue
        result.accepted.append(_to_response(task))

    return result


@router.get("/queue", response_model=QueueResponse)
async def list_queue(queue: UploadQueue = Depends(get_upload_queue)) -> QueueResponse:
    tasks = [_to_response(task) for task in queue.list_tasks()]
    return QueueResponse(tasks=tasks, total=len(tasks))


@router.post("/queue/upload-all", response_model=QueueResponse, status_code=status.HTTP_202_ACCEPTED)
async def upload_all(queue: UploadQueue = Depends(get_upload_queue)) -> QueueResponse:
    """
    Start every pending task concurrently.

    Returns immediately; poll the queue for progress.
    """
    queue.upload_all()
    tasks = [_to_response(task) for task in queue.list_tasks()]
    return QueueResponse(tasks=tasks, total=len(tasks))


@router.get("/queue/{task_id}", response_model=UploadTaskResponse)
async def get_task(task_id: UUID, queue: UploadQueue = Depends(get_upload_queue)) -> UploadTaskResponse:
    return _to_response(queue.get(task_id))


@router.post("/queue/{task_id}/upload", response_model=UploadTaskResponse)
async def upload_task(
    task_id: UUID,
    response: Response,
    wait: bool = Query(False, description="Wait for the attempt to settle"),
    queue: UploadQueue = Depends(get_upload_queue)
) -> UploadTaskResponse:
    """
    Start uploading one pending task.

    Args:
        task_id: Task id
        wait: When true the response carries the settled task

    Returns:
        UploadTaskResponse: The task, ``success``/``error`` when waited on
    """
    if wait:
        return _to_response(await queue.upload(task_id))

    queue.start(task_id)
    response.status_code = status.HTTP_202_ACCEPTED
    return _to_response(queue.get(task_id))


@router.post("/queue/{task_id}/retry", response_model=UploadTaskResponse)
async def retry_task(
    task_id: UUID,
    response: Response,
    wait: bool = Query(False, description="Wait for the attempt to settle"),
    queue: UploadQueue = Depends(get_upload_queue)
) -> UploadTaskResponse:
    """Retry a failed task. The task keeps its id and storage path."""
    runner = queue.retry(task_id)
    if wait:
        return _to_response(await asyncio.shield(runner))

    response.status_code = status.HTTP_202_ACCEPTED
    return _to_response(queue.get(task_id))


@router.post("/queue/{task_id}/cancel", response_model=UploadTaskResponse)
async def cancel_task(task_id: UUID, queue: UploadQueue = Depends(get_upload_queue)) -> UploadTaskResponse:
    return _to_response(queue.cancel(task_id))


@router.delete("/queue/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_task(task_id: UUID, queue: UploadQueue = Depends(get_upload_queue)) -> Response:
    queue.remove(task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
