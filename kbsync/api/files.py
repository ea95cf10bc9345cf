"""
Stored file API endpoints
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status

from kbsync.core.dependencies import get_current_user, get_file_service
from kbsync.schemas.auth import CurrentUser
from kbsync.schemas.file import FileListResponse, FilePreview, FileRecordResponse, FileRename
from kbsync.services.file_service import FileService

router = APIRouter()


@router.get("", response_model=FileListResponse)
async def list_files(
    current_user: CurrentUser = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service)
) -> FileListResponse:
    """
    List the caller's stored files, newest first.

    Returns:
        FileListResponse: Files and their count
    """
    files = await file_service.list_files(current_user.id)
    return FileListResponse(
        files=[FileRecordResponse.model_validate(file) for file in files],
        total_count=len(files)
    )


@router.get("/{file_id}/download")
async def download_file(
    file_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service)
) -> Response:
    file, content = await file_service.download(file_id, current_user.id)
    return Response(
        content=content,
        media_type=file.mime_type or "application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{file.file_name}"'}
    )


@router.get("/{file_id}/preview", response_model=FilePreview)
async def preview_file(
    file_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service)
) -> FilePreview:
    """Text preview for plain text, JSON and CSV files."""
    return await file_service.preview(file_id, current_user.id)


@router.patch("/{file_id}", response_model=FileRecordResponse)
async def rename_file(
    file_id: UUID,
    body: FileRename,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service)
) -> FileRecordResponse:
    file = await file_service.rename(
        file_id,
        current_user,
        body.file_name,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent")
    )
    return FileRecordResponse.model_validate(file)


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(
    file_id: UUID,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service)
) -> Response:
    """
    Delete a stored file.

    The knowledge base is notified first, then the object and the row are
    removed and an audit entry is written.
    """
    await file_service.delete(
        file_id,
        current_user,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent")
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
