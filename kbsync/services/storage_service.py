"""
Object storage service for the S3-compatible file bucket
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

import boto3
from botocore.exceptions import ClientError, BotoCoreError
from botocore.config import Config

from kbsync.config import get_settings
from kbsync.core.exceptions import (
    StorageError,
    StorageObjectNotFoundError,
    StorageVerificationError,
    StorageWriteError
)

logger = logging.getLogger(__name__)


def build_storage_path(user_id: UUID, file_id: UUID, file_name: str) -> str:
    """Deterministic object key: ``{user_id}/{file_id}-{file_name}``."""
    return f"{user_id}/{storage_object_name(file_id, file_name)}"


def storage_object_name(file_id: UUID, file_name: str) -> str:
    return f"{file_id}-{file_name}"


class StorageService:
    """Service for object storage operations."""

    def __init__(self, client: Any = None, bucket_name: Optional[str] = None):
        """
        Initialize the storage client.

        Args:
            client: Preconfigured boto3 S3 client (built from settings when omitted)
            bucket_name: Bucket override
        """
        settings = get_settings()
        self.bucket_name = bucket_name or settings.storage_bucket_name

        if client is not None:
            self.s3_client = client
            return

        if not settings.storage_configured:
            raise ValueError("Storage credentials and bucket name must be configured")

        # Configure boto3 with retry and timeout settings
        config = Config(
            region_name=settings.aws_region,
            retries={'max_attempts': 3, 'mode': 'adaptive'},
            max_pool_connections=50
        )

        self.s3_client = boto3.client(
            's3',
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            endpoint_url=settings.storage_endpoint_url,
            config=config
        )

    async def upload_object(
        self,
        storage_path: str,
        content: bytes,
        content_type: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """
        Write bytes to the bucket.

        Args:
            storage_path: Object key
            content: File bytes
            content_type: MIME type stored with the object
            metadata: Extra object metadata

        Returns:
            Dict with upload information

        Raises:
            StorageWriteError: If the store rejects the write
        """
        try:
            await asyncio.to_thread(
                self.s3_client.put_object,
                Bucket=self.bucket_name,
                Key=storage_path,
                Body=content,
                Metadata=metadata or {},
                ContentType=content_type or 'application/octet-stream'
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Storage upload error for {storage_path}: {e}")
            raise StorageWriteError(
                f"Storage upload failed: {str(e)}",
                status_code=_client_error_status(e)
            ) from e

        return {
            'storage_path': storage_path,
            'bucket_name': self.bucket_name,
            'size_bytes': len(content),
            'upload_timestamp': datetime.now(timezone.utc)
        }

    async def list_objects(self, prefix: str, search: Optional[str] = None) -> List[str]:
        """
        List object names directly under a folder prefix.

        Args:
            prefix: Folder (without trailing slash), e.g. the user id
            search: Only names containing this substring are returned

        Returns:
            Object names relative to the prefix

        Raises:
            StorageError: If listing fails
        """
        folder = f"{prefix.rstrip('/')}/"
        try:
            pages = await asyncio.to_thread(self._list_keys, folder)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Storage listing failed: {str(e)}") from e

        names = []
        for key in pages:
            name = key[len(folder):]
            if not name or "/" in name:
                continue
            if search and search not in name:
                continue
            names.append(name)
        return names

    def _list_keys(self, folder: str) -> List[str]:
        paginator = self.s3_client.get_paginator('list_objects_v2')
        keys = []
        for page in paginator.paginate(Bucket=self.bucket_name, Prefix=folder):
            keys.extend(obj['Key'] for obj in page.get('Contents', []))
        return keys

    async def verify_object(self, user_id: UUID, file_id: UUID, file_name: str) -> None:
        """
        Read-your-write check that a just-written object is listable.

        Raises:
            StorageVerificationError: If the object is absent or listing fails
        """
        search = storage_object_name(file_id, file_name)
        try:
            names = await self.list_objects(str(user_id), search=search)
        except StorageError as e:
            raise StorageVerificationError(
                f"File validation failed: {e.message}"
            ) from e

        if not names:
            raise StorageVerificationError(
                "File validation failed: File not found in storage after upload"
            )

    async def remove_objects(self, storage_paths: List[str]) -> None:
        """
        Delete objects from the bucket.

        Raises:
            StorageError: If the request fails or any key could not be deleted
        """
        if not storage_paths:
            return

        try:
            response = await asyncio.to_thread(
                self.s3_client.delete_objects,
                Bucket=self.bucket_name,
                Delete={'Objects': [{'Key': key} for key in storage_paths]}
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Storage delete failed: {str(e)}") from e

        errors = response.get('Errors', [])
        if errors:
            failed = ", ".join(f"{err.get('Key')} ({err.get('Code')})" for err in errors)
            raise StorageError(f"Storage delete failed for: {failed}")

    async def download_object(self, storage_path: str) -> bytes:
        """
        Download an object.

        Raises:
            StorageObjectNotFoundError: If the key does not exist
            StorageError: If the download fails
        """
        try:
            response = await asyncio.to_thread(
                self.s3_client.get_object,
                Bucket=self.bucket_name,
                Key=storage_path
            )
            return await asyncio.to_thread(response['Body'].read)

        except ClientError as e:
            if e.response.get('Error', {}).get('Code') in ('NoSuchKey', '404'):
                raise StorageObjectNotFoundError("File not found in storage") from e
            raise StorageError(f"Storage download failed: {str(e)}") from e
        except BotoCoreError as e:
            raise StorageError(f"Storage download failed: {str(e)}") from e


def _client_error_status(error: Exception) -> Optional[int]:
    if isinstance(error, ClientError):
        return error.response.get('ResponseMetadata', {}).get('HTTPStatusCode')
    return None
