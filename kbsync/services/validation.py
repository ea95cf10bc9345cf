"""
Upload candidate validation
"""

from typing import Collection, List, Optional

from kbsync.config import get_settings
from kbsync.core.exceptions import ValidationError


def validate_upload_candidate(
    file_name: str,
    size: int,
    mime_type: Optional[str],
    stored_names: Collection[str],
    queued_names: Collection[str],
    *,
    max_name_length: Optional[int] = None,
    max_size_bytes: Optional[int] = None,
    allowed_mime_types: Optional[List[str]] = None
) -> None:
    """
    Check a candidate file against upload policy and existing names.

    Args:
        file_name: Name the file will be stored under
        size: File size in bytes
        mime_type: Declared MIME type
        stored_names: Names of files already committed for the user
        queued_names: Names of files already in the user's upload queue
        max_name_length: Override for the configured name length limit
        max_size_bytes: Override for the configured size limit
        allowed_mime_types: Override for the configured MIME allow-list

    Raises:
        ValidationError: With ``code`` telling policy violations apart from
            stored and queued name collisions
    """
    settings = get_settings()
    max_name_length = max_name_length or settings.max_file_name_length
    max_size_bytes = max_size_bytes or settings.max_file_size_bytes
    allowed_mime_types = allowed_mime_types or settings.allowed_mime_types

    if not file_name:
        raise ValidationError("File name is required", ValidationError.SCHEMA)

    if len(file_name) > max_name_length:
        raise ValidationError(
            f"File name must be less than {max_name_length} characters",
            ValidationError.SCHEMA
        )

    if size > max_size_bytes:
        raise ValidationError(
            f"File size must be less than {max_size_bytes // (1024 * 1024)}MB",
            ValidationError.SCHEMA
        )

    if mime_type not in allowed_mime_types:
        raise ValidationError(
            "Invalid file type. Only PDF, JSON, CSV, Excel, and TXT files are allowed",
            ValidationError.SCHEMA
        )

    if file_name in stored_names:
        raise ValidationError(
            f"A file named '{file_name}' already exists. Rename it or delete the stored file first",
            ValidationError.STORED_DUPLICATE
        )

    if file_name in queued_names:
        raise ValidationError(
            f"'{file_name}' is already in the upload queue. Wait for it to finish or remove it",
            ValidationError.QUEUED_DUPLICATE
        )
