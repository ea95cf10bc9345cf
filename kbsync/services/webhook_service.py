"""
Knowledge base webhook client
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from kbsync.config import get_settings
from kbsync.core.exceptions import WebhookError, WebhookTimeoutError
from kbsync.schemas.webhook import UploadNotification, WebhookOutcome

logger = logging.getLogger(__name__)


class WebhookService:
    """Posts upload and delete notifications to the knowledge base workflow."""

    def __init__(
        self,
        upload_url: Optional[str] = None,
        delete_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        settings = get_settings()
        self.upload_url = upload_url or settings.upload_webhook_url
        self.delete_url = delete_url or settings.delete_webhook_url
        self.timeout = timeout or settings.webhook_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def send_upload(
        self,
        notification: UploadNotification,
        content: bytes
    ) -> WebhookOutcome:
        """
        Send the file and its metadata as one multipart POST.

        Args:
            notification: Upload metadata
            content: File bytes

        Returns:
            WebhookOutcome for any HTTP response, successful or not

        Raises:
            WebhookError: If the request could not be completed
        """
        files = {"file": (notification.file_name, content, notification.mime_type)}
        async with self._client() as client:
            response = await self._post(
                client,
                self.upload_url,
                data=notification.form_fields(),
                files=files
            )
        return _to_outcome(response)

    async def send_delete(self, payload: Dict[str, Any]) -> WebhookOutcome:
        """
        Notify the knowledge base that a stored file is being deleted.

        Raises:
            WebhookError: If the request could not be completed
        """
        async with self._client() as client:
            response = await self._post(client, self.delete_url, json=payload)
        return _to_outcome(response)

    async def _post(self, client: httpx.AsyncClient, url: str, **kwargs) -> httpx.Response:
        try:
            return await client.post(url, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"Webhook {url} timed out: {e}")
            raise WebhookTimeoutError(f"Webhook request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.warning(f"Webhook {url} request failed: {e}")
            raise WebhookError(f"Network error: {str(e) or type(e).__name__}") from e


def _to_outcome(response: httpx.Response) -> WebhookOutcome:
    text = response.text
    body = None
    if text:
        try:
            body = json.loads(text)
        except ValueError:
            # Response wasn't JSON, keep the text
            body = None

    return WebhookOutcome(
        status_code=response.status_code,
        ok=response.is_success,
        body=body,
        text=text
    )
