"""
Safety Automation - Notification Service Client.
HTTP delivery of counselor emails with retry and exponential backoff.
"""
from __future__ import annotations
import asyncio
import html
from typing import Any
import httpx
import structlog

from .config import NotificationSettings
from .exceptions import NotificationDeliveryError
from .workflow.collaborators import CounselorNotifier, EmailSender

logger = structlog.get_logger(__name__)

_SUCCESS_STATUSES = (200, 201, 202)


class NotificationServiceClient(CounselorNotifier, EmailSender):
    """
    HTTP client for the notification microservice.

    Crisis alerts and counselor notifications both go through ``send_email``.
    Delivery is retried with exponential backoff; exhausting the retries raises
    ``NotificationDeliveryError`` so callers record the failure.
    """

    def __init__(self, settings: NotificationSettings | None = None) -> None:
        self._settings = settings or NotificationSettings()
        self._base_url = self._settings.base_url.rstrip("/")
        self._max_retries = self._settings.max_retries
        self._client: httpx.AsyncClient | None = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Lazily initialize HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._settings.timeout_seconds),
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
        priority: str = "normal",
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Deliver one email through the notification service.

        Returns:
            The service's JSON response.

        Raises:
            NotificationDeliveryError: when every attempt failed.
        """
        client = await self._ensure_client()
        payload = {
            "channels": ["email"],
            "recipients": [{"email": to}],
            "content": {"subject": subject, "html": html_body, "text": text_body},
            "priority": priority,
            "metadata": metadata or {},
        }
        last_error: str | None = None
        attempts = self._max_retries + 1
        for attempt in range(attempts):
            try:
                response = await client.post("/api/v1/notifications/send", json=payload)
                if response.status_code in _SUCCESS_STATUSES:
                    result = response.json()
                    logger.info(
                        "notification_sent",
                        priority=priority,
                        attempt=attempt + 1,
                        request_id=result.get("request_id"),
                    )
                    return result
                last_error = f"HTTP {response.status_code}: {response.text[:200] if response.text else 'No response'}"
                logger.warning(
                    "notification_failed",
                    status_code=response.status_code,
                    attempt=attempt + 1,
                )
            except (httpx.HTTPError, ValueError) as e:
                last_error = str(e) or type(e).__name__
                logger.error("notification_error", error=last_error, attempt=attempt + 1)
            if attempt < self._max_retries:
                await asyncio.sleep(min(2 ** attempt, 10))
        logger.critical(
            "notification_all_retries_exhausted",
            priority=priority,
            attempts=attempts,
            last_error=last_error,
        )
        raise NotificationDeliveryError(
            f"Notification could not be delivered after {attempts} attempts: {last_error}",
            attempts=attempts,
        )

    async def send_notification(
        self, to: str, subject: str, template: str, context: dict[str, Any]
    ) -> dict[str, Any]:
        """Send a plain counselor notification whose body is the rule's message."""
        metadata = {
            key: context[key] for key in ("memberId", "counselorId") if isinstance(context.get(key), str)
        }
        return await self.send_email(
            to=to,
            subject=subject,
            html_body=f"<p>{html.escape(template)}</p>",
            text_body=template,
            metadata=metadata,
        )
