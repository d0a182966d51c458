"""Alert delivery for errors raised while the booking loop runs."""

from __future__ import annotations

from typing import Mapping, Optional, Protocol

import httpx
import structlog

from .config import Settings

LOGGER = structlog.get_logger(__name__)


class Alerter(Protocol):
    async def report(self, error: BaseException, tags: Mapping[str, str]) -> None: ...


class NullAlerter:
    """Used when no alert endpoint is configured."""

    async def report(self, error: BaseException, tags: Mapping[str, str]) -> None:
        return None


class WebhookAlerter:
    """Posts errors as JSON to a webhook. Delivery failures are logged, never raised."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._url = url
        self._timeout = timeout
        self._transport = transport

    async def report(self, error: BaseException, tags: Mapping[str, str]) -> None:
        payload = {
            "error": str(error),
            "error_type": type(error).__name__,
            "tags": dict(tags),
        }
        LOGGER.debug("alert.send.start", url=self._url, error_type=payload["error_type"])

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._url, json=payload)
        except httpx.HTTPError as exc:
            LOGGER.warning("alert.send.failed", error=str(exc))
            return

        if not response.is_success:
            LOGGER.warning("alert.send.failed", status_code=response.status_code, body=response.text[:200])


def build_alerter(settings: Settings) -> Alerter:
    """Pick the webhook alerter when configured, else the no-op one."""
    url = (settings.alerting.webhook_url or "").strip()
    if not url:
        return NullAlerter()
    return WebhookAlerter(url, timeout=settings.alerting.timeout_seconds)
