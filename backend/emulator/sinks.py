"""Where finished envelopes go: an HTTP webhook, or memory for tests and dry runs."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Protocol

import httpx

from .schemas import Envelope

logger = logging.getLogger(__name__)


class NetworkSink(Protocol):
    async def send(self, envelope: Envelope, application_id: str) -> bool: ...

    async def aclose(self) -> None: ...


def _should_retry_status(status: int) -> bool:
    return status == 429 or 500 <= status <= 599


def _backoff(attempt: int) -> float:
    return (0.25 * (2 ** attempt)) + random.uniform(0, 0.25)


class WebhookSink:
    """POSTs envelopes as JSON, bounded by a semaphore, retrying 429/5xx and transport errors."""

    def __init__(
        self,
        url: str,
        *,
        api_key: str | None = None,
        timeout: float = 20.0,
        max_retries: int = 3,
        max_inflight: int = 20,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self.api_key = api_key
        self.max_retries = max_retries
        self._sema = asyncio.Semaphore(max_inflight)
        self._owns_client = client is None
        if client is None:
            limits = httpx.Limits(max_connections=400, max_keepalive_connections=200)
            client = httpx.AsyncClient(timeout=timeout, limits=limits)
        self._client = client

    def _headers(self, application_id: str) -> dict[str, str]:
        headers = {"X-Application-Id": application_id}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def send(self, envelope: Envelope, application_id: str) -> bool:
        payload = envelope.model_dump(mode="json")
        device_id = envelope.end_device_ids.device_id

        for attempt in range(self.max_retries + 1):
            try:
                async with self._sema:
                    r = await self._client.post(self.url, json=payload, headers=self._headers(application_id))
                if r.status_code < 300:
                    return True
                if _should_retry_status(r.status_code) and attempt < self.max_retries:
                    await asyncio.sleep(_backoff(attempt))
                    continue
                logger.warning(
                    "Webhook HTTP %s for %s: %s", r.status_code, device_id, r.text[:200]
                )
                return False
            except httpx.TransportError as e:
                if attempt < self.max_retries:
                    await asyncio.sleep(_backoff(attempt))
                    continue
                logger.warning("Webhook network error for %s: %r", device_id, e)
                return False
        return False

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class MemorySink:
    def __init__(self) -> None:
        self.delivered: list[tuple[str, Envelope]] = []

    async def send(self, envelope: Envelope, application_id: str) -> bool:
        self.delivered.append((application_id, envelope))
        return True

    async def aclose(self) -> None:
        self.delivered.clear()
