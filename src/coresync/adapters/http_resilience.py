"""Rate-limited, retrying httpx client shared by the provisioning adapters."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx
from aiolimiter import AsyncLimiter
from httpx_retries import Retry, RetryTransport

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    from coresync.config.http_resilience import ResilienceConfig, RetryPolicy

log = logging.getLogger(__name__)


def build_retry(policy: RetryPolicy) -> Retry:
    return Retry(
        total=policy.total,
        backoff_factor=policy.backoff_factor,
        max_backoff_wait=policy.max_backoff_wait,
        respect_retry_after_header=policy.respect_retry_after_header,
        allowed_methods=tuple(policy.allowed_methods),
        status_forcelist=tuple(policy.status_forcelist),
        retry_on_exceptions=policy.retry_on_exceptions,
        backoff_jitter=policy.backoff_jitter,
    )


class ResilientClient:
    """Async httpx client with retries and an optional client-side rate limit.

    Only methods listed in the retry policy are retried; everything else is sent
    once. The limiter is shared by every request issued through one instance.
    """

    def __init__(self, config: ResilienceConfig) -> None:
        self.config = config
        self._limiter: AsyncLimiter | None = None
        if config.ratelimit is not None:
            self._limiter = AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
        self._client = httpx.AsyncClient(
            base_url=config.base_url or "",
            timeout=config.timeout_seconds,
            headers=dict(config.default_headers or {}),
            transport=RetryTransport(retry=build_retry(config.retry)),
        )

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: object = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        if self._limiter is None:
            response = await self._client.request(method, url, json=json, headers=headers)
        else:
            async with self._limiter:
                response = await self._client.request(method, url, json=json, headers=headers)
        log.debug("%s %s %s -> %s", self.config.name, method, url, response.status_code)
        return response
