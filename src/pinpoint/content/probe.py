"""Existence probes for per-location content.

Image mode issues a lightweight HEAD; embedded mode loads the document
with a full GET. A 2xx status means the content exists. Any other status
or a transport error means it does not; neither is ever raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import httpx
from loguru import logger

from pinpoint.layers.layer import DisplayMode


class ProbeOutcome(str, Enum):
    FOUND = "found"
    ABSENT = "absent"
    TIMEOUT = "timeout"
    ABORTED = "aborted"


@dataclass(frozen=True)
class ProbeResult:
    url: str
    outcome: ProbeOutcome
    status_code: int | None = None


class ContentProber:
    """Async HTTP probe client.

    Owns its httpx.AsyncClient unless one is passed in. Relative content
    paths (the "../img/" style defaults) are resolved against *base_url*.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        base_url: str = "",
        user_agent: str = "PINPOINT",
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, follow_redirects=True)
        self._headers = {"User-Agent": user_agent, "Cache-Control": "no-cache"}

    async def probe(self, url: str, mode: DisplayMode) -> ProbeResult:
        method = "HEAD" if mode is DisplayMode.IMAGE else "GET"
        try:
            resp = await self._client.request(method, url, headers=self._headers)
        except httpx.HTTPError as e:
            logger.debug(f"Probe {method} {url} failed: {e}")
            return ProbeResult(url=url, outcome=ProbeOutcome.ABSENT)

        outcome = ProbeOutcome.FOUND if resp.is_success else ProbeOutcome.ABSENT
        logger.debug(f"Probe {method} {url} -> {resp.status_code}")
        return ProbeResult(url=url, outcome=outcome, status_code=resp.status_code)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ContentProber":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
