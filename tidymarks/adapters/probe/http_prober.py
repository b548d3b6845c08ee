"""Reachability probes for bookmark URLs."""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from tidymarks.core.async_utils import raise_if_cancelled

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; tidymarks link checker)"


@runtime_checkable
class LinkProber(Protocol):
    async def probe(self, url: str, *, timeout: float) -> None:
        """Return if the URL answered at all; raise otherwise.

        Raises:
            TimeoutError: The probe did not finish within ``timeout``.
            Exception: Any other transport failure.
        """
        ...


class HttpLinkProber:
    """``LinkProber`` over ``httpx``.

    Any HTTP response, whatever its status, counts as reachable; only transport
    failures propagate. Responses are streamed and closed without reading the
    body.
    """

    def __init__(
        self,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        verify: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._headers = {"User-Agent": user_agent}
        self._verify = verify
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> HttpLinkProber:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers=self._headers,
                follow_redirects=True,
                verify=self._verify,
                transport=self._transport,
            )
        return self._client

    async def probe(self, url: str, *, timeout: float) -> None:
        client = self._ensure_client()
        try:
            async with client.stream("GET", url, timeout=timeout) as response:
                logger.debug(
                    "link_probe_response",
                    extra={"url": url[:200], "status_code": response.status_code},
                )
        except httpx.TimeoutException as exc:
            msg = f"Probe timed out: {url}"
            raise TimeoutError(msg) from exc
        except httpx.HTTPError as exc:
            msg = f"Probe failed: {exc}"
            raise ConnectionError(msg) from exc
        except Exception as exc:
            raise_if_cancelled(exc)
            raise
