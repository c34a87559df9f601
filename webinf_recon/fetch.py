"""
fetch.py
--------

Thin wrapper around ``aiohttp`` used for every request the engine makes.

Redirects are never followed by default: a 3xx for a class file only says the
file is not at that literal location.  Connection problems and timeouts are
raised as :class:`~webinf_recon.errors.TransportError` so the caller can treat
them as a failure of that single request.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, Optional

import aiohttp

from webinf_recon.errors import TransportError

HTTP_OK = 200
HTTP_TIMEOUT = 10
DEFAULT_USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64) Gecko/20100101 Firefox/122.0"


@dataclass
class FetchResponse:
    url: str
    status: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == HTTP_OK

    @property
    def content_type(self) -> str:
        return self.headers.get("Content-Type", "")

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class Fetcher:
    """Issues GET requests over a caller-owned ``aiohttp.ClientSession``."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        timeout: float = HTTP_TIMEOUT,
        user_agent: Optional[str] = DEFAULT_USER_AGENT,
    ) -> None:
        self.session = session
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.headers = {"User-Agent": user_agent} if user_agent else None
        self.requests_sent = 0

    async def fetch(self, url: str, follow_redirects: bool = False) -> FetchResponse:
        self.requests_sent += 1
        try:
            async with self.session.get(
                url,
                allow_redirects=follow_redirects,
                timeout=self.timeout,
                headers=self.headers,
            ) as resp:
                body = await resp.read()
                return FetchResponse(
                    url=str(resp.url),
                    status=resp.status,
                    body=body,
                    headers={k: v for k, v in resp.headers.items()},
                )
        except asyncio.TimeoutError:
            raise TransportError(url, f"timed out after {self.timeout.total}s") from None
        except aiohttp.ClientError as exc:
            raise TransportError(url, f"{type(exc).__name__}: {exc}") from exc


def is_present(response: FetchResponse) -> bool:
    """An artifact only counts as present on an exact 200."""
    return response.status == HTTP_OK
