from __future__ import annotations

import logging
from typing import Protocol

from playwright.async_api import APIRequestContext, Playwright
from playwright.async_api import Error as PlaywrightError

from .errors import FetchFailed
from .model import VERSION

logger = logging.getLogger("percollate.fetch")

USER_AGENT = f"percollate/{VERSION}"


class Fetcher(Protocol):
    async def fetch(self, url: str) -> str: ...


class PlaywrightFetcher:
    """Fetch raw page markup over HTTP with Playwright's request API.

    Use as an async context manager so the request context is disposed.
    """

    def __init__(self, playwright: Playwright, *, user_agent: str = USER_AGENT) -> None:
        self._playwright = playwright
        self._user_agent = user_agent
        self._request: APIRequestContext | None = None

    async def __aenter__(self) -> PlaywrightFetcher:
        self._request = await self._playwright.request.new_context(
            extra_http_headers={"user-agent": self._user_agent},
        )
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._request is not None:
            await self._request.dispose()
            self._request = None

    async def fetch(self, url: str) -> str:
        if self._request is None:
            raise RuntimeError("PlaywrightFetcher used outside of 'async with'")

        logger.info("Fetching: %s", url)
        try:
            # timeout=0 disables Playwright's default request timeout.
            response = await self._request.get(url, timeout=0)
            if not response.ok:
                raise FetchFailed(url, f"HTTP {response.status} {response.status_text}".strip())
            return await response.text()
        except PlaywrightError as exc:
            raise FetchFailed(url, exc.message or str(exc)) from exc
