"""HTTP transport used by the database resolvers."""
from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

USER_AGENT = "crossrefware/0.1"

Fetcher = Callable[[str, float], str]


class HttpFetcher:
    """GET a URL and return its body, or an empty string on any failure.

    Transport errors and 5xx replies are retried with exponential backoff;
    other error statuses are returned as empty payloads straight away.
    """

    def __init__(
        self,
        headers: Optional[Dict[str, str]] = None,
        auth: Optional[Tuple[str, str]] = None,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.headers = {"User-Agent": USER_AGENT}
        if headers:
            self.headers.update(headers)
        self.auth = auth
        self.max_retries = max(1, max_retries)
        self.backoff_factor = backoff_factor
        self._client = client

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                headers=self.headers, auth=self.auth, follow_redirects=True
            )
        return self._client

    def __call__(self, url: str, timeout: float) -> str:
        last_error: Optional[str] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                response = self.client.get(url, timeout=timeout)
            except httpx.RequestError as exc:
                last_error = f"{type(exc).__name__}: {exc}"
            else:
                if response.status_code < 400:
                    return response.text
                if response.status_code < 500:
                    logger.debug("GET %s returned %s", url, response.status_code)
                    return ""
                last_error = f"HTTP {response.status_code}"
            if attempt < self.max_retries:
                time.sleep(self.backoff_factor * (2 ** (attempt - 1)))
        logger.debug("GET %s failed after %d attempts: %s", url, self.max_retries, last_error)
        return ""

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


__all__ = ["Fetcher", "HttpFetcher", "USER_AGENT"]
