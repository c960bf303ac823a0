import time
from dataclasses import dataclass, field
from typing import List, Optional

import httpx
from loguru import logger

from sitesearch.errors import NetworkError, ParseError
from sitesearch.monitoring.metrics_server import REQUEST_LATENCY
from sitesearch.parsing.html_extractor import extract_links, is_html
from sitesearch.utils.url_utils import get_domain


@dataclass
class FetchResult:
    status_code: int
    content_type: str
    body: str
    links: List[str] = field(default_factory=list)

    @property
    def is_html(self) -> bool:
        return is_html(self.content_type)


class PageFetcher:
    """Fetches one URL with the crawler's identity.

    HTTP error statuses come back as data. Any failure to get a response
    (timeout, refused connection, redirect loop, undecodable body) is raised
    as ``NetworkError``.
    """

    def __init__(
        self,
        *,
        user_agent: str,
        referrer: str,
        timeout_ms: int,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.user_agent = user_agent
        self.referrer = referrer
        self.timeout_ms = timeout_ms
        self._transport = transport
        self.client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "PageFetcher":
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout=self.timeout_ms / 1000),
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self.client is not None:
            await self.client.aclose()
        self.client = None

    async def fetch(self, url: str) -> FetchResult:
        if self.client is None:
            raise RuntimeError("HTTP client is not initialized")

        start = time.perf_counter()
        try:
            resp = await self.client.get(
                url,
                headers={
                    "User-Agent": self.user_agent,
                    "Referer": self.referrer,
                    "Accept": (
                        "text/html,application/xhtml+xml,application/xml;q=0.9,"
                        "*/*;q=0.8"
                    ),
                },
            )
        except httpx.RequestError as exc:
            raise NetworkError(url, f"{type(exc).__name__}: {exc}") from exc
        finally:
            REQUEST_LATENCY.labels(site=get_domain(url)).observe(time.perf_counter() - start)

        content_type = (resp.headers.get("Content-Type") or "").lower()
        if not is_html(content_type):
            return FetchResult(status_code=resp.status_code, content_type=content_type, body="")

        body = resp.text or ""
        result = FetchResult(status_code=resp.status_code, content_type=content_type, body=body)
        if resp.status_code == 200:
            try:
                result.links = extract_links(str(resp.url), body)
            except ParseError as exc:
                logger.warning(f"Skipping link extraction for {url}: {exc}")
        return result
