"""Page fetching and readable-content extraction used to ground answers."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
import logging
import time
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup
import httpx
from markdownify import markdownify

from .base import host_of

LOGGER = logging.getLogger(__name__)

MAX_RESPONSE_BYTES = 5 * 1024 * 1024
CACHE_TTL_SECONDS = 300.0
CACHE_MAX_ENTRIES = 16

_HTML_TYPES = {"text/html", "application/xhtml+xml"}
_STRIP_TAGS = ["script", "style", "meta", "link", "noscript", "svg", "iframe"]


class PageFetchError(RuntimeError):
    """Raised when a page cannot be retrieved or decoded."""


@dataclass
class PageContent:
    """Readable content of one fetched page."""

    url: str
    title: str
    favicon: str
    text: str
    source: str
    fetched_at: float = field(default_factory=time.monotonic)


def extract_page(url: str, html: str) -> tuple[str, str, str]:
    """Return ``(title, favicon, markdown_text)`` for an HTML document."""
    soup = BeautifulSoup(html, "html.parser")
    title = soup.title.get_text(strip=True) if soup.title else ""

    favicon = ""
    for link in soup.find_all("link", href=True):
        rel = link.get("rel") or []
        rel_values = rel if isinstance(rel, list) else [rel]
        if any("icon" in str(value).lower() for value in rel_values):
            favicon = urljoin(url, link["href"])
            break
    if not favicon:
        parsed = urlparse(url)
        if parsed.scheme and parsed.netloc:
            favicon = f"{parsed.scheme}://{parsed.netloc}/favicon.ico"

    for tag in soup(_STRIP_TAGS):
        tag.decompose()
    body = soup.find("main") or soup.find("article") or soup.body or soup
    text = markdownify(str(body), heading_style="atx", bullets="-")
    lines = [line.rstrip() for line in text.splitlines()]
    compact: list[str] = []
    for line in lines:
        if not line and compact and not compact[-1]:
            continue
        compact.append(line)
    return title, favicon, "\n".join(compact).strip()


class PageFetcher:
    """Fetch pages over HTTP and keep a small time-bounded cache per url."""

    def __init__(
        self,
        user_agent: str,
        timeout_seconds: float = 20.0,
        max_content_chars: int = 20_000,
        client: httpx.AsyncClient | None = None,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        max_entries: int = CACHE_MAX_ENTRIES,
    ) -> None:
        self.user_agent = user_agent
        self.max_content_chars = max_content_chars
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._client = client or httpx.AsyncClient(
            timeout=timeout_seconds, follow_redirects=True
        )
        self._owns_client = client is None
        self._cache: OrderedDict[str, PageContent] = OrderedDict()

    def cached(self, url: str) -> PageContent | None:
        entry = self._cache.get(url)
        if entry is None:
            return None
        if time.monotonic() - entry.fetched_at >= self.ttl_seconds:
            self._cache.pop(url, None)
            return None
        return entry

    def purge(self, url: str) -> None:
        self._cache.pop(url, None)

    async def get(self, url: str) -> tuple[PageContent, bool]:
        """Return the page content and whether it came from the cache."""
        entry = self.cached(url)
        if entry is not None:
            LOGGER.info("pages.cache_hit", extra={"event": "pages.cache_hit", "url": url})
            return entry, True
        entry = await self.fetch(url)
        while len(self._cache) >= self.max_entries:
            self._cache.popitem(last=False)
        self._cache[url] = entry
        return entry, False

    async def fetch(self, url: str) -> PageContent:
        headers = {
            "Accept": "text/html;q=1.0, application/xhtml+xml;q=0.9, text/plain;q=0.8, */*;q=0.1",
            "User-Agent": self.user_agent,
        }
        try:
            response = await self._client.get(url, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise PageFetchError(f"Unable to fetch {url}: {exc}") from exc

        data = response.content
        if len(data) > MAX_RESPONSE_BYTES:
            raise PageFetchError(f"Response from {url} is too large.")

        content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
        text = data.decode(response.encoding or "utf-8", errors="replace")
        if content_type in _HTML_TYPES or not content_type:
            title, favicon, body = extract_page(str(response.url), text)
            source = "html_markdown"
        else:
            title, favicon, body = "", "", text
            source = "http_text"

        body = body[: self.max_content_chars]
        LOGGER.info(
            "pages.fetched",
            extra={
                "event": "pages.fetched",
                "url": url,
                "source": source,
                "length": len(body),
            },
        )
        return PageContent(
            url=url,
            title=title or host_of(url),
            favicon=favicon,
            text=body,
            source=source,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
