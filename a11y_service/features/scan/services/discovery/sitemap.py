"""
Sitemap Resolver

Expands a site's sitemap into the ordered, de-duplicated list of page URLs
a run should audit.
"""
import base64
import gzip
import logging
from typing import Callable, List, Optional

import httpx
from bs4 import BeautifulSoup

from a11y_service.platform.config import settings
from a11y_service.platform.exceptions import ResolutionError

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"


def basic_auth_header(username: str, password: str) -> str:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def unique_in_order(urls: List[str]) -> List[str]:
    return list(dict.fromkeys(urls))


def parse_sitemap(content: bytes):
    """
    Split one sitemap document into (page URLs, child sitemap URLs).

    Raises ResolutionError when the document is neither a urlset nor a
    sitemapindex.
    """
    if content[:2] == GZIP_MAGIC:
        try:
            content = gzip.decompress(content)
        except OSError as e:
            raise ResolutionError(f"Could not decompress sitemap: {e}")

    soup = BeautifulSoup(content, "html.parser")

    index = soup.find("sitemapindex")
    if index is not None:
        children = [loc.get_text(strip=True) for loc in index.select("sitemap > loc")]
        return [], [url for url in children if url]

    urlset = soup.find("urlset")
    if urlset is not None:
        pages = [loc.get_text(strip=True) for loc in urlset.select("url > loc")]
        return [url for url in pages if url], []

    raise ResolutionError("Sitemap is malformed: no <urlset> or <sitemapindex> element")


class SitemapResolver:
    """
    Fetches `sitemap.xml` (following sitemap indexes) over HTTP.

    `max_urls` caps the result; None means no cap.
    """

    def __init__(
        self,
        max_urls: Optional[int] = settings.SITEMAP_MAX_URLS,
        max_depth: int = settings.SITEMAP_MAX_DEPTH,
        client_factory: Callable[..., httpx.AsyncClient] = httpx.AsyncClient,
    ):
        self.max_urls = max_urls
        self.max_depth = max_depth
        self.client_factory = client_factory

    async def resolve(
        self,
        sitemap_url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout_ms: int = settings.SITEMAP_TIMEOUT_MS,
    ) -> List[str]:
        headers = {}
        if username and password:
            headers["Authorization"] = basic_auth_header(username, password)

        async with self.client_factory(
            timeout=timeout_ms / 1000,
            headers=headers,
            follow_redirects=True,
        ) as client:
            urls = await self._collect(client, sitemap_url, depth=0)

        urls = unique_in_order(urls)
        if self.max_urls is not None:
            urls = urls[:self.max_urls]

        logger.info(f"{len(urls)} pages discovered on sitemap {sitemap_url}")
        return urls

    async def _collect(self, client: httpx.AsyncClient, sitemap_url: str, depth: int) -> List[str]:
        content = await self._fetch(client, sitemap_url)
        pages, children = parse_sitemap(content)

        for child_url in children:
            if depth + 1 > self.max_depth:
                logger.warning(f"Sitemap nesting deeper than {self.max_depth} at {child_url}, skipping")
                continue
            try:
                pages.extend(await self._collect(client, child_url, depth + 1))
            except ResolutionError as e:
                # One broken child sitemap does not void the rest of the index
                logger.warning(f"Skipping child sitemap {child_url}: {e.message}")
        return pages

    async def _fetch(self, client: httpx.AsyncClient, sitemap_url: str) -> bytes:
        try:
            response = await client.get(sitemap_url)
        except httpx.TimeoutException as e:
            raise ResolutionError(f"Timed out fetching sitemap {sitemap_url}") from e
        except httpx.HTTPError as e:
            raise ResolutionError(f"Could not fetch sitemap {sitemap_url}: {e}") from e

        if response.status_code != 200:
            raise ResolutionError(
                f"Sitemap {sitemap_url} returned HTTP {response.status_code}"
            )
        return response.content
