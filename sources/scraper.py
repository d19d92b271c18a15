"""Page scraping: Firecrawl when configured, plain HTTP + BeautifulSoup otherwise.

Every scrape is bounded by its own timeout. A failed or near-empty scrape is
returned with ``ok=False`` rather than raised.
"""

import logging
import os
import time
from dataclasses import dataclass
from typing import Optional

import requests

from sources.utils import extract_content, fetch_url, slugify

logger = logging.getLogger(__name__)

FIRECRAWL_URL = "https://api.firecrawl.dev/v1/scrape"
MIN_OK_CHARS = 50


@dataclass
class ScrapeResult:
    content: str
    ok: bool
    elapsed_ms: int = 0
    error: Optional[str] = None


@dataclass
class ExistingPage:
    content: str
    url: str
    error: Optional[str] = None


class PageScraper:
    """Fetches rendered page text as markdown-ish plain text."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 15.0,
        cost_per_call: float = 0.001,
    ):
        self.api_key = api_key if api_key is not None else os.getenv("FIRECRAWL_API_KEY")
        self.timeout = timeout
        self.cost_per_call = cost_per_call

    def scrape(self, url: str) -> ScrapeResult:
        """Scrape a URL. Never raises."""
        start = time.time()
        try:
            if self.api_key:
                content = self._scrape_firecrawl(url)
            else:
                content = self._scrape_direct(url)
        except requests.Timeout:
            logger.warning("Scrape timed out after %.0fs: %s", self.timeout, url)
            return ScrapeResult(
                content="", ok=False,
                elapsed_ms=int((time.time() - start) * 1000),
                error="timeout",
            )
        except Exception as e:
            logger.warning("Scrape failed for %s: %s", url, e)
            return ScrapeResult(
                content="", ok=False,
                elapsed_ms=int((time.time() - start) * 1000),
                error=str(e),
            )

        return ScrapeResult(
            content=content,
            ok=len(content) > MIN_OK_CHARS,
            elapsed_ms=int((time.time() - start) * 1000),
        )

    def _scrape_firecrawl(self, url: str) -> str:
        response = requests.post(
            FIRECRAWL_URL,
            json={
                "url": url,
                "formats": ["markdown"],
                "onlyMainContent": True,
                "timeout": int(self.timeout * 1000 * 2 / 3),
            },
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = response.json()
        return (data.get("data") or {}).get("markdown") or ""

    def _scrape_direct(self, url: str) -> str:
        response = fetch_url(url, timeout=self.timeout)
        if response is None:
            return ""
        return extract_content(response.text)

    def fetch_existing_page(
        self, retailer: str, site: str, max_chars: int = 3000
    ) -> ExistingPage:
        """Fetch the site's current coupon page for a retailer.

        Tries /coupon-codes/<slug> first, then /coupons/<slug>.
        """
        slug = slugify(retailer)
        url = f"https://www.{site}/coupon-codes/{slug}"
        result = self.scrape(url)
        if result.ok:
            return ExistingPage(content=result.content[:max_chars], url=url)

        alt_url = f"https://www.{site}/coupons/{slug}"
        alt = self.scrape(alt_url)
        if alt.ok:
            return ExistingPage(content=alt.content[:max_chars], url=alt_url)

        return ExistingPage(content="", url=url, error="Could not fetch existing page")
