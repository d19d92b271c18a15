"""Shared helpers for external sources: HTTP calls, page text extraction, slugs, JSON files."""

import logging
import re
from pathlib import Path
from typing import Optional, Union

import orjson
import requests
from bs4 import BeautifulSoup
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    retry_if_not_exception_type,
)

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "PromoGapResearch/1.0 (editorial research bot)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

MAIN_SELECTORS = ("main", "article", "[role='main']", ".content", "#content")
NOISE_TAGS = ["nav", "header", "footer", "aside", "script", "style", "noscript", "form"]
NOISE_CLASSES = re.compile(r"cookie|banner|popup|modal|overlay|newsletter", re.I)
TEXT_TAGS = ["h1", "h2", "h3", "h4", "p", "li", "td"]

# Connection failures retry; timeouts never do (ConnectTimeout is also a ConnectionError).
RETRYABLE = (
    retry_if_exception_type(requests.ConnectionError)
    & retry_if_not_exception_type(requests.Timeout)
)


@retry(
    stop=stop_after_attempt(2),
    wait=wait_exponential(multiplier=1, min=1, max=5),
    retry=RETRYABLE,
    reraise=True,
)
def fetch_url(
    url: str,
    headers: Optional[dict] = None,
    timeout: float = 15,
) -> Optional[requests.Response]:
    """GET a page. Returns None for 404, raises for timeouts and other HTTP errors."""
    response = requests.get(
        url, headers={**DEFAULT_HEADERS, **(headers or {})}, timeout=timeout,
    )
    if response.status_code == 404:
        logger.warning("Page not found: %s", url)
        return None
    response.raise_for_status()
    return response


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=RETRYABLE,
    reraise=True,
)
def post_json(url: str, payload: dict, api_key: str, timeout: float = 60) -> dict:
    """POST a JSON body with bearer auth and return the decoded response."""
    response = requests.post(
        url,
        json=payload,
        headers={
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        },
        timeout=timeout,
    )
    response.raise_for_status()
    return response.json()


def extract_content(html: str) -> str:
    """Reduce an HTML page to its main text, markdown-style.

    Headings become ``#`` lines and list items ``-`` lines; site chrome and
    cookie/newsletter overlays are dropped.
    """
    soup = BeautifulSoup(html, "lxml")
    area = next((el for el in map(soup.select_one, MAIN_SELECTORS) if el), None) or soup.body
    if area is None:
        return ""

    for tag in area.find_all(NOISE_TAGS):
        tag.decompose()
    for tag in area.find_all(class_=NOISE_CLASSES):
        tag.decompose()

    lines = []
    for element in area.find_all(TEXT_TAGS):
        text = element.get_text(" ", strip=True)
        if not text:
            continue
        if element.name[0] == "h":
            lines.append("#" * int(element.name[1]) + " " + text)
        elif element.name == "li":
            lines.append("- " + text)
        else:
            lines.append(text)

    return "\n\n".join(lines) if lines else area.get_text("\n", strip=True)


def slugify(name: str) -> str:
    """URL slug for a retailer name: "Dick's Sporting Goods" -> "dick-s-sporting-goods"."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def save_json(data, filepath: Union[str, Path]) -> Path:
    """Write JSON-serialisable data (pydantic models dumped first) with indent 2."""
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2))
    logger.info("Saved %s", path)
    return path


def load_json(filepath: Union[str, Path]):
    """Load a JSON file. Raises FileNotFoundError if it does not exist."""
    path = Path(filepath)
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    return orjson.loads(path.read_bytes())
