"""Heuristic recipe-page scraper.

Each field is filled by an ordered list of strategies, most specific first;
the first strategy yielding at least one usable value wins and later
strategies are never merged in.  schema.org ``Recipe`` JSON-LD is always tried
first, then CSS selectors common to WordPress recipe plugins and blogs.

``PageExtractor.extract`` never raises: network errors, non-2xx responses and
unparseable pages all yield ``None``.  Only connection errors, timeouts and
429/5xx answers are retried; other HTTP errors fail on the first attempt.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable, Optional
from urllib.parse import urljoin, urlparse

import requests
from bs4 import BeautifulSoup

from .config import env_or_config, require_float, require_int
from .models import ExtractedImage, ExtractedPageData
from .resilience import retry_with_backoff
from .title_normalizer import standardize_title

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; RecipeBot/1.0)"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_ATTEMPTS = 2
DEFAULT_RETRY_BASE_SECONDS = 0.5
_TRANSIENT_STATUS = frozenset({429, 500, 502, 503, 504})

TITLE_SELECTORS = ("h1.recipe-title", 'h1[class*="recipe"]', ".entry-title", "h1.post-title", "h1", "title")
INGREDIENT_SELECTORS = (
    ".recipe-ingredient",
    ".ingredients li",
    '[class*="ingredient"] li',
    ".recipe-ingredients li",
)
INSTRUCTION_SELECTORS = (
    ".recipe-instruction",
    ".instructions li",
    ".directions li",
    '[class*="instruction"] li',
)
DESCRIPTION_SELECTORS = (".recipe-description", ".recipe-summary", ".entry-content p", ".post-content p")
PRIORITY_IMAGE_SELECTORS = (
    ".recipe-image img",
    ".post-thumbnail img",
    ".featured-image img",
    ".recipe-card img",
    'img[class*="recipe"]',
    ".wp-block-image img",
    ".entry-content img",
)
IMAGE_SOURCE_ATTRS = ("src", "data-src", "data-lazy-src")

MIN_TITLE_LENGTH = 4
MIN_LINE_LENGTH = 2
MAX_INGREDIENT_LENGTH = 200
MAX_INSTRUCTION_LENGTH = 2000
MIN_DESCRIPTION_LENGTH = 51
MAX_DESCRIPTION_LENGTH = 300
MIN_IMAGE_CANDIDATES = 5

_IMAGE_EXTENSION_RE = re.compile(r"\.(jpg|jpeg|png|gif|webp|svg)(\?|$)", re.IGNORECASE)
_IMAGE_HOSTS = ("amazonaws.com", "cloudfront.net", "wp.com", "squarespace.com", "wixstatic.com", "imgbb.com")
_SKIP_IMAGE_WORDS = ("logo", "avatar", "profile", "icon")
_WHITESPACE_RE = re.compile(r"\s+")


def _clean(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def _to_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    match = re.match(r"\s*(\d+)", str(value))
    return int(match.group(1)) if match else None


# ---------------------------------------------------------------------------
# JSON-LD
# ---------------------------------------------------------------------------

def _find_recipe_in_jsonld(data: Any) -> Optional[dict[str, Any]]:
    """Locate a schema.org Recipe in a JSON-LD document, ``@graph`` or list."""
    if isinstance(data, dict):
        schema_type = data.get("@type", "")
        if isinstance(schema_type, list):
            schema_type = " ".join(str(item) for item in schema_type)
        if "Recipe" in str(schema_type):
            return data
        graph = data.get("@graph")
        if isinstance(graph, list):
            for item in graph:
                found = _find_recipe_in_jsonld(item)
                if found:
                    return found
    elif isinstance(data, list):
        for item in data:
            found = _find_recipe_in_jsonld(item)
            if found:
                return found
    return None


def find_jsonld_recipe(soup: BeautifulSoup) -> Optional[dict[str, Any]]:
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text() or ""
        try:
            data = json.loads(raw.strip())
        except (json.JSONDecodeError, ValueError):
            continue
        found = _find_recipe_in_jsonld(data)
        if found:
            return found
    return None


def _jsonld_text_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, dict):
        # HowToSection nests steps in itemListElement.
        if "itemListElement" in value:
            return _jsonld_text_list(value.get("itemListElement"))
        for key in ("text", "name", "description"):
            text = value.get(key)
            if isinstance(text, str) and text.strip():
                return [text]
        return []
    if isinstance(value, list):
        items: list[str] = []
        for entry in value:
            items.extend(_jsonld_text_list(entry))
        return items
    return [str(value)]


def _jsonld_image_urls(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, dict):
        url = value.get("url") or value.get("contentUrl")
        return [url] if isinstance(url, str) else []
    if isinstance(value, list):
        urls: list[str] = []
        for entry in value:
            urls.extend(_jsonld_image_urls(entry))
        return urls
    return []


# ---------------------------------------------------------------------------
# Field strategies
# ---------------------------------------------------------------------------

def _bounded_lines(texts: Iterable[str], max_length: int) -> list[str]:
    lines = []
    for text in texts:
        cleaned = _clean(text)
        if MIN_LINE_LENGTH <= len(cleaned) <= max_length:
            lines.append(cleaned)
    return lines


def _first_selector_lines(soup: BeautifulSoup, selectors: Iterable[str], max_length: int) -> list[str]:
    for selector in selectors:
        lines = _bounded_lines((el.get_text(" ") for el in soup.select(selector)), max_length)
        if lines:
            return lines
    return []


def extract_title(soup: BeautifulSoup, recipe_ld: Optional[dict[str, Any]] = None) -> Optional[str]:
    candidates: list[str] = []
    if recipe_ld and isinstance(recipe_ld.get("name"), str):
        candidates.append(recipe_ld["name"])
    for selector in TITLE_SELECTORS:
        element = soup.select_one(selector)
        if element is not None:
            candidates.append(element.get_text(" "))
    for candidate in candidates:
        title = _clean(candidate)
        if len(title) >= MIN_TITLE_LENGTH:
            return standardize_title(title) or None
    return None


def extract_ingredients(soup: BeautifulSoup, recipe_ld: Optional[dict[str, Any]] = None) -> list[str]:
    if recipe_ld:
        lines = _bounded_lines(_jsonld_text_list(recipe_ld.get("recipeIngredient")), MAX_INGREDIENT_LENGTH)
        if lines:
            return lines
    return _first_selector_lines(soup, INGREDIENT_SELECTORS, MAX_INGREDIENT_LENGTH)


def extract_instructions(soup: BeautifulSoup, recipe_ld: Optional[dict[str, Any]] = None) -> list[str]:
    if recipe_ld:
        lines = _bounded_lines(_jsonld_text_list(recipe_ld.get("recipeInstructions")), MAX_INSTRUCTION_LENGTH)
        if lines:
            return lines
    return _first_selector_lines(soup, INSTRUCTION_SELECTORS, MAX_INSTRUCTION_LENGTH)


def _truncate_description(text: str) -> str:
    if len(text) > MAX_DESCRIPTION_LENGTH:
        return text[:MAX_DESCRIPTION_LENGTH] + "..."
    return text


def extract_description(soup: BeautifulSoup, recipe_ld: Optional[dict[str, Any]] = None) -> Optional[str]:
    candidates: list[str] = []
    if recipe_ld and isinstance(recipe_ld.get("description"), str):
        candidates.append(recipe_ld["description"])
    for selector in DESCRIPTION_SELECTORS:
        element = soup.select_one(selector)
        if element is not None:
            candidates.append(element.get_text(" "))
    for candidate in candidates:
        text = _clean(candidate)
        if len(text) >= MIN_DESCRIPTION_LENGTH:
            return _truncate_description(text)
    return None


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

def resolve_image_url(raw: Optional[str], page_url: str) -> Optional[str]:
    """Absolute http(s) URL for *raw* if it looks like an image, else ``None``."""
    if not raw:
        return None
    raw = raw.strip()
    if not raw or raw.startswith("data:"):
        return None
    absolute = urljoin(page_url, raw) if page_url else raw
    parsed = urlparse(absolute)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    host = parsed.netloc.lower()
    if _IMAGE_EXTENSION_RE.search(parsed.path + ("?" if parsed.query else "")):
        return absolute
    if any(host == domain or host.endswith("." + domain) for domain in _IMAGE_HOSTS):
        return absolute
    return None


def _image_source(tag: Any) -> Optional[str]:
    for attr in IMAGE_SOURCE_ATTRS:
        value = tag.get(attr)
        if value:
            return str(value)
    return None


def _looks_decorative(url: str, alt: str) -> bool:
    haystack = f"{url} {alt}".lower()
    return any(word in haystack for word in _SKIP_IMAGE_WORDS)


def _image_from_tag(tag: Any, page_url: str, source: str) -> Optional[ExtractedImage]:
    url = resolve_image_url(_image_source(tag), page_url)
    if url is None:
        return None
    return ExtractedImage(
        url=url,
        alt=_clean(str(tag.get("alt") or "")),
        width=_to_int(tag.get("width")),
        height=_to_int(tag.get("height")),
        source=source,
    )


def extract_images(
    soup: BeautifulSoup,
    page_url: str,
    recipe_ld: Optional[dict[str, Any]] = None,
) -> list[ExtractedImage]:
    """Candidate images, priority ones first, then largest pixel area first."""
    found: list[ExtractedImage] = []
    seen: set[str] = set()

    def add(image: Optional[ExtractedImage]) -> None:
        if image is not None and image.url not in seen:
            seen.add(image.url)
            found.append(image)

    if recipe_ld:
        for raw in _jsonld_image_urls(recipe_ld.get("image")):
            url = resolve_image_url(raw, page_url)
            if url:
                add(ExtractedImage(url=url, source="priority"))

    for selector in PRIORITY_IMAGE_SELECTORS:
        for tag in soup.select(selector):
            add(_image_from_tag(tag, page_url, "priority"))

    if len(found) < MIN_IMAGE_CANDIDATES:
        for tag in soup.find_all("img"):
            image = _image_from_tag(tag, page_url, "general")
            if image is None or _looks_decorative(image.url, image.alt):
                continue
            add(image)

    # sorted() is stable, so document order breaks ties.
    return sorted(found, key=lambda image: (image.source != "priority", -image.area))


def parse_page(html: str, url: str) -> ExtractedPageData:
    """Run every field strategy over *html* fetched from *url*."""
    soup = BeautifulSoup(html, "html.parser")
    recipe_ld = find_jsonld_recipe(soup)
    return ExtractedPageData(
        url=url,
        title=extract_title(soup, recipe_ld),
        ingredients=extract_ingredients(soup, recipe_ld),
        instructions=extract_instructions(soup, recipe_ld),
        description=extract_description(soup, recipe_ld),
        images=extract_images(soup, url, recipe_ld),
    )


class TransientHTTPError(requests.HTTPError):
    """A 429 or 5xx answer that is worth asking for again."""


class PageExtractor:
    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        attempts: int = DEFAULT_ATTEMPTS,
        retry_base_seconds: float = DEFAULT_RETRY_BASE_SECONDS,
    ):
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)
        if timeout is None:
            timeout = env_or_config(
                "PAGE_TIMEOUT_SECONDS", "enrichment.page_timeout_seconds", DEFAULT_TIMEOUT_SECONDS,
                lambda v: require_float(v, "PAGE_TIMEOUT_SECONDS"),
            )
        self.timeout = float(timeout)
        self.attempts = require_int(attempts, "attempts")
        self.retry_base_seconds = float(retry_base_seconds)

    def _fetch(self, url: str) -> requests.Response:
        response = self.session.get(url, headers={"User-Agent": USER_AGENT}, timeout=self.timeout)
        if response.status_code in _TRANSIENT_STATUS:
            raise TransientHTTPError(f"{response.status_code} from {url}", response=response)
        response.raise_for_status()
        return response

    def extract(self, url: Optional[str]) -> Optional[ExtractedPageData]:
        if not url or not str(url).strip():
            return None
        url = str(url).strip()
        try:
            response = retry_with_backoff(
                lambda: self._fetch(url),
                attempts=self.attempts,
                base_delay=self.retry_base_seconds,
                retry_on=(requests.ConnectionError, requests.Timeout, TransientHTTPError),
            )
        except requests.RequestException as exc:
            logger.info("Failed to fetch %s: %s", url, exc)
            return None
        try:
            return parse_page(response.text, url)
        except Exception as exc:
            logger.warning("Failed to parse %s: %s", url, exc)
            return None


def is_valid_image_url(url: str) -> bool:
    """http(s) URL with a plausible hostname."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and len(parsed.hostname or "") >= 3


def probe_image_url(url: str, session: Optional[requests.Session] = None, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> bool:
    """True when *url* answers like an image.

    A successful HEAD is accepted even without a content type, since some
    hosts omit it; a failed HEAD falls back to a ranged GET that must return
    an ``image/`` content type.
    """
    session = session or requests.Session()
    headers = {"User-Agent": USER_AGENT}
    try:
        head = session.head(url, headers=headers, timeout=timeout, allow_redirects=True)
        if head.ok:
            return True
        ranged = session.get(url, headers={**headers, "Range": "bytes=0-1023"}, timeout=timeout, stream=True)
        try:
            if not ranged.ok:
                return False
            return ranged.headers.get("Content-Type", "").lower().startswith("image/")
        finally:
            ranged.close()
    except requests.RequestException as exc:
        logger.info("Image URL check failed for %s: %s", url, exc)
        return False
