"""Extract title, author and description from a parsed page."""

from __future__ import annotations

import logging
from typing import Any, Iterator

from attrs import frozen
from bs4 import BeautifulSoup, Tag

from ..json_utils import json_loads
from .utils import (
    HEADING_TAGS,
    normalize_whitespace,
    resolve_url,
    visible_text,
)

logger = logging.getLogger(__name__)

# JSON-LD types describing a piece of long-form content.
ARTICLE_LD_TYPES = frozenset(
    {
        "article",
        "newsarticle",
        "blogposting",
        "reportagenewsarticle",
        "analysisnewsarticle",
        "opinionnewsarticle",
        "scholarlyarticle",
        "techarticle",
        "socialmediaposting",
        "webpage",
    }
)


@frozen(slots=True)
class PageMetadata:
    """Metadata found in a page; every field is optional.

    Attributes:
        title: Best available page title.
        author: Author name or names.
        description: Summary of the page.
        site_name: Name of the publishing site.
        image_url: Absolute URL of the lead image.
        published_time: Publication timestamp as written in the page.
        canonical_url: Absolute canonical URL.
        language: Language code from the ``html`` element.
    """

    title: str | None = None
    author: str | None = None
    description: str | None = None
    site_name: str | None = None
    image_url: str | None = None
    published_time: str | None = None
    canonical_url: str | None = None
    language: str | None = None


def _clean(value: Any) -> str | None:  # noqa: ANN401
    """Return normalized text or ``None`` for empty values."""

    if not isinstance(value, str):
        return None
    text = normalize_whitespace(value)
    return text or None


def _meta(soup: BeautifulSoup, *keys: str) -> str | None:
    """Return the content of the first ``meta`` tag matching ``keys``.

    Each key is looked up as ``property``, ``name`` and ``itemprop`` because
    sites mix them for Open Graph and Twitter card tags.
    """

    for key in keys:
        for attr in ("property", "name", "itemprop"):
            tag = soup.find("meta", attrs={attr: key})
            if isinstance(tag, Tag):
                value = _clean(tag.get("content"))
                if value:
                    return value
    return None


def _iter_ld_objects(data: Any) -> Iterator[dict[str, Any]]:  # noqa: ANN401
    """Yield every JSON object contained in a JSON-LD payload."""

    if isinstance(data, list):
        for item in data:
            yield from _iter_ld_objects(item)
    elif isinstance(data, dict):
        yield data
        yield from _iter_ld_objects(data.get("@graph"))


def _ld_types(obj: dict[str, Any]) -> set[str]:
    raw = obj.get("@type")
    values = raw if isinstance(raw, list) else [raw]
    return {v.lower() for v in values if isinstance(v, str)}


def _json_ld(soup: BeautifulSoup) -> dict[str, Any]:
    """Return the first article-like JSON-LD object of the page.

    Args:
        soup: Parsed document.

    Returns:
        The JSON-LD object, or an empty dictionary when none is usable.
    """

    for script in soup.find_all("script", type="application/ld+json"):
        payload = script.string or script.get_text()
        if not payload or not payload.strip():
            continue

        try:
            data = json_loads(payload.strip())
        except ValueError as exc:
            # Broken structured data is common; the page itself is fine.
            logger.debug("Ignoring malformed JSON-LD: %s", exc)
            continue

        for obj in _iter_ld_objects(data):
            if _ld_types(obj) & ARTICLE_LD_TYPES:
                return obj

    return {}


def _ld_author(value: Any) -> str | None:  # noqa: ANN401
    """Flatten a JSON-LD ``author`` value into a display string."""

    if isinstance(value, str):
        return _clean(value)
    if isinstance(value, dict):
        return _clean(value.get("name"))
    if isinstance(value, list):
        names = [name for name in map(_ld_author, value) if name]
        return ", ".join(dict.fromkeys(names)) or None
    return None


def _heading_title(soup: BeautifulSoup) -> str | None:
    """Return the text of the largest, earliest heading of the page."""

    best: tuple[int, str] | None = None
    for heading in soup.find_all(list(HEADING_TAGS)):
        text = visible_text(heading)
        if not text:
            continue

        level = int(heading.name[1])
        if best is None or level < best[0]:
            best = (level, text)
            if level == 1:
                break

    return best[1] if best else None


def _extract_title(soup: BeautifulSoup, ld: dict[str, Any]) -> str | None:
    title = (
        _meta(soup, "og:title", "twitter:title", "title")
        or _clean(ld.get("headline"))
        or _clean(ld.get("name"))
    )
    if title:
        return title

    # Fall back to the document title, then to the page headings.
    if soup.title is not None:
        title = _clean(soup.title.get_text())
        if title:
            return title

    return _heading_title(soup)


def _extract_author(soup: BeautifulSoup, ld: dict[str, Any]) -> str | None:
    author = _meta(soup, "author")
    if author:
        return author

    # ``article:author`` is often a profile URL rather than a name.
    article_author = _meta(soup, "article:author")
    if article_author and not article_author.startswith(("http:", "https:")):
        return article_author

    author = _ld_author(ld.get("author")) or _meta(soup, "twitter:creator")
    if author:
        return author

    for selector in ('[rel~="author"]', '[itemprop="author"]'):
        tag = soup.select_one(selector)
        if tag is None:
            continue
        name_tag = tag.select_one('[itemprop="name"]') or tag
        author = _clean(name_tag.get("content")) or visible_text(name_tag)
        if author:
            return author

    return None


def _extract_published(
    soup: BeautifulSoup, ld: dict[str, Any]
) -> str | None:
    published = _meta(soup, "article:published_time", "datePublished")
    if published:
        return published

    published = _clean(ld.get("datePublished"))
    if published:
        return published

    time_tag = soup.find("time", attrs={"datetime": True})
    if isinstance(time_tag, Tag):
        return _clean(time_tag.get("datetime"))
    return None


def extract_metadata(
    soup: BeautifulSoup, base_url: str | None = None
) -> PageMetadata:
    """Extract page metadata from a parsed document.

    Args:
        soup: Parsed document; it is not modified.
        base_url: Absolute URL used to resolve image and canonical links.

    Returns:
        Metadata with ``None`` for every field that was not found.
    """

    ld = _json_ld(soup)

    description = (
        _meta(soup, "og:description", "description", "twitter:description")
        or _clean(ld.get("description"))
    )

    image_url = None
    canonical_url = None
    if base_url:
        image_url = resolve_url(
            base_url, _meta(soup, "og:image", "twitter:image", "image")
        )
        canonical = soup.find("link", rel="canonical")
        if isinstance(canonical, Tag):
            canonical_url = resolve_url(base_url, canonical.get("href"))

    html_tag = soup.find("html")
    language = (
        _clean(html_tag.get("lang")) if isinstance(html_tag, Tag) else None
    )

    metadata = PageMetadata(
        title=_extract_title(soup, ld),
        author=_extract_author(soup, ld),
        description=description,
        site_name=_meta(soup, "og:site_name", "application-name"),
        image_url=image_url,
        published_time=_extract_published(soup, ld),
        canonical_url=canonical_url,
        language=language,
    )
    logger.debug("Extracted metadata: %s", metadata)
    return metadata
