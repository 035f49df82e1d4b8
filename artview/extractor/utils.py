"""Utility functions for walking parsed documents."""

from __future__ import annotations

import re
from typing import Any, Callable, Iterator
from urllib.parse import urljoin, urlparse

from bs4 import NavigableString, Tag
from bs4.element import PreformattedString

# Elements whose content is never visible text.
INVISIBLE_TAGS = frozenset(
    {
        "script",
        "style",
        "noscript",
        "template",
        "iframe",
        "svg",
        "canvas",
        "object",
        "embed",
        "head",
    }
)

# Block-level elements; anything else is treated as inline content.
BLOCK_TAGS = frozenset(
    {
        "address",
        "article",
        "aside",
        "blockquote",
        "body",
        "dd",
        "details",
        "dialog",
        "div",
        "dl",
        "dt",
        "fieldset",
        "figcaption",
        "figure",
        "footer",
        "form",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "header",
        "hr",
        "li",
        "main",
        "nav",
        "ol",
        "p",
        "pre",
        "section",
        "summary",
        "table",
        "tbody",
        "td",
        "tfoot",
        "th",
        "thead",
        "tr",
        "ul",
    }
)

HEADING_TAGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})

# Attributes that may hold an image URL, most specific first.
IMAGE_SOURCE_ATTRS = ("src", "data-src", "data-original", "data-lazy-src")


def normalize_whitespace(text: str) -> str:
    """Collapse consecutive whitespace and tidy punctuation spacing."""

    cleaned = re.sub(r"\s+", " ", text).strip()
    return re.sub(r"\s+([,.;:!?\)])", r"\1", cleaned)


def is_text_node(node: Any) -> bool:  # noqa: ANN401
    """Return ``True`` for plain text nodes (not comments or doctypes)."""

    return isinstance(node, NavigableString) and not isinstance(
        node, PreformattedString
    )


def iter_text(
    node: Tag,
    skip: frozenset[str] = INVISIBLE_TAGS,
    exclude: Callable[[Tag], bool] | None = None,
) -> Iterator[str]:
    """Yield the text nodes below ``node`` in document order.

    Block-level boundaries and ``br`` elements are reported as a single
    space so that words from adjacent blocks never run together.

    Args:
        node: Element whose text is collected.
        skip: Tag names whose subtrees are ignored.
        exclude: Predicate selecting further subtrees to ignore.

    Yields:
        Raw strings of the visible text nodes.
    """

    # Walk with an explicit stack so deeply nested markup cannot exhaust the
    # interpreter's recursion limit.
    stack: list[tuple[Iterator[Any], bool]] = [(iter(node.children), False)]
    while stack:
        children, is_block = stack[-1]
        child = next(children, None)
        if child is None:
            stack.pop()
            if is_block:
                yield " "
            continue

        if isinstance(child, Tag):
            if child.name in skip:
                continue
            if exclude is not None and exclude(child):
                continue
            if child.name == "br":
                yield " "
                continue

            block = child.name in BLOCK_TAGS
            if block:
                yield " "
            stack.append((iter(child.children), block))
        elif is_text_node(child):
            yield str(child)


def visible_text(
    node: Tag,
    skip: frozenset[str] = INVISIBLE_TAGS,
    exclude: Callable[[Tag], bool] | None = None,
) -> str:
    """Return the normalized visible text of ``node``."""

    return normalize_whitespace("".join(iter_text(node, skip, exclude)))


def class_id_tokens(tag: Tag) -> list[str]:
    """Split the class and id attributes of ``tag`` into lowercase tokens."""

    classes = tag.get("class") or []
    if isinstance(classes, str):
        classes = [classes]

    element_id = tag.get("id") or ""
    raw = " ".join([*classes, str(element_id)]).lower()
    return [token for token in re.split(r"[^a-z0-9]+", raw) if token]


def has_block_children(tag: Tag) -> bool:
    """Return ``True`` when ``tag`` directly contains a block element."""

    return any(
        isinstance(child, Tag) and child.name in BLOCK_TAGS
        for child in tag.children
    )


def link_density(
    tag: Tag,
    text_length: int | None = None,
    exclude: Callable[[Tag], bool] | None = None,
) -> float:
    """Return the share of the visible text of ``tag`` inside links.

    Args:
        tag: Element to inspect.
        text_length: Precomputed visible text length of ``tag``.
        exclude: Predicate selecting subtrees whose text does not count.

    Returns:
        Value between ``0.0`` and ``1.0``; ``0.0`` for elements without text.
    """

    if text_length is None:
        text_length = len(visible_text(tag, exclude=exclude))
    if text_length == 0:
        return 0.0

    link_length = sum(
        len(visible_text(a, exclude=exclude))
        for a in tag.find_all("a")
        if exclude is None or not _inside_excluded(a, tag, exclude)
    )
    return min(link_length / text_length, 1.0)


def _inside_excluded(
    node: Tag, root: Tag, exclude: Callable[[Tag], bool]
) -> bool:
    """Return ``True`` when ``node`` or an ancestor below ``root`` matches."""

    current: Tag | None = node
    while current is not None and current is not root:
        if exclude(current):
            return True
        current = current.parent
    return False


def find_images(
    node: Tag, exclude: Callable[[Tag], bool] | None = None
) -> list[Tag]:
    """Return the ``img`` elements of ``node`` outside excluded subtrees."""

    if node.name == "img":
        return [node]
    images = node.find_all("img")
    if exclude is None:
        return images
    return [img for img in images if not _inside_excluded(img, node, exclude)]


def resolve_url(base_url: str, value: str | None) -> str | None:
    """Resolve ``value`` against ``base_url`` and keep only web URLs.

    Args:
        base_url: Absolute URL of the document.
        value: Possibly relative URL found in the document.

    Returns:
        Absolute ``http``/``https`` URL or ``None``.
    """

    if not value:
        return None

    value = value.strip()
    if not value or value.startswith(("data:", "javascript:", "#")):
        return None

    resolved = urljoin(base_url, value)
    parsed = urlparse(resolved)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return resolved


def image_source(tag: Tag) -> str | None:
    """Return the raw source of an ``img`` element, lazy-loading aware."""

    for attr in IMAGE_SOURCE_ATTRS:
        value = tag.get(attr)
        if isinstance(value, str) and value.strip():
            if attr == "src" and value.strip().startswith("data:"):
                # Placeholder pixel; the real source lives in a data-* attr.
                continue
            return value

    srcset = tag.get("srcset") or tag.get("data-srcset")
    if isinstance(srcset, str) and srcset.strip():
        first = srcset.split(",")[0].strip()
        return first.split()[0] if first else None

    return None
