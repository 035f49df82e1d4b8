"""Cheap article-ness verdict computed while a page is loaded."""

from __future__ import annotations

import logging
from typing import Any, Iterator

from attrs import frozen
from bs4 import BeautifulSoup, Tag

from .scoring import (
    CONTAINER_TAGS,
    DEFAULT_POLICY,
    SEMANTIC_TAGS,
    ScoringPolicy,
    is_paragraph_like,
)
from .utils import is_text_node, normalize_whitespace

logger = logging.getLogger(__name__)

# Number of container ancestors credited with a paragraph's text.
CREDITED_ANCESTORS = 3


@frozen(slots=True)
class Classification:
    """Figures behind the article-ness verdict.

    Attributes:
        is_article: Whether the page looks like readable long-form content.
        text_length: Visible characters outside boilerplate.
        tag_density: Elements per visible character.
        best_container_length: Paragraph text gathered by the richest
            container element.
    """

    is_article: bool
    text_length: int
    tag_density: float
    best_container_length: int


def is_container(tag: Tag) -> bool:
    """Return ``True`` for elements that may hold the article content."""

    return isinstance(tag, BeautifulSoup) or tag.name in CONTAINER_TAGS


def is_semantic_container(tag: Tag) -> bool:
    """Return ``True`` for elements explicitly marked as main content."""

    if tag.name in SEMANTIC_TAGS:
        return True
    if str(tag.get("role") or "").lower() == "main":
        return True
    return tag.get("itemprop") == "articleBody"


def container_ancestors(tag: Tag, limit: int) -> list[Tag]:
    """Return up to ``limit`` container ancestors of ``tag``, nearest first."""

    found: list[Tag] = []
    for parent in tag.parents:
        if is_container(parent):
            found.append(parent)
            if len(found) >= limit:
                break
    return found


def credited_containers(tag: Tag) -> list[Tag]:
    """Return the containers credited with the text of paragraph ``tag``.

    These are the nearest container ancestors plus every semantic container
    further up, so ``<main>`` and ``<article>`` gather all the prose they
    hold however deeply it is nested.
    """

    found = container_ancestors(tag, CREDITED_ANCESTORS)
    seen = {id(parent) for parent in found}
    for parent in tag.parents:
        if id(parent) not in seen and is_semantic_container(parent):
            found.append(parent)
    return found


def classify_document(
    soup: BeautifulSoup, policy: ScoringPolicy = DEFAULT_POLICY
) -> Classification:
    """Decide whether a parsed page is an article.

    The pass inspects structure only: it measures visible text, tag density
    and the paragraph text gathered by container elements, but does not
    build content blocks.

    Args:
        soup: Parsed document; it is not modified.
        policy: Thresholds and boilerplate rules.

    Returns:
        The verdict together with the figures it was based on.
    """

    root: Tag = soup.body if soup.body is not None else soup
    text_length = 0
    element_count = 0
    inspected = 0
    credited: dict[int, int] = {}

    stack: list[Iterator[Any]] = [iter(root.children)]
    while stack:
        child = next(stack[-1], None)
        if child is None:
            stack.pop()
            continue

        if not isinstance(child, Tag):
            if is_text_node(child):
                text_length += len(normalize_whitespace(str(child)))
            continue

        inspected += 1
        if inspected > policy.max_nodes:
            logger.debug("Node budget of %d exhausted", policy.max_nodes)
            break
        if policy.is_boilerplate(child):
            continue
        element_count += 1

        if is_paragraph_like(child):
            length = len(policy.text_of(child))
            # Runs of links are navigation, however long.
            if (
                length >= policy.min_paragraph_length
                and policy.link_density(child, length)
                <= policy.max_paragraph_link_density
            ):
                for parent in credited_containers(child):
                    key = id(parent)
                    credited[key] = credited.get(key, 0) + length

        stack.append(iter(child.children))

    best_container_length = max(credited.values(), default=0)
    tag_density = element_count / text_length if text_length else 1.0

    is_article = (
        text_length >= policy.min_text_length
        and best_container_length >= policy.min_text_length
        and tag_density <= policy.max_tag_density
    )

    logger.debug(
        "Classified page: article=%s text=%d density=%.3f container=%d",
        is_article,
        text_length,
        tag_density,
        best_container_length,
    )
    return Classification(
        is_article=is_article,
        text_length=text_length,
        tag_density=tag_density,
        best_container_length=best_container_length,
    )
