"""Tunable scoring policy for article classification and extraction.

All keyword weights and thresholds live in ``ScoringPolicy`` so that the
heuristics can be adjusted and tested without touching the traversal code.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from attrs import define, field
from bs4 import Tag

from .utils import (
    INVISIBLE_TAGS,
    class_id_tokens,
    has_block_children,
    link_density,
    visible_text,
)

# Keyword -> weight pairs matched against class and id tokens.
DEFAULT_KEYWORD_WEIGHTS: Mapping[str, int] = MappingProxyType(
    {
        # Positive hints.
        "article": 25,
        "content": 25,
        "body": 20,
        "main": 20,
        "entry": 15,
        "hentry": 15,
        "post": 15,
        "story": 15,
        "text": 10,
        "blog": 10,
        "prose": 10,
        # Negative hints.
        "comment": -25,
        "sidebar": -25,
        "footer": -25,
        "nav": -25,
        "navbar": -25,
        "navigation": -25,
        "ad": -25,
        "ads": -25,
        "advert": -25,
        "sponsor": -25,
        "outbrain": -25,
        "taboola": -25,
        "cookie": -25,
        "promo": -20,
        "related": -20,
        "share": -20,
        "social": -20,
        "menu": -20,
        "newsletter": -20,
        "subscribe": -20,
        "breadcrumb": -20,
        "masthead": -20,
        "popup": -20,
        "modal": -20,
        "widget": -15,
        "banner": -15,
        "pagination": -15,
    }
)

# Elements that never hold article content.
BOILERPLATE_TAGS = INVISIBLE_TAGS | frozenset(
    {
        "form",
        "button",
        "input",
        "select",
        "textarea",
        "nav",
        "footer",
        "aside",
    }
)

# Elements that may be chosen as the content root.
CONTAINER_TAGS = frozenset({"article", "main", "section", "div", "body", "td"})

# Elements that hold a paragraph of prose on their own.
PARAGRAPH_TAGS = frozenset({"p", "pre", "blockquote"})

# Containers that hold prose directly when they have no block children.
LEAF_CONTAINER_TAGS = frozenset({"div", "section", "article", "main"})

# Elements that mark an article explicitly.
SEMANTIC_TAGS = frozenset({"article", "main"})


def _freeze(weights: Mapping[str, int]) -> Mapping[str, int]:
    return MappingProxyType({k.lower(): v for k, v in weights.items()})


@define(frozen=True, slots=True)
class ScoringPolicy:
    """Weights and thresholds used to score candidate elements.

    Attributes:
        keyword_weights: Class/id keyword to weight table.
        prefix_match_length: Keywords at least this long also match tokens
            that start with them.
        boilerplate_weight: Elements whose class/id weight is at or below
            this value are boilerplate.
        tag_bonuses: Bonus added to candidates by tag name.
        role_bonus: Bonus for ``role="main"`` or ``role="article"``.
        paragraph_point: Points for each qualifying paragraph child.
        chars_per_bucket: Characters of text per extra point.
        max_buckets: Maximum number of length points per paragraph.
        parent_fraction: Share of content points given to the parent.
        grandparent_fraction: Share of content points given to the
            grandparent.
        min_paragraph_length: Minimum text length of a paragraph block.
        min_text_length: Minimum visible text length of an article.
        max_tag_density: Maximum elements per character of an article.
        max_list_link_density: Lists with more linked text are navigation.
        max_paragraph_link_density: Paragraphs with more linked text do not
            make a page an article.
        max_nodes: Maximum number of elements inspected per pass.
    """

    keyword_weights: Mapping[str, int] = field(
        default=DEFAULT_KEYWORD_WEIGHTS, converter=_freeze
    )
    prefix_match_length: int = 4
    boilerplate_weight: int = -25
    tag_bonuses: Mapping[str, int] = field(
        default=MappingProxyType({"article": 10, "main": 10}),
        converter=_freeze,
    )
    role_bonus: int = 15
    paragraph_point: float = 1.0
    chars_per_bucket: int = 100
    max_buckets: int = 3
    parent_fraction: float = 0.5
    grandparent_fraction: float = 0.25
    min_paragraph_length: int = 25
    min_text_length: int = 200
    max_tag_density: float = 0.25
    max_list_link_density: float = 0.5
    max_paragraph_link_density: float = 0.5
    max_nodes: int = 20000

    def _matches(self, keyword: str, token: str) -> bool:
        if token == keyword:
            return True
        return len(keyword) >= self.prefix_match_length and token.startswith(
            keyword
        )

    def class_weight(self, tag: Tag) -> int:
        """Return the class/id weight of ``tag``.

        Each keyword counts at most once per element, however many tokens it
        matches.
        """

        tokens = class_id_tokens(tag)
        return sum(
            weight
            for keyword, weight in self.keyword_weights.items()
            if any(self._matches(keyword, token) for token in tokens)
        )

    def tag_bonus(self, tag: Tag) -> int:
        """Return the bonus granted to ``tag`` for its name and role."""

        bonus = self.tag_bonuses.get(tag.name or "", 0)
        role = str(tag.get("role") or "").lower()
        if role in ("main", "article"):
            bonus += self.role_bonus
        return bonus

    def is_boilerplate(self, tag: Tag) -> bool:
        """Return ``True`` when ``tag`` and its subtree should be ignored."""

        if tag.name in BOILERPLATE_TAGS:
            return True
        if tag.get("hidden") is not None or tag.get("aria-hidden") == "true":
            return True
        return self.class_weight(tag) <= self.boilerplate_weight

    def text_of(self, tag: Tag) -> str:
        """Return the visible text of ``tag`` without nested boilerplate."""

        return visible_text(tag, exclude=self.is_boilerplate)

    def link_density(self, tag: Tag, text_length: int | None = None) -> float:
        """Return the link density of ``tag`` without nested boilerplate."""

        return link_density(tag, text_length, exclude=self.is_boilerplate)

    def content_points(self, text_length: int) -> float:
        """Return the points earned by a paragraph with ``text_length``."""

        buckets = min(text_length // self.chars_per_bucket, self.max_buckets)
        return self.paragraph_point + buckets


DEFAULT_POLICY = ScoringPolicy()


def is_paragraph_like(tag: Tag) -> bool:
    """Return ``True`` when ``tag`` holds one paragraph of prose.

    Paragraphs, quotes and containers qualify only when they have no
    block-level children of their own, so nested markup is counted once.
    """

    if tag.name in PARAGRAPH_TAGS or tag.name in LEAF_CONTAINER_TAGS:
        return not has_block_children(tag)
    return False
