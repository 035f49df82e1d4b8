"""Select the main content of a page and turn it into content blocks."""

from __future__ import annotations

import logging
from typing import Any, Iterator

from attrs import define, field
from bs4 import BeautifulSoup, NavigableString, Tag

from .classify import container_ancestors
from .content_block import BlockKind, ContentBlock
from .scoring import DEFAULT_POLICY, ScoringPolicy, is_paragraph_like
from .types import BlockList
from .utils import (
    BLOCK_TAGS,
    HEADING_TAGS,
    find_images,
    image_source,
    is_text_node,
    iter_text,
    normalize_whitespace,
    resolve_url,
)

logger = logging.getLogger(__name__)

# Container ancestors receiving propagated points: the candidate itself,
# its parent and its grandparent.
SCORED_ANCESTORS = 3


@define(slots=True)
class Candidate:
    """Element considered as the root of the article content.

    Attributes:
        element: The candidate element.
        order: Position of the element in document order.
        score: Accumulated score.
    """

    element: Tag = field(eq=False)
    order: int
    score: float = 0.0


def score_candidates(
    soup: BeautifulSoup, policy: ScoringPolicy = DEFAULT_POLICY
) -> list[Candidate]:
    """Score every container holding paragraphs of text.

    Each paragraph-like element with enough text earns content points for
    its nearest container; the parent and grandparent containers receive a
    fraction of the same points. Candidates start with their tag bonus and
    class/id weight and are finally scaled down by their link density.

    Args:
        soup: Parsed document; it is not modified.
        policy: Weights and thresholds.

    Returns:
        Candidates in document order.
    """

    fractions = (1.0, policy.parent_fraction, policy.grandparent_fraction)
    order: dict[int, int] = {id(soup): 0}
    candidates: dict[int, Candidate] = {}
    inspected = 0

    stack: list[Iterator[Any]] = [iter(soup.children)]
    while stack:
        child = next(stack[-1], None)
        if child is None:
            stack.pop()
            continue
        if not isinstance(child, Tag):
            continue

        inspected += 1
        if inspected > policy.max_nodes:
            logger.debug("Node budget of %d exhausted", policy.max_nodes)
            break
        if policy.is_boilerplate(child):
            continue
        order[id(child)] = inspected

        if is_paragraph_like(child):
            length = len(policy.text_of(child))
            if length >= policy.min_paragraph_length:
                points = policy.content_points(length)
                ancestors = container_ancestors(child, SCORED_ANCESTORS)
                for ancestor, fraction in zip(ancestors, fractions):
                    candidate = candidates.get(id(ancestor))
                    if candidate is None:
                        candidate = Candidate(
                            element=ancestor,
                            order=order.get(id(ancestor), 0),
                            score=float(
                                policy.tag_bonus(ancestor)
                                + policy.class_weight(ancestor)
                            ),
                        )
                        candidates[id(ancestor)] = candidate
                    candidate.score += points * fraction

        stack.append(iter(child.children))

    # Penalize candidates made mostly of links.
    for candidate in candidates.values():
        candidate.score *= 1.0 - policy.link_density(candidate.element)

    return sorted(candidates.values(), key=lambda c: c.order)


def select_candidate(candidates: list[Candidate]) -> Candidate | None:
    """Return the best scoring candidate.

    Ties go to the candidate that comes first in document order. Candidates
    without a positive score are never selected.

    Args:
        candidates: Candidates in document order.

    Returns:
        The winning candidate or ``None``.
    """

    best: Candidate | None = None
    for candidate in candidates:
        if best is None or candidate.score > best.score:
            best = candidate

    if best is None or best.score <= 0:
        return None
    return best


def find_content_root(
    soup: BeautifulSoup, policy: ScoringPolicy = DEFAULT_POLICY
) -> Tag | None:
    """Return the element most likely to hold the article content."""

    best = select_candidate(score_candidates(soup, policy))
    if best is None:
        return None

    logger.debug(
        "Selected <%s class=%s id=%s> with score %.2f",
        best.element.name,
        best.element.get("class"),
        best.element.get("id"),
        best.score,
    )
    return best.element


@define(slots=True)
class _Frame:
    """Container being linearized and its pending inline content."""

    children: Iterator[Any]
    inline: list[Any] = field(factory=list)


class _Linearizer:
    """Walks a content root in document order and emits blocks."""

    def __init__(self, base_url: str, policy: ScoringPolicy) -> None:
        self.base_url = base_url
        self.policy = policy
        self.blocks: BlockList = []

    def run(self, root: Tag) -> BlockList:
        inspected = 0
        frames = [_Frame(iter(root.children))]

        while frames:
            frame = frames[-1]
            child = next(frame.children, None)
            if child is None:
                self._flush(frame)
                frames.pop()
                continue

            if not isinstance(child, Tag):
                if is_text_node(child):
                    frame.inline.append(child)
                continue

            inspected += 1
            if inspected > self.policy.max_nodes:
                logger.debug("Node budget exhausted while linearizing")
                break
            if self.policy.is_boilerplate(child):
                continue

            # Inline content accumulates until the next block boundary.
            if not self._is_block(child):
                if child.name == "br" and self._ends_with_break(frame):
                    self._flush(frame)
                    continue
                frame.inline.append(child)
                continue

            self._flush(frame)
            if not self._emit_block(child):
                frames.append(_Frame(iter(child.children)))

        # Emit what is pending when the node budget stopped the walk.
        for frame in reversed(frames):
            self._flush(frame)

        return self.blocks

    def _is_block(self, tag: Tag) -> bool:
        if tag.name in BLOCK_TAGS:
            return True
        # Inline elements wrapping blocks, e.g. ``<a><div>..</div></a>``.
        return any(
            isinstance(d, Tag) and d.name in BLOCK_TAGS
            for d in tag.descendants
        )

    @staticmethod
    def _ends_with_break(frame: _Frame) -> bool:
        """Return ``True`` when the pending run ends with a ``br``."""

        for node in reversed(frame.inline):
            if isinstance(node, NavigableString) and not node.strip():
                continue
            return isinstance(node, Tag) and node.name == "br"
        return False

    def _emit_block(self, tag: Tag) -> bool:
        """Emit the block for ``tag``.

        Returns:
            ``True`` when ``tag`` was fully handled, ``False`` when its
            children still need to be walked.
        """

        name = tag.name

        if name in HEADING_TAGS:
            text = self.policy.text_of(tag)
            if text:
                self.blocks.append(ContentBlock.heading(text, int(name[1])))
            return True

        if name == "pre":
            text = "".join(
                iter_text(tag, exclude=self.policy.is_boilerplate)
            ).strip("\n")
            if text.strip():
                self.blocks.append(ContentBlock(BlockKind.CODE, text))
            return True

        if name == "blockquote":
            text = self.policy.text_of(tag)
            if text:
                self.blocks.append(ContentBlock(BlockKind.QUOTE, text))
            return True

        if name in ("ul", "ol"):
            self._emit_list(tag)
            return True

        if name == "figcaption":
            text = self.policy.text_of(tag)
            if text:
                self.blocks.append(ContentBlock(BlockKind.CAPTION, text))
            return True

        if name == "hr":
            return True

        # Paragraphs and other containers are walked like the root.
        return False

    def _emit_list(self, tag: Tag) -> None:
        items_tags = tag.find_all("li", recursive=False) or tag.find_all("li")
        items_tags = [
            li for li in items_tags if not self.policy.is_boilerplate(li)
        ]
        items = [self.policy.text_of(li) for li in items_tags]
        items = [item for item in items if item]
        if not items:
            return

        text = "\n".join(items)
        density = self.policy.link_density(tag)
        if density > self.policy.max_list_link_density:
            logger.debug("Skipping link list with density %.2f", density)
            return

        self.blocks.append(
            ContentBlock(
                BlockKind.LIST,
                text,
                {
                    "ordered": "true" if tag.name == "ol" else "false",
                    "items": str(len(items)),
                },
            )
        )

    def _flush(self, frame: _Frame) -> None:
        """Turn the pending inline run of ``frame`` into blocks."""

        if not frame.inline:
            return

        parts: list[str] = []
        images: list[Tag] = []
        for node in frame.inline:
            if isinstance(node, Tag):
                if node.name == "br":
                    parts.append(" ")
                    continue
                exclude = self.policy.is_boilerplate
                images.extend(find_images(node, exclude))
                parts.extend(iter_text(node, exclude=exclude))
            else:
                parts.append(str(node))
        frame.inline = []

        text = normalize_whitespace("".join(parts))
        if len(text) >= self.policy.min_paragraph_length:
            self.blocks.append(ContentBlock.paragraph(text))

        for image in images:
            self._emit_image(image)

    def _emit_image(self, tag: Tag) -> None:
        if self.policy.is_boilerplate(tag):
            return

        # Tracking pixels declare a size of one pixel or less.
        for attr in ("width", "height"):
            value = str(tag.get(attr) or "").strip().removesuffix("px")
            if value.isdigit() and int(value) <= 1:
                return

        src = resolve_url(self.base_url, image_source(tag))
        if src is None:
            return

        alt = normalize_whitespace(str(tag.get("alt") or ""))
        title = normalize_whitespace(str(tag.get("title") or ""))
        self.blocks.append(ContentBlock.image(src, alt, title))


def linearize(
    root: Tag, base_url: str, policy: ScoringPolicy = DEFAULT_POLICY
) -> BlockList:
    """Convert the subtree under ``root`` into content blocks.

    Args:
        root: Content root selected by ``find_content_root``.
        base_url: Absolute URL used to resolve image sources.
        policy: Boilerplate rules and thresholds.

    Returns:
        Blocks in document order.
    """

    return _Linearizer(base_url, policy).run(root)


def extract_blocks(
    soup: BeautifulSoup, base_url: str, policy: ScoringPolicy = DEFAULT_POLICY
) -> BlockList:
    """Extract the article content of a parsed page.

    The result depends only on the document, so repeated calls on the same
    tree return equal block lists.

    Args:
        soup: Parsed document; it is not modified.
        base_url: Absolute URL used to resolve image sources.
        policy: Weights, thresholds and boilerplate rules.

    Returns:
        Blocks in reading order; empty when no content root was found.
    """

    root = find_content_root(soup, policy)
    if root is None:
        logger.debug("No content root found for %s", base_url)
        return []

    blocks = linearize(root, base_url, policy)
    logger.debug("Extracted %d blocks from %s", len(blocks), base_url)
    return blocks
