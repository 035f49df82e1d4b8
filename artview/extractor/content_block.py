"""Typed unit of extracted article content."""

from __future__ import annotations

from enum import Enum

from attrs import field, frozen

from .types import AttributeMap


class BlockKind(str, Enum):
    """Kinds of content blocks produced by the extractor."""

    HEADING = "heading"
    PARAGRAPH = "paragraph"
    IMAGE = "image"
    QUOTE = "quote"
    LIST = "list"
    CODE = "code"
    CAPTION = "caption"


@frozen(slots=True)
class ContentBlock:
    """One semantically typed unit of article content in reading order.

    Attributes:
        kind: Type of the block.
        text: Visible text; empty for images.
        attributes: Kind dependent values such as the heading ``level`` or
            the absolute image ``src``.
    """

    kind: BlockKind
    text: str = ""
    attributes: AttributeMap = field(factory=dict)

    @classmethod
    def heading(cls, text: str, level: int) -> ContentBlock:
        return cls(BlockKind.HEADING, text, {"level": str(level)})

    @classmethod
    def paragraph(cls, text: str) -> ContentBlock:
        return cls(BlockKind.PARAGRAPH, text)

    @classmethod
    def image(cls, src: str, alt: str = "", title: str = "") -> ContentBlock:
        attributes = {"src": src}
        if alt:
            attributes["alt"] = alt
        if title:
            attributes["title"] = title
        return cls(BlockKind.IMAGE, "", attributes)
