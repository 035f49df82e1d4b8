"""Common type aliases for extractor structures."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from .article import Article  # noqa: F401
    from .content_block import ContentBlock  # noqa: F401


BlockList = list["ContentBlock"]
AttributeMap = dict[str, str]
ArticleCallback = Callable[[Optional["Article"]], None]
BlocksCallback = Callable[[BlockList], None]
