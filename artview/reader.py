"""Caller-side decisions between the reader view and the browser."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from attrs import define, field, frozen
from attrs.validators import in_

from .dispatch import Dispatcher
from .errors import PipelineStateError
from .extractor.article import Article
from .extractor.types import BlockList
from .pipeline import ArticlePipeline, ArticleRequest

logger = logging.getLogger(__name__)

# Pages yielding fewer blocks are shown in the browser instead.
MIN_BLOCKS = 3

THEMES = ("auto", "light", "dark")

# Reasons reported with a fallback.
LOAD_FAILED = "load_failed"
NOT_AN_ARTICLE = "not_an_article"
DOCUMENT_UNAVAILABLE = "document_unavailable"
TOO_FEW_BLOCKS = "too_few_blocks"


@frozen(slots=True)
class DisplayConfig:
    """How the reader view should look; never inspected by the pipeline.

    Attributes:
        theme: ``auto``, ``light`` or ``dark``.
        toolbar_color: Color of the toolbar, e.g. ``#3f51b5``.
        accent_color: Color of links and highlights.
        extras: Any other setting of the host application.
    """

    theme: str = field(default="auto", validator=in_(THEMES))
    toolbar_color: str | None = None
    accent_color: str | None = None
    extras: dict[str, Any] = field(factory=dict)


@frozen(slots=True)
class Fallback:
    """Request to show ``url`` in a regular browser.

    Attributes:
        url: Originally requested URL.
        display: Display configuration of the original request.
        reason: Why the reader view was abandoned.
        failure: Error kind when loading failed.
    """

    url: str
    display: DisplayConfig | None
    reason: str
    failure: str | None = None


def should_fall_back(blocks: BlockList, min_blocks: int = MIN_BLOCKS) -> bool:
    """Return ``True`` when ``blocks`` are too few to be worth displaying."""

    return len(blocks) < min_blocks


@define(slots=True)
class ReaderSession:
    """Loads one URL and routes the outcome to the host application.

    The session starts phase one, hands a real article to ``on_article``,
    starts phase two and finally hands the content to ``on_content``. Every
    other outcome ends in a single ``on_fallback`` call.

    Attributes:
        pipeline: Pipeline running both phases.
        url: Page to show.
        on_article: Receives the article before its content is extracted.
        on_content: Receives the content blocks.
        on_fallback: Receives the fallback request.
        display: Display configuration passed through to the fallback.
        min_blocks: Minimum number of blocks shown in the reader view.
        deliver: Dispatcher for all callbacks.
    """

    pipeline: ArticlePipeline
    url: str
    on_article: Callable[[Article], None]
    on_content: Callable[[BlockList], None]
    on_fallback: Callable[[Fallback], None]
    display: DisplayConfig | None = None
    min_blocks: int = MIN_BLOCKS
    deliver: Dispatcher | None = None
    load_request: ArticleRequest | None = field(default=None, init=False)
    content_request: ArticleRequest | None = field(default=None, init=False)
    closed: bool = field(default=False, init=False)
    _lock: threading.RLock = field(
        factory=threading.RLock, init=False, repr=False
    )

    def start(self) -> ArticleRequest:
        """Start loading the page."""

        # Callbacks wait until the request is recorded.
        with self._lock:
            if self.closed:
                raise PipelineStateError(f"Session for {self.url} is closed")
            if self.load_request is not None:
                raise PipelineStateError(
                    f"Session for {self.url} already started"
                )
            self.load_request = self.pipeline.load_article(
                self.url,
                self._on_loaded,
                deliver=self.deliver,
                display=self.display,
            )
            return self.load_request

    def close(self) -> None:
        """Cancel whatever is still running; no callback follows."""

        with self._lock:
            self.closed = True
            pending = (self.load_request, self.content_request)
        for request in pending:
            if request is not None:
                request.cancel()

    def _fall_back(self, reason: str, failure: str | None = None) -> None:
        with self._lock:
            if self.closed:
                return
        logger.info("Falling back to the browser for %s: %s", self.url, reason)
        self.on_fallback(Fallback(self.url, self.display, reason, failure))

    def _on_loaded(self, article: Article | None) -> None:
        with self._lock:
            request = self.load_request
            if self.closed or request is None:
                return

        if article is None:
            self._fall_back(LOAD_FAILED, request.failure)
            return
        if not article.is_article:
            self._fall_back(NOT_AN_ARTICLE)
            return

        self.on_article(article)
        with self._lock:
            # ``on_article`` may have closed the session.
            if self.closed:
                return
            try:
                self.content_request = self.pipeline.parse_article_content(
                    request, self._on_parsed, deliver=self.deliver
                )
                return
            except PipelineStateError as exc:
                logger.info("Cannot extract %s: %s", self.url, exc)
                failure = exc.kind
        self._fall_back(DOCUMENT_UNAVAILABLE, failure)

    def _on_parsed(self, blocks: BlockList) -> None:
        with self._lock:
            if self.closed:
                return
        if should_fall_back(blocks, self.min_blocks):
            self._fall_back(TOO_FEW_BLOCKS)
            return
        self.on_content(blocks)
