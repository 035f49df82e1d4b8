"""Two-phase article pipeline running on a pool of worker threads.

Phase one fetches a page, parses it, extracts its metadata and decides
whether it is an article. Phase two turns the parsed document of an article
into content blocks. Each phase reports through a callback that is invoked
exactly once on the caller's context, unless the request is cancelled.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any

import attrs
import requests  # type: ignore[import-untyped]
from bs4 import BeautifulSoup, Tag

from .config import PipelineConfig
from .dispatch import Dispatcher, default_dispatcher
from .errors import (
    ArtviewError,
    PipelineStateError,
    RequestCancelled,
)
from .extractor.article import Article
from .extractor.classify import classify_document
from .extractor.document import DocumentHandle
from .extractor.extract_content import extract_blocks
from .extractor.fetch_page import fetch_page
from .extractor.metadata import extract_metadata
from .extractor.parse_html import parse_html
from .extractor.scoring import DEFAULT_POLICY, ScoringPolicy
from .extractor.types import ArticleCallback, BlockList, BlocksCallback
from .extractor.utils import resolve_url

logger = logging.getLogger(__name__)


class RequestState(str, Enum):
    """Stages a request goes through."""

    IDLE = "idle"
    FETCHING = "fetching"
    PARSING = "parsing"
    METADATA_EXTRACTION = "metadata_extraction"
    CLASSIFIED = "classified"
    CONTENT_EXTRACTING = "content_extracting"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATES = frozenset(
    {RequestState.DELIVERED, RequestState.CANCELLED, RequestState.FAILED}
)


class ArticleRequest:
    """Handle to one in-flight pipeline phase.

    Attributes:
        url: Requested URL, or the article URL for content extraction.
        display: Display configuration passed through untouched.
        state: Current stage of the request.
        failure: ``kind`` of the error that ended the request, if any.
        article: Article produced by phase one or consumed by phase two.
    """

    def __init__(
        self,
        url: str,
        display: Any = None,  # noqa: ANN401
        deliver: Dispatcher | None = None,
    ) -> None:
        self.url = url
        self.display = display
        self.state = RequestState.IDLE
        self.failure: str | None = None
        self.article: Article | None = None
        self._deliver = deliver or default_dispatcher()
        self._lock = threading.Lock()
        self._cancelled = False
        self._finished = threading.Event()

    @property
    def cancelled(self) -> bool:
        """Whether ``cancel`` was called."""

        return self._cancelled

    def cancel(self) -> None:
        """Stop the request and free its document.

        No callback is delivered after this call. The worker notices the
        cancellation at its next stage boundary; a document that was already
        handed over with the article is released right away.
        """

        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            if self.state not in TERMINAL_STATES:
                self.state = RequestState.CANCELLED
            article = self.article

        logger.debug("Cancelled request for %s", self.url)
        if article is not None and article.document is not None:
            article.document.release()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the worker is done with this request.

        The callback may still be queued on its delivery context when a
        dispatcher other than ``immediate`` is used.

        Args:
            timeout: Seconds to wait at most; ``None`` waits forever.

        Returns:
            ``True`` when the worker finished, ``False`` on timeout.
        """

        return self._finished.wait(timeout)

    def _advance(self, state: RequestState) -> None:
        """Enter ``state`` unless the request was cancelled."""

        with self._lock:
            if self._cancelled:
                raise RequestCancelled(f"Request for {self.url} cancelled")
            self.state = state
        logger.debug("%s: %s", self.url, state.value)

    def _complete(self, article: Article) -> None:
        """Record the produced article, releasing it when cancelled."""

        with self._lock:
            if not self._cancelled:
                self.article = article
                return

        if article.document is not None:
            article.document.release()
        raise RequestCancelled(f"Request for {self.url} cancelled")

    def _fail(self, exc: BaseException) -> None:
        kind = getattr(exc, "kind", "unexpected")
        with self._lock:
            self.failure = kind
            if not self._cancelled:
                self.state = RequestState.FAILED

    def _dispatch(self, callback: Any, value: Any) -> None:  # noqa: ANN401
        """Hand ``callback(value)`` to the delivery context."""

        def task() -> None:
            # Cancellation may happen while the task waits in a queue.
            if self._cancelled:
                logger.debug("Dropping callback for cancelled %s", self.url)
                return
            if self.state is not RequestState.FAILED:
                self.state = RequestState.DELIVERED
            callback(value)

        if self._cancelled:
            return
        try:
            self._deliver(task)
        except Exception:
            logger.exception("Callback for %s raised", self.url)

    def __repr__(self) -> str:
        return f"<ArticleRequest {self.url} {self.state.value}>"


def document_base_url(soup: BeautifulSoup, final_url: str) -> str:
    """Return the URL relative links of ``soup`` are resolved against.

    Args:
        soup: Parsed document.
        final_url: URL the document was retrieved from.

    Returns:
        ``final_url`` adjusted by the ``<base href>`` element, if any.
    """

    base = soup.find("base", href=True)
    if isinstance(base, Tag):
        resolved = resolve_url(final_url, base.get("href"))
        if resolved:
            return resolved
    return final_url


def policy_for(config: PipelineConfig) -> ScoringPolicy:
    """Return the scoring policy honouring the limits of ``config``."""

    return attrs.evolve(
        DEFAULT_POLICY,
        min_text_length=config.min_text_length,
        max_nodes=config.max_nodes,
    )


def article_from_html(
    content: bytes | str,
    url: str,
    config: PipelineConfig | None = None,
    *,
    encoding: str | None = None,
    request: ArticleRequest | None = None,
) -> Article:
    """Parse a page, extract its metadata and classify it.

    Args:
        content: Raw or decoded markup of the page.
        url: Final URL of the page.
        config: Pipeline settings; defaults are used when omitted.
        encoding: Charset declared by the server, if any.
        request: Request whose stages are updated along the way.

    Returns:
        The article. Only articles keep their parsed document.

    Raises:
        ParseError: The content is empty or not HTML.
        RequestCancelled: ``request`` was cancelled.
    """

    def advance(state: RequestState) -> None:
        if request is not None:
            request._advance(state)

    config = config or PipelineConfig()

    advance(RequestState.PARSING)
    soup = parse_html(content, encoding)
    handle = DocumentHandle(soup, document_base_url(soup, url))

    try:
        advance(RequestState.METADATA_EXTRACTION)
        metadata = extract_metadata(soup, handle.base_url)

        classification = classify_document(soup, policy_for(config))
        advance(RequestState.CLASSIFIED)
    except BaseException:
        handle.release()
        raise

    # Pages that are not articles never reach phase two.
    if not classification.is_article:
        handle.release()

    article = Article(
        url=url,
        title=metadata.title,
        author=metadata.author,
        description=metadata.description,
        is_article=classification.is_article,
        document=handle if classification.is_article else None,
        site_name=metadata.site_name,
        image_url=metadata.image_url,
        published_time=metadata.published_time,
        canonical_url=metadata.canonical_url,
        language=metadata.language,
    )
    logger.info(
        "Loaded %s (article=%s, title=%r)",
        article.url,
        article.is_article,
        article.title,
    )
    return article


def _load(
    url: str,
    config: PipelineConfig,
    session: requests.Session | None = None,
    request: ArticleRequest | None = None,
) -> Article:
    """Run phase one and return the article.

    Raises:
        ArtviewError: Fetching or parsing failed, or the request was
            cancelled.
    """

    if request is not None:
        request._advance(RequestState.FETCHING)

    result = fetch_page(
        url,
        config.timeout,
        session=session,
        max_redirects=config.max_redirects,
        user_agent=config.user_agent,
        max_bytes=config.max_bytes,
        is_cancelled=(lambda: request.cancelled) if request else None,
    )
    return article_from_html(
        result.content,
        result.final_url,
        config,
        encoding=result.encoding,
        request=request,
    )


def load_article_sync(
    url: str,
    config: PipelineConfig | None = None,
    session: requests.Session | None = None,
) -> Article | None:
    """Run phase one on the calling thread.

    Args:
        url: Address of the page.
        config: Pipeline settings; defaults are used when omitted.
        session: HTTP session to reuse.

    Returns:
        The article, or ``None`` when the page could not be fetched or
        parsed.
    """

    try:
        return _load(url, config or PipelineConfig(), session)
    except ArtviewError as exc:
        logger.info("Loading %s failed (%s): %s", url, exc.kind, exc)
        return None


def _take_document(article: Article) -> DocumentHandle:
    """Check that phase two may run on ``article``."""

    if not article.is_article:
        raise PipelineStateError(f"{article.url} is not an article")
    if article.document is None or not article.document.is_valid:
        raise PipelineStateError(
            f"Document for {article.url} was already consumed or released"
        )
    return article.document


def _extract(
    soup: BeautifulSoup,
    base_url: str,
    policy: ScoringPolicy,
    request: ArticleRequest | None = None,
) -> BlockList:
    """Extract blocks from ``soup`` and free it afterwards."""

    try:
        if request is not None:
            request._advance(RequestState.CONTENT_EXTRACTING)
        return extract_blocks(soup, base_url, policy)
    finally:
        soup.decompose()


def extract_article_content(
    article: Article, policy: ScoringPolicy = DEFAULT_POLICY
) -> BlockList:
    """Run phase two on the calling thread.

    The document of ``article`` is consumed; a second call raises.

    Args:
        article: Article returned by phase one.
        policy: Scoring policy for the content extractor.

    Returns:
        Content blocks in reading order.

    Raises:
        PipelineStateError: The page is not an article or its document is
            no longer available.
    """

    handle = _take_document(article)
    base_url = handle.base_url
    return _extract(handle.take(), base_url, policy)


class ArticlePipeline:
    """Runs both pipeline phases on worker threads.

    Example:
        >>> with ArticlePipeline() as pipeline:
        ...     request = pipeline.load_article(url, on_loaded)
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        *,
        session: requests.Session | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        if session is not None:
            # Set once; workers only read the session.
            session.max_redirects = self.config.max_redirects
        self.session = session
        self.policy = policy_for(self.config)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or self.config.max_workers,
            thread_name_prefix="artview",
        )
        self._closed = False

    def load_article(
        self,
        url: str,
        on_loaded: ArticleCallback,
        *,
        deliver: Dispatcher | None = None,
        display: Any = None,  # noqa: ANN401
    ) -> ArticleRequest:
        """Start phase one for ``url``.

        Args:
            url: Address of the page.
            on_loaded: Receives the article, or ``None`` when the page could
                not be loaded.
            deliver: Dispatcher running the callback; defaults to the
                running asyncio loop, else the worker thread.
            display: Display configuration passed through untouched.

        Returns:
            Handle used to follow or cancel the request.
        """

        request = ArticleRequest(url, display=display, deliver=deliver)
        self._submit(self._run_load, request, on_loaded)
        return request

    def parse_article_content(
        self,
        article_or_request: Article | ArticleRequest,
        on_parsed: BlocksCallback,
        *,
        deliver: Dispatcher | None = None,
    ) -> ArticleRequest:
        """Start phase two for a loaded article.

        Args:
            article_or_request: Article from phase one, or the request that
                produced it.
            on_parsed: Receives the content blocks.
            deliver: Dispatcher running the callback.

        Returns:
            Handle used to follow or cancel the extraction. A cancelled
            request passed in is returned as is, without any callback.

        Raises:
            PipelineStateError: No article was loaded, the page is not an
                article or its document was already consumed.
        """

        display = None
        if isinstance(article_or_request, ArticleRequest):
            if article_or_request.cancelled:
                logger.debug("Not extracting cancelled %s", article_or_request)
                return article_or_request
            if article_or_request.article is None:
                raise PipelineStateError(
                    f"No article loaded for {article_or_request.url}"
                )
            article = article_or_request.article
            display = article_or_request.display
        else:
            article = article_or_request

        handle = _take_document(article)
        base_url = handle.base_url
        soup = handle.take()

        request = ArticleRequest(article.url, display=display, deliver=deliver)
        request.article = article
        try:
            self._submit(self._run_extract, request, soup, base_url, on_parsed)
        except PipelineStateError:
            soup.decompose()
            raise
        return request

    def close(self, wait: bool = True) -> None:
        """Stop accepting requests and shut the worker pool down."""

        self._closed = True
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "ArticlePipeline":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _submit(self, fn: Any, *args: Any) -> None:  # noqa: ANN401
        if self._closed:
            raise PipelineStateError("Pipeline is closed")
        self._executor.submit(fn, *args)

    def _run_load(
        self, request: ArticleRequest, on_loaded: ArticleCallback
    ) -> None:
        article: Article | None = None
        try:
            article = _load(request.url, self.config, self.session, request)
            request._complete(article)
        except RequestCancelled:
            logger.debug("Load of %s cancelled", request.url)
            article = None
        except ArtviewError as exc:
            logger.info(
                "Loading %s failed (%s): %s", request.url, exc.kind, exc
            )
            request._fail(exc)
            article = None
        except Exception as exc:
            logger.exception("Unexpected error loading %s", request.url)
            request._fail(exc)
            article = None

        try:
            request._dispatch(on_loaded, article)
        finally:
            request._finished.set()

    def _run_extract(
        self,
        request: ArticleRequest,
        soup: BeautifulSoup,
        base_url: str,
        on_parsed: BlocksCallback,
    ) -> None:
        blocks: BlockList = []
        try:
            blocks = _extract(soup, base_url, self.policy, request)
            logger.info("Extracted %d blocks from %s", len(blocks), base_url)
        except RequestCancelled:
            logger.debug("Extraction of %s cancelled", request.url)
        except Exception as exc:
            logger.exception("Unexpected error extracting %s", request.url)
            request._fail(exc)

        try:
            request._dispatch(on_parsed, blocks)
        finally:
            request._finished.set()
