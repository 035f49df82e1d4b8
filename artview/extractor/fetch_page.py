"""Fetch a web page over HTTP."""

from __future__ import annotations

import logging
import re
import threading
import time
from typing import Callable

import requests  # type: ignore[import-untyped]
from attrs import frozen

from ..config import DEFAULT_USER_AGENT
from ..errors import (
    FetchTimeout,
    HttpError,
    NetworkError,
    RequestCancelled,
    TooManyRedirects,
    UnsupportedContentType,
)

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPES = frozenset({"text/html", "application/xhtml+xml"})
DEFAULT_MAX_REDIRECTS = 5
DEFAULT_MAX_BYTES = 5 * 1024 * 1024
CHUNK_SIZE = 16 * 1024

ACCEPT_HEADER = "text/html,application/xhtml+xml;q=0.9,*/*;q=0.1"


@frozen(slots=True)
class FetchResult:
    """Raw page returned by ``fetch_page``.

    Attributes:
        final_url: URL of the last response after following redirects.
        content: Body bytes, possibly truncated to the size limit.
        content_type: Media type of the response without parameters.
        encoding: Charset declared in the ``Content-Type`` header, if any.
    """

    final_url: str
    content: bytes
    content_type: str
    encoding: str | None = None


def parse_content_type(header: str | None) -> tuple[str, str | None]:
    """Split a ``Content-Type`` header into media type and charset.

    Args:
        header: Raw header value.

    Returns:
        Lowercase media type (empty when missing) and the declared charset.
    """

    if not header:
        return "", None

    media_type, _, params = header.partition(";")
    match = re.search(r"charset\s*=\s*[\"']?([\w.:-]+)", params, re.IGNORECASE)
    charset = match.group(1) if match else None
    return media_type.strip().lower(), charset


def fetch_page(
    url: str,
    timeout: float,
    *,
    session: requests.Session | None = None,
    max_redirects: int = DEFAULT_MAX_REDIRECTS,
    user_agent: str = DEFAULT_USER_AGENT,
    max_bytes: int = DEFAULT_MAX_BYTES,
    is_cancelled: Callable[[], bool] | None = None,
) -> FetchResult:
    """Retrieve the HTML page at ``url``.

    The exchange runs on a helper thread and the caller waits for it at most
    ``timeout`` seconds, so a server trickling its headers or body cannot
    hold the caller beyond that bound.

    Args:
        url: Address of the page.
        timeout: Limit in seconds for the whole exchange, body included.
        session: Session to reuse; a private one is created when omitted.
            A supplied session is used as is, including its own
            ``max_redirects``.
        max_redirects: Maximum number of redirects to follow with a private
            session.
        user_agent: Value of the ``User-Agent`` header.
        max_bytes: Body bytes to read at most; the rest is dropped.
        is_cancelled: Polled between body chunks to abandon the download.

    Returns:
        The final URL, the body and its declared content type.

    Throws:
        FetchTimeout: The exchange did not complete in time.
        NetworkError: The connection failed.
        HttpError: The server answered with a 4xx or 5xx status.
        TooManyRedirects: The redirect chain was longer than allowed.
        UnsupportedContentType: The response is not HTML.
        RequestCancelled: ``is_cancelled`` returned ``True``.
    """

    own_session = session is None
    if session is None:
        session = requests.Session()
        session.max_redirects = max_redirects

    exchange = _Exchange(
        session=session,
        url=url,
        headers={"User-Agent": user_agent, "Accept": ACCEPT_HEADER},
        timeout=timeout,
        max_bytes=max_bytes,
        is_cancelled=is_cancelled,
        own_session=own_session,
    )
    thread = threading.Thread(
        target=exchange.run, name="artview-fetch", daemon=True
    )
    thread.start()
    thread.join(timeout)

    if thread.is_alive():
        exchange.abandon()
        logger.info("Abandoning %s after %ss", url, timeout)
        raise FetchTimeout(f"{url} not fetched within {timeout}s")
    return exchange.result()


class _Exchange:
    """One request and its body read, run on a helper thread."""

    def __init__(
        self,
        session: requests.Session,
        url: str,
        headers: dict[str, str],
        timeout: float,
        max_bytes: int,
        is_cancelled: Callable[[], bool] | None,
        own_session: bool,
    ) -> None:
        self.session = session
        self.url = url
        self.headers = headers
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.is_cancelled = is_cancelled
        self.own_session = own_session
        self.deadline = time.monotonic() + timeout
        self._lock = threading.Lock()
        self._abandoned = False
        self._response: requests.Response | None = None
        self._result: FetchResult | None = None
        self._error: Exception | None = None

    def run(self) -> None:
        try:
            self._result = self._fetch()
        except Exception as exc:  # re-raised in the calling thread
            self._error = exc
            if self._abandoned:
                logger.debug("Abandoned fetch of %s ended: %s", self.url, exc)
        finally:
            if self.own_session:
                self.session.close()

    def abandon(self) -> None:
        """Stop waiting for the exchange and close its response."""

        with self._lock:
            self._abandoned = True
            response = self._response
        if response is not None:
            # Makes the blocked body read fail instead of waiting for bytes.
            response.close()

    def result(self) -> FetchResult:
        if self._error is not None:
            raise self._error
        assert self._result is not None
        return self._result

    def _fetch(self) -> FetchResult:
        url = self.url
        try:
            response = self.session.get(
                url, headers=self.headers, timeout=self.timeout, stream=True
            )
        except requests.TooManyRedirects as exc:
            raise TooManyRedirects(f"Too many redirects for {url}") from exc
        except requests.Timeout as exc:
            raise FetchTimeout(
                f"No response from {url} in {self.timeout}s"
            ) from exc
        except requests.RequestException as exc:
            raise NetworkError(str(exc)) from exc

        with self._lock:
            abandoned = self._abandoned
            self._response = response

        try:
            if abandoned:
                raise FetchTimeout(f"{url} not fetched within {self.timeout}s")

            # Refuse error pages and non-HTML bodies before reading them.
            if response.status_code >= 400:
                raise HttpError(response.status_code, url)

            content_type, encoding = parse_content_type(
                response.headers.get("Content-Type")
            )
            if content_type and content_type not in HTML_CONTENT_TYPES:
                raise UnsupportedContentType(content_type)

            content = _read_body(
                response,
                self.deadline,
                self.timeout,
                self.max_bytes,
                self.is_cancelled,
            )
        finally:
            response.close()

        final_url = response.url or url
        logger.debug(
            "Fetched %s (%d bytes, %s, charset=%s)",
            final_url,
            len(content),
            content_type or "no content type",
            encoding,
        )
        return FetchResult(
            final_url=final_url,
            content=content,
            content_type=content_type or "text/html",
            encoding=encoding,
        )


def _read_body(
    response: requests.Response,
    deadline: float,
    timeout: float,
    max_bytes: int,
    is_cancelled: Callable[[], bool] | None,
) -> bytes:
    """Read the response body in chunks, enforcing the deadline."""

    chunks: list[bytes] = []
    size = 0

    try:
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            if is_cancelled is not None and is_cancelled():
                raise RequestCancelled(f"Fetch of {response.url} cancelled")
            if time.monotonic() > deadline:
                raise FetchTimeout(
                    f"Body of {response.url} not read within {timeout}s"
                )

            chunks.append(chunk)
            size += len(chunk)
            if size >= max_bytes:
                logger.info(
                    "Truncating %s at %d bytes", response.url, max_bytes
                )
                break
    except requests.RequestException as exc:
        # Read timeouts while streaming surface as connection errors.
        if isinstance(exc, requests.Timeout) or time.monotonic() > deadline:
            raise FetchTimeout(f"Reading {response.url} timed out") from exc
        raise NetworkError(str(exc)) from exc

    return b"".join(chunks)[:max_bytes]
