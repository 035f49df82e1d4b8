"""Exceptions raised by the article pipeline.

Every exception carries a stable ``kind`` string so that failures can be told
apart in logs even though the pipeline collapses them into a single "fall
back to the browser" signal for its callers.
"""

from __future__ import annotations


class ArtviewError(Exception):
    """Base class for all errors raised by ``artview``."""

    kind = "error"


class FetchError(ArtviewError):
    """The page could not be retrieved."""

    kind = "fetch_error"


class FetchTimeout(FetchError):
    """No complete response arrived within the configured timeout."""

    kind = "timeout"


class NetworkError(FetchError):
    """Connection-level failure (DNS, refused connection, TLS, bad URL)."""

    kind = "network_error"


class HttpError(FetchError):
    """The server answered with a 4xx or 5xx status.

    Attributes:
        status: HTTP status code of the response.
    """

    kind = "http_error"

    def __init__(self, status: int, url: str = "") -> None:
        message = f"HTTP {status} for {url}" if url else f"HTTP {status}"
        super().__init__(message)
        self.status = status
        self.url = url


class TooManyRedirects(FetchError):
    """The redirect chain exceeded the configured maximum."""

    kind = "too_many_redirects"


class UnsupportedContentType(FetchError):
    """The response is not an HTML document.

    Attributes:
        content_type: Media type announced by the server.
    """

    kind = "unsupported_content_type"

    def __init__(self, content_type: str) -> None:
        super().__init__(f"Unsupported content type: {content_type}")
        self.content_type = content_type


class ParseError(ArtviewError):
    """The fetched content could not be turned into a document tree."""

    kind = "parse_error"


class EmptyOrNonHtmlError(ParseError):
    """The content is empty or contains no HTML elements at all."""

    kind = "empty_or_non_html"


class RequestCancelled(ArtviewError):
    """The request was cancelled by its consumer."""

    kind = "cancelled"


class PipelineStateError(ArtviewError):
    """An operation was invoked on a request in the wrong state."""

    kind = "invalid_state"


class DocumentConsumedError(PipelineStateError):
    """The parsed document was already consumed or released."""

    kind = "document_consumed"
