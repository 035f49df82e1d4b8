"""Parse raw HTML into a traversable document tree."""

from __future__ import annotations

import logging

from bs4 import BeautifulSoup, UnicodeDammit

from ..errors import EmptyOrNonHtmlError

logger = logging.getLogger(__name__)

# Parser used for every document; it accepts arbitrary broken markup.
PARSER = "html.parser"


def decode_html(content: bytes, declared_encoding: str | None = None) -> str:
    """Decode HTML bytes into text.

    The declared encoding is tried first, followed by the byte-order mark,
    the ``<meta charset>`` declaration and finally UTF-8 and windows-1252.

    Args:
        content: Raw body of the page.
        declared_encoding: Charset announced by the server, if any.

    Returns:
        Decoded markup. Undecodable bytes become replacement characters.
    """

    known = [declared_encoding] if declared_encoding else []
    dammit = UnicodeDammit(
        content, known_definite_encodings=known, is_html=True
    )

    if dammit.unicode_markup is None:
        logger.debug("Could not detect encoding, falling back to UTF-8")
        return content.decode("utf-8", errors="replace")

    detected = (dammit.original_encoding or "").lower()
    if declared_encoding and detected != declared_encoding.lower():
        logger.debug(
            "Declared encoding %s rejected, decoded as %s",
            declared_encoding,
            dammit.original_encoding,
        )
    return dammit.unicode_markup


def parse_html(
    content: bytes | str, declared_encoding: str | None = None
) -> BeautifulSoup:
    """Parse HTML content into a document tree.

    Args:
        content: Raw bytes or already decoded markup.
        declared_encoding: Charset announced by the server, if any.

    Returns:
        Parsed document. Malformed markup still produces a best-effort tree.

    Raises:
        EmptyOrNonHtmlError: The content is empty or holds no HTML element.
    """

    markup = (
        decode_html(content, declared_encoding)
        if isinstance(content, bytes)
        else content
    )

    if not markup.strip():
        raise EmptyOrNonHtmlError("Document is empty")

    soup = BeautifulSoup(markup, PARSER)

    # Plain text and JSON bodies parse into a tree without any element.
    if soup.find(True) is None:
        raise EmptyOrNonHtmlError("Document contains no HTML elements")

    return soup
