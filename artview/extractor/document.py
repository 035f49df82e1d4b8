"""Single-owner handle to a parsed document."""

from __future__ import annotations

import logging
import threading

from bs4 import BeautifulSoup

from ..errors import DocumentConsumedError

logger = logging.getLogger(__name__)


class DocumentHandle:
    """Owns a parsed document until it is taken or released.

    Phase one of the pipeline stores the tree here; phase two moves it out
    with ``take``. After a ``take`` or a ``release`` the handle is invalid and
    no longer references the tree.

    Attributes:
        base_url: Absolute URL used to resolve relative links in the tree.
    """

    def __init__(self, soup: BeautifulSoup, base_url: str) -> None:
        self.base_url = base_url
        self._soup: BeautifulSoup | None = soup
        self._lock = threading.Lock()

    @property
    def is_valid(self) -> bool:
        """Whether the handle still owns its document."""

        return self._soup is not None

    def take(self) -> BeautifulSoup:
        """Move the document out of the handle.

        Returns:
            The parsed document; the caller becomes its only owner.

        Raises:
            DocumentConsumedError: If the document was already taken or
                released.
        """

        with self._lock:
            soup, self._soup = self._soup, None

        if soup is None:
            raise DocumentConsumedError(
                f"Document for {self.base_url} is no longer available"
            )
        return soup

    def release(self) -> None:
        """Free the document. Calling it more than once is harmless."""

        with self._lock:
            soup, self._soup = self._soup, None

        if soup is not None:
            logger.debug("Releasing document for %s", self.base_url)
            soup.decompose()

    def __repr__(self) -> str:
        state = "valid" if self.is_valid else "released"
        return f"<DocumentHandle {self.base_url} ({state})>"
