"""Represents a fetched page and its phase-one verdict."""

from __future__ import annotations

from attrs import field, frozen

from .document import DocumentHandle


@frozen(slots=True)
class Article:
    """Represents a fetched page and the metadata found in it.

    Attributes:
        url: Final URL of the page after redirects.
        title: Page title, if any.
        author: Author name, if any.
        description: Short description or summary, if any.
        is_article: Whether the page looks like readable long-form content.
        document: Handle to the parsed document, consumed by content
            extraction.
        site_name: Name of the publishing site.
        image_url: Absolute URL of the lead image.
        published_time: Publication timestamp as found in the page.
        canonical_url: Absolute canonical URL declared by the page.
        language: Language code declared on the ``html`` element.
    """

    url: str
    title: str | None = None
    author: str | None = None
    description: str | None = None
    is_article: bool = False
    document: DocumentHandle | None = field(
        default=None, eq=False, repr=False
    )
    site_name: str | None = None
    image_url: str | None = None
    published_time: str | None = None
    canonical_url: str | None = None
    language: str | None = None
