"""Fetching, parsing and content extraction for web articles."""

from .article import Article
from .classify import Classification, classify_document
from .content_block import BlockKind, ContentBlock
from .document import DocumentHandle
from .extract_content import extract_blocks, find_content_root, linearize
from .fetch_page import FetchResult, fetch_page
from .metadata import PageMetadata, extract_metadata
from .parse_html import parse_html
from .scoring import DEFAULT_POLICY, ScoringPolicy

__all__ = [
    "Article",
    "BlockKind",
    "Classification",
    "ContentBlock",
    "DEFAULT_POLICY",
    "DocumentHandle",
    "FetchResult",
    "PageMetadata",
    "ScoringPolicy",
    "classify_document",
    "extract_blocks",
    "extract_metadata",
    "fetch_page",
    "find_content_root",
    "linearize",
    "parse_html",
]
