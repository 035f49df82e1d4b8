"""Tests for candidate selection and block linearization."""

from typing import Callable

import attrs
from bs4 import BeautifulSoup

from artview.extractor.content_block import BlockKind, ContentBlock
from artview.extractor.extract_content import (
    Candidate,
    extract_blocks,
    find_content_root,
    select_candidate,
)
from artview.extractor.scoring import DEFAULT_POLICY
from conftest import LINK_PAGE_HTML, PARAGRAPHS

BASE = "https://example.com/2024/walk"
LONG = PARAGRAPHS[0]


def _blocks(
    soup_factory: Callable[[str], BeautifulSoup], body: str
) -> list[ContentBlock]:
    soup = soup_factory(f"<html><body>{body}</body></html>")
    return extract_blocks(soup, BASE)


def test_extract_blocks_skips_navigation_and_footer(
    article_soup: BeautifulSoup,
) -> None:
    """Only the article body is returned, in document order."""

    blocks = extract_blocks(article_soup, BASE)

    assert blocks == [
        ContentBlock.heading("A Long Walk", 1),
        ContentBlock.paragraph(PARAGRAPHS[0]),
        ContentBlock.image(
            "https://example.com/images/trail.jpg", "The trail"
        ),
        ContentBlock.paragraph(PARAGRAPHS[1]),
        ContentBlock.heading("The summit", 2),
        ContentBlock.paragraph(PARAGRAPHS[2]),
        ContentBlock(BlockKind.QUOTE, "It was worth every step."),
        ContentBlock.paragraph(PARAGRAPHS[3]),
    ]
    texts = " ".join(block.text for block in blocks)
    assert "Home" not in texts
    assert "Copyright" not in texts


def test_extract_blocks_is_deterministic(
    soup_factory: Callable[[str], BeautifulSoup], article_html: str
) -> None:
    """The same document always yields the same blocks."""

    first = extract_blocks(soup_factory(article_html), BASE)
    second = extract_blocks(soup_factory(article_html), BASE)

    assert first == second


def test_find_content_root_selects_article(
    article_soup: BeautifulSoup,
) -> None:
    root = find_content_root(article_soup)

    assert root is not None
    assert root.name == "article"


def test_select_candidate_prefers_earliest_on_tie(
    soup_factory: Callable[[str], BeautifulSoup],
) -> None:
    """Equal scores resolve to the first candidate in document order."""

    soup = soup_factory("<div id='a'></div><div id='b'></div>")
    first, second = soup.find_all("div")

    best = select_candidate(
        [Candidate(first, 1, 5.0), Candidate(second, 2, 5.0)]
    )

    assert best is not None
    assert best.element is first


def test_select_candidate_requires_positive_score(
    soup_factory: Callable[[str], BeautifulSoup],
) -> None:
    div = soup_factory("<div></div>").div

    assert select_candidate([Candidate(div, 1, 0.0)]) is None
    assert select_candidate([]) is None


def test_extract_blocks_without_candidates_is_empty(
    soup_factory: Callable[[str], BeautifulSoup],
) -> None:
    """A page without paragraphs yields no blocks instead of failing."""

    assert extract_blocks(soup_factory(LINK_PAGE_HTML), BASE) == []


def test_extract_blocks_returns_few_blocks_unchanged(
    soup_factory: Callable[[str], BeautifulSoup],
) -> None:
    """No minimum is enforced by the extractor itself."""

    blocks = _blocks(
        soup_factory,
        f"<article><p>{PARAGRAPHS[0]}</p><p>{PARAGRAPHS[1]}</p></article>",
    )

    assert [block.kind for block in blocks] == [BlockKind.PARAGRAPH] * 2


def test_extract_blocks_resolves_images(
    soup_factory: Callable[[str], BeautifulSoup],
) -> None:
    """Image sources are absolute; inline data and pixels are dropped."""

    blocks = _blocks(
        soup_factory,
        "<article>"
        f"<p>{LONG}</p>"
        '<img src="../img/a.png" title="A">'
        '<img data-src="//cdn.example.com/b.jpg">'
        '<img srcset="/c-small.jpg 480w, /c-large.jpg 1024w">'
        '<img src="data:image/gif;base64,R0lGOD">'
        '<img src="/pixel.gif" width="1" height="1">'
        f"<p>{PARAGRAPHS[1]}</p>"
        "</article>",
    )

    images = [b.attributes for b in blocks if b.kind is BlockKind.IMAGE]
    assert images == [
        {"src": "https://example.com/img/a.png", "title": "A"},
        {"src": "https://cdn.example.com/b.jpg"},
        {"src": "https://example.com/c-small.jpg"},
    ]


def test_extract_blocks_keeps_images_inside_paragraphs(
    soup_factory: Callable[[str], BeautifulSoup],
) -> None:
    """Images follow the text of the paragraph holding them."""

    blocks = _blocks(
        soup_factory,
        f'<article><p>{LONG} <img src="/inline.png" alt="x"></p></article>',
    )

    assert blocks == [
        ContentBlock.paragraph(LONG),
        ContentBlock.image("https://example.com/inline.png", "x"),
    ]


def test_extract_blocks_lists_code_and_captions(
    soup_factory: Callable[[str], BeautifulSoup],
) -> None:
    blocks = _blocks(
        soup_factory,
        "<article>"
        f"<p>{LONG}</p>"
        "<ol><li>Pack water</li><li>Check the <b>weather</b></li></ol>"
        "<pre>def walk():\n    return 42</pre>"
        '<figure><img src="/map.png"><figcaption>The route</figcaption>'
        "</figure>"
        f"<p>{PARAGRAPHS[1]}</p>"
        "</article>",
    )

    assert blocks[1] == ContentBlock(
        BlockKind.LIST,
        "Pack water\nCheck the weather",
        {"ordered": "true", "items": "2"},
    )
    assert blocks[2] == ContentBlock(
        BlockKind.CODE, "def walk():\n    return 42"
    )
    assert blocks[3] == ContentBlock.image("https://example.com/map.png")
    assert blocks[4] == ContentBlock(BlockKind.CAPTION, "The route")
    assert blocks[5] == ContentBlock.paragraph(PARAGRAPHS[1])


def test_extract_blocks_skips_link_lists_and_chrome(
    soup_factory: Callable[[str], BeautifulSoup],
) -> None:
    """Related-link lists, asides and share widgets are not content."""

    blocks = _blocks(
        soup_factory,
        "<article>"
        f"<p>{LONG}</p>"
        '<ul><li><a href="/1">Read this</a></li>'
        '<li><a href="/2">And that</a></li></ul>'
        "<aside>Advertisement text that is long enough to count</aside>"
        '<div class="social-share">Share on every network you know</div>'
        f"<p>{PARAGRAPHS[1]}</p>"
        "</article>",
    )

    assert blocks == [
        ContentBlock.paragraph(LONG),
        ContentBlock.paragraph(PARAGRAPHS[1]),
    ]


def test_extract_blocks_splits_text_on_double_breaks(
    soup_factory: Callable[[str], BeautifulSoup],
) -> None:
    """Bare text separated by ``<br><br>`` becomes separate paragraphs."""

    blocks = _blocks(
        soup_factory,
        f'<div class="content">{PARAGRAPHS[0]}<br><br>{PARAGRAPHS[1]}<br>'
        f"{PARAGRAPHS[2]}</div>",
    )

    assert blocks == [
        ContentBlock.paragraph(PARAGRAPHS[0]),
        ContentBlock.paragraph(f"{PARAGRAPHS[1]} {PARAGRAPHS[2]}"),
    ]


def test_extract_blocks_drops_short_fragments(
    soup_factory: Callable[[str], BeautifulSoup],
) -> None:
    """Inline runs below the paragraph length threshold are discarded."""

    blocks = _blocks(
        soup_factory,
        f"<article><p>{LONG}</p><p>Share</p><p>{PARAGRAPHS[1]}</p></article>",
    )

    assert [block.text for block in blocks] == [LONG, PARAGRAPHS[1]]


def test_extract_blocks_handles_deep_nesting(
    soup_factory: Callable[[str], BeautifulSoup],
) -> None:
    """Deeply nested markup does not exhaust the recursion limit."""

    depth = 3000
    markup = "<div>" * depth + f"<p>{LONG}</p>" + "</div>" * depth

    blocks = _blocks(soup_factory, markup)

    assert blocks == [ContentBlock.paragraph(LONG)]


def test_extract_blocks_respects_node_budget(
    soup_factory: Callable[[str], BeautifulSoup],
) -> None:
    """Work stops at the node budget with a partial result."""

    policy = attrs.evolve(DEFAULT_POLICY, max_nodes=10)
    paragraphs = "".join(f"<p>{LONG}</p>" for _ in range(50))
    soup = soup_factory(f"<html><body><article>{paragraphs}</article></body>")

    blocks = extract_blocks(soup, BASE, policy)

    assert 0 < len(blocks) < 50


def test_extract_blocks_drops_boilerplate_nested_in_blocks(
    soup_factory: Callable[[str], BeautifulSoup],
) -> None:
    """Ads and buttons inside quotes, headings and lists leave no text."""

    blocks = _blocks(
        soup_factory,
        "<article>"
        "<h2>The summit <button>Share</button></h2>"
        f"<p>{PARAGRAPHS[0]}</p>"
        "<blockquote><p>A quoted line from the source.</p>"
        '<div class="advert">BUY CHEAP WIDGETS NOW</div></blockquote>'
        f"<p>{PARAGRAPHS[1]}</p>"
        "<ul><li>Bring water</li><li>Wear boots "
        '<span class="sponsor">sponsored by Boots Inc</span></li>'
        '<li class="ad">Advertisement</li></ul>'
        f"<p>{PARAGRAPHS[2]} <span class=\"social-share\">Tweet this"
        '<img src="/share.png"></span></p>'
        "</article>",
    )

    assert blocks == [
        ContentBlock.heading("The summit", 2),
        ContentBlock.paragraph(PARAGRAPHS[0]),
        ContentBlock(BlockKind.QUOTE, "A quoted line from the source."),
        ContentBlock.paragraph(PARAGRAPHS[1]),
        ContentBlock(
            BlockKind.LIST,
            "Bring water\nWear boots",
            {"ordered": "false", "items": "2"},
        ),
        ContentBlock.paragraph(PARAGRAPHS[2]),
    ]
