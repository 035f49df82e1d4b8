"""Tests for document walking helpers."""

from typing import Callable

import pytest
from bs4 import BeautifulSoup, Tag

from artview.extractor.utils import (
    class_id_tokens,
    find_images,
    image_source,
    link_density,
    normalize_whitespace,
    resolve_url,
    visible_text,
)


def test_normalize_whitespace() -> None:
    assert normalize_whitespace("  a \n\t b , c .") == "a b, c."


def test_visible_text_separates_blocks_not_inline(
    soup_factory: Callable[[str], BeautifulSoup],
) -> None:
    """Inline markup never splits words; blocks and breaks do."""

    soup = soup_factory(
        "<div><p>Hel<b>lo</b></p><p>world<br>again</p>"
        "<script>hidden()</script><!-- note --></div>"
    )

    assert visible_text(soup.div) == "Hello world again"


def test_class_id_tokens(soup_factory: Callable[[str], BeautifulSoup]) -> None:
    tag = soup_factory('<div class="Post-Body main_text" id="story1"></div>')

    assert class_id_tokens(tag.div) == [
        "post",
        "body",
        "main",
        "text",
        "story1",
    ]


def test_link_density(soup_factory: Callable[[str], BeautifulSoup]) -> None:
    soup = soup_factory('<div>abcd <a href="/">efgh</a></div><p></p>')

    assert link_density(soup.div) == pytest.approx(4 / 9)
    assert link_density(soup.p) == 0.0


@pytest.mark.parametrize(
    "value, expected",
    [
        ("/a.png", "https://example.com/a.png"),
        ("b.png", "https://example.com/blog/b.png"),
        ("//cdn.example.org/c.png", "https://cdn.example.org/c.png"),
        ("http://other.org/d.png", "http://other.org/d.png"),
        ("data:image/png;base64,AAAA", None),
        ("javascript:void(0)", None),
        ("#top", None),
        ("mailto:me@example.com", None),
        ("", None),
        (None, None),
    ],
)
def test_resolve_url(value: str | None, expected: str | None) -> None:
    assert resolve_url("https://example.com/blog/post", value) == expected


def test_image_source_prefers_lazy_attributes(
    soup_factory: Callable[[str], BeautifulSoup],
) -> None:
    soup = soup_factory(
        '<img src="data:image/gif;base64,R0" data-src="/real.jpg">'
        '<img data-srcset="/s.jpg 1x, /l.jpg 2x">'
        "<img>"
    )
    lazy, srcset, empty = soup.find_all("img")

    assert image_source(lazy) == "/real.jpg"
    assert image_source(srcset) == "/s.jpg"
    assert image_source(empty) is None


def test_visible_text_skips_excluded_subtrees(
    soup_factory: Callable[[str], BeautifulSoup],
) -> None:
    soup = soup_factory(
        '<div>Keep <span class="x">drop <b>this</b></span>me'
        '<a href="/">link</a><a class="x" href="/">gone</a></div>'
    )

    def exclude(tag: Tag) -> bool:
        return "x" in (tag.get("class") or [])

    assert visible_text(soup.div, exclude=exclude) == "Keep melink"
    assert link_density(soup.div, exclude=exclude) == pytest.approx(4 / 11)


def test_find_images_skips_excluded_subtrees(
    soup_factory: Callable[[str], BeautifulSoup],
) -> None:
    soup = soup_factory(
        '<span><img src="/a.png"><i class="x"><img src="/b.png"></i></span>'
    )

    def exclude(tag: Tag) -> bool:
        return "x" in (tag.get("class") or [])

    assert [img["src"] for img in find_images(soup.span, exclude)] == [
        "/a.png"
    ]
    assert len(find_images(soup.span)) == 2
    assert find_images(soup.img) == [soup.img]
