"""Shared fixtures: sample pages, fake HTTP sessions and a local server."""

from __future__ import annotations

import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable, Iterator
from unittest.mock import Mock

import pytest
import requests  # type: ignore[import-untyped]
from bs4 import BeautifulSoup

PARAGRAPHS = [
    "The trail starts behind the old mill and climbs slowly through a "
    "beech forest, where the morning light falls in long golden stripes "
    "across the path.",
    "After two hours the trees thin out and the ridge opens up, offering a "
    "view over three valleys and the lake that feeds the town below it.",
    "Most walkers stop at the hut for soup, but the real reward lies an "
    "hour further, where the path follows the crest to the summit cross.",
    "Coming down, take the eastern route: it is steeper, yet it passes the "
    "waterfall and ends a short walk away from the railway station.",
]

ARTICLE_HTML = f"""<!DOCTYPE html>
<html lang="en">
<head>
  <title>A Long Walk | Outdoor Weekly</title>
  <meta property="og:title" content="A Long Walk">
  <meta name="author" content="Jane Doe">
  <meta name="description" content="A day on the ridge.">
  <meta property="og:site_name" content="Outdoor Weekly">
  <meta property="og:image" content="/images/cover.jpg">
  <link rel="canonical" href="/2024/long-walk">
</head>
<body>
  <nav class="menu">
    <a href="/">Home</a> <a href="/news">News</a> <a href="/about">About</a>
  </nav>
  <article class="post">
    <h1>A Long Walk</h1>
    <p>{PARAGRAPHS[0]}</p>
    <img src="/images/trail.jpg" alt="The trail">
    <p>{PARAGRAPHS[1]}</p>
    <h2>The summit</h2>
    <p>{PARAGRAPHS[2]}</p>
    <blockquote>It was worth every step.</blockquote>
    <p>{PARAGRAPHS[3]}</p>
  </article>
  <footer>Copyright Outdoor Weekly. <a href="/privacy">Privacy</a></footer>
</body>
</html>
"""

LINK_PAGE_HTML = """<!DOCTYPE html>
<html>
<head><title>Index</title></head>
<body>
  <ul>
    <li><a href="/a">First story</a></li>
    <li><a href="/b">Second story</a></li>
    <li><a href="/c">Third story</a></li>
    <li><a href="/d">Fourth story</a></li>
  </ul>
</body>
</html>
"""


@pytest.fixture
def article_html() -> str:
    return ARTICLE_HTML


@pytest.fixture
def article_soup() -> BeautifulSoup:
    return BeautifulSoup(ARTICLE_HTML, "html.parser")


def make_response(
    body: bytes | str = ARTICLE_HTML,
    *,
    status: int = 200,
    content_type: str | None = "text/html; charset=utf-8",
    url: str = "https://example.com/walk",
    chunk_size: int = 1024,
) -> Mock:
    """Build a fake streamed ``requests.Response``."""

    data = body.encode("utf-8") if isinstance(body, str) else body
    headers = {"Content-Type": content_type} if content_type else {}
    response = Mock(status_code=status, headers=headers, url=url)
    response.iter_content.side_effect = lambda chunk_size=chunk_size: (
        data[i : i + chunk_size] for i in range(0, len(data), chunk_size)
    )
    return response


def make_session(
    response: Mock | None = None, error: Exception | None = None
) -> Mock:
    """Build a fake ``requests.Session`` returning ``response``."""

    session = Mock(spec=requests.Session)
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value = response or make_response()
    return session


class _Handler(BaseHTTPRequestHandler):
    """Serves the routes used by the fetcher tests."""

    def do_GET(self) -> None:  # noqa: N802
        path = self.path

        if path.startswith("/redirect/"):
            # ``/redirect/N`` redirects N times before serving the article.
            hops = int(path.rsplit("/", 1)[1])
            target = f"/redirect/{hops - 1}" if hops > 1 else "/article"
            self.send_response(302)
            self.send_header("Location", target)
            self.send_header("Content-Length", "0")
            self.end_headers()
            return

        if path == "/article":
            self._send(200, "text/html; charset=utf-8", ARTICLE_HTML)
        elif path == "/json":
            self._send(200, "application/json", '{"ok": true}')
        elif path == "/missing":
            self._send(404, "text/html", "<html><body>gone</body></html>")
        elif path == "/slow":
            time.sleep(2)
            self._send(200, "text/html", ARTICLE_HTML)
        else:
            self._send(404, "text/plain", "not found")

    def _send(self, status: int, content_type: str, body: str) -> None:
        data = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        try:
            self.wfile.write(data)
        except (BrokenPipeError, ConnectionResetError):
            pass

    def log_message(self, format: str, *args: object) -> None:
        pass


@pytest.fixture
def http_server() -> Iterator[str]:
    """Run a local HTTP server and yield its base URL."""

    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        host, port = server.server_address[:2]
        yield f"http://{host}:{port}"
    finally:
        server.shutdown()
        server.server_close()


TRICKLE_DELAY = 0.05


def _trickle(conn: socket.socket, stop: threading.Event) -> None:
    """Answer one request, sending the slow part a byte at a time."""

    with conn:
        try:
            request = conn.recv(65536)
            if request.startswith(b"GET /headers"):
                conn.sendall(b"HTTP/1.1 200 OK\r\nX-Padding: ")
                slow = b"a"
            else:
                conn.sendall(
                    b"HTTP/1.1 200 OK\r\n"
                    b"Content-Type: text/html\r\n"
                    b"Content-Length: 100000\r\n\r\n"
                )
                slow = b"<"
            while not stop.is_set():
                conn.sendall(slow)
                time.sleep(TRICKLE_DELAY)
        except OSError:
            pass


@pytest.fixture
def trickle_server() -> Iterator[str]:
    """Run a server that never finishes its response and yield its URL.

    ``/headers`` trickles an endless header line, any other path sends
    complete headers and then trickles the body.
    """

    listener = socket.create_server(("127.0.0.1", 0))
    listener.settimeout(0.1)
    stop = threading.Event()

    def serve() -> None:
        while not stop.is_set():
            try:
                conn, _ = listener.accept()
            except OSError:
                continue
            threading.Thread(
                target=_trickle, args=(conn, stop), daemon=True
            ).start()

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    try:
        host, port = listener.getsockname()[:2]
        yield f"http://{host}:{port}"
    finally:
        stop.set()
        thread.join(1)
        listener.close()


@pytest.fixture
def soup_factory() -> Callable[[str], BeautifulSoup]:
    def build(markup: str) -> BeautifulSoup:
        return BeautifulSoup(markup, "html.parser")

    return build
