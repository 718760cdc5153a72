"""Pytest fixtures for docln-epub tests."""

import httpx
import pytest

from docln_epub.clients import RateLimitedFetcher, RateLimiter

BASE_URL = "https://docln.net"


class FakeClock:
    """Monotonic clock whose sleep() advances time instantly."""

    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSite:
    """In-memory site served through httpx.MockTransport.

    Routes map absolute URLs to (status, body) tuples or to an exception
    instance to raise. Unknown URLs return 404.
    """

    def __init__(self):
        self.routes: dict[str, tuple[int, bytes] | Exception] = {}
        self.requests: list[httpx.Request] = []

    def add(self, url: str, body: str | bytes, status: int = 200) -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.routes[url] = (status, body)

    def fail(self, url: str, error: Exception) -> None:
        self.routes[url] = error

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(str(request.url))
        if route is None:
            return httpx.Response(404, content=b"not found")
        if isinstance(route, Exception):
            raise route
        status, body = route
        return httpx.Response(status, content=body)

    @property
    def requested_urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]

    def fetcher(self, min_interval: float = 0.0, clock: FakeClock | None = None) -> RateLimitedFetcher:
        http_client = httpx.Client(transport=httpx.MockTransport(self.handler))
        limiter = None
        if clock is not None:
            limiter = RateLimiter(min_interval, clock=clock, sleep=clock.sleep)
        return RateLimitedFetcher(
            {"base_url": BASE_URL, "min_interval": min_interval},
            http_client=http_client,
            rate_limiter=limiter,
        )


def build_index_html(
    title: str = "Test Novel",
    author: str = "Author Name",
    illustrator: str | None = None,
    cover_url: str | None = None,
    tags: tuple[str, ...] = (),
    summary: tuple[str, ...] = (),
    volumes: tuple[dict, ...] = (),
) -> str:
    """Build a novel index page in docln.net's markup.

    Each volume dict has "anchor", "title", optional "cover_url" and
    "chapters", a list of (title, href, illustrated) tuples.
    """
    parts = ['<html><head><meta charset="utf-8"/></head><body>']
    if cover_url:
        parts.append(
            '<div class="series-cover"><div class="a6-ratio">'
            f'<div class="content img-in-ratio" style="background-image: url(\'{cover_url}\')"></div>'
            "</div></div>"
        )
    if title:
        parts.append(f'<span class="series-name"><a href="/sang-tac/1">{title}</a></span>')
    parts.append('<div class="series-gernes">')
    parts.extend(f'<a href="/the-loai/{t.lower()}">{t}</a>' for t in tags)
    parts.append("</div>")
    if author:
        parts.append(
            '<div class="info-item"><span class="info-name">Tác giả:</span>'
            f'<span class="info-value"><a href="/tac-gia/1">{author}</a></span></div>'
        )
    if illustrator:
        parts.append(
            '<div class="info-item"><span class="info-name">Họa sĩ:</span>'
            f'<span class="info-value"><a href="/hoa-si/1">{illustrator}</a></span></div>'
        )
    parts.append('<div class="summary-content">')
    parts.extend(f"<p>{p}</p>" for p in summary)
    parts.append("</div>")

    parts.append('<section id="list-vol"><ol class="list-volume">')
    for volume in volumes:
        parts.append(
            f'<li data-scrollto="#{volume["anchor"]}">'
            f'<span class="list_vol-title">{volume["title"]}</span></li>'
        )
    parts.append("</ol></section>")

    for volume in volumes:
        parts.append('<section class="volume-list">')
        parts.append(f'<header id="{volume["anchor"]}"><span class="sect-title">{volume["title"]}</span></header>')
        if volume.get("cover_url"):
            parts.append(
                '<div class="volume-cover"><div class="a6-ratio">'
                f'<div class="content img-in-ratio" style="background-image: url(\'{volume["cover_url"]}\')"></div>'
                "</div></div>"
            )
        parts.append('<ul class="list-chapters">')
        for chapter_title, href, illustrated in volume.get("chapters", []):
            icon = '<i class="fas fa-image"></i>' if illustrated else ""
            parts.append(
                f'<li><div class="chapter-name"><a href="{href}">{chapter_title}</a>{icon}</div>'
                '<div class="chapter-time">01/01/2024</div></li>'
            )
        parts.append("</ul></section>")

    parts.append("</body></html>")
    return "".join(parts)


def build_chapter_html(body: str) -> str:
    """Build a chapter page wrapping body in div#chapter-content."""
    return (
        '<html><head><meta charset="utf-8"/></head><body>'
        '<div class="title-top"><h4>Chapter</h4></div>'
        f'<div id="chapter-content">{body}</div>'
        '<div id="footer">Site footer</div>'
        "</body></html>"
    )


@pytest.fixture
def fake_clock():
    """A controllable monotonic clock."""
    return FakeClock()


@pytest.fixture
def fake_site():
    """An empty in-memory site."""
    return FakeSite()


@pytest.fixture
def index_html():
    """Builder for novel index pages."""
    return build_index_html


@pytest.fixture
def chapter_html():
    """Builder for chapter pages."""
    return build_chapter_html


@pytest.fixture
def sample_index_html():
    """Index page for a two-volume novel with covers and illustrations."""
    return build_index_html(
        title="Test Novel",
        author="Author Name",
        illustrator="Illustrator Name",
        cover_url="https://i.docln.net/covers/novel.jpg",
        tags=("Action", "Fantasy"),
        summary=("First paragraph.", "", "Second paragraph."),
        volumes=(
            {
                "anchor": "volume_11",
                "title": "Volume One",
                "cover_url": "https://i.docln.net/covers/vol1.png",
                "chapters": [
                    ("Chapter 1", "/sang-tac/c101-chuong-1", True),
                    ("Chapter 2", "/sang-tac/c102-chuong-2", False),
                ],
            },
            {
                "anchor": "volume_12",
                "title": "Volume Two",
                "cover_url": "https://docln.net/img/nocover.jpg",
                "chapters": [
                    ("Chapter 3", "/sang-tac/c201-chuong-3", False),
                ],
            },
        ),
    )
