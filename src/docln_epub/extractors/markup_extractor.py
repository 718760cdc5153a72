"""Field extraction for docln.net pages.

All CSS selectors for the site live in this module. Each extract_* method
takes a parsed document and returns schema objects; a required element that
is missing raises MissingFieldError, while optional ones (covers,
illustrator, tags) come back as None or empty.
"""

import logging
import re

from bs4 import Tag

from docln_epub.exceptions import MissingFieldError
from docln_epub.transformers.filters import xml_text
from schemas.listing import ChapterListing, NovelIndex, VolumeListing

from .html_parser import HtmlParser

logger = logging.getLogger(__name__)

AUTHOR_LABEL = "Tác giả:"
ILLUSTRATOR_LABEL = "Họa sĩ:"
DEFAULT_VOLUME_TITLE = "Unknown volume"
PLACEHOLDER_COVER_MARKER = "nocover"

STYLE_URL_PATTERN = re.compile(r"url\(\s*['\"]?(.*?)['\"]?\s*\)")


def _text(node: Tag | None) -> str:
    if node is None:
        return ""
    return xml_text(node.get_text()).strip()


class MarkupExtractor:
    """Extract novel, volume and chapter fields from docln.net markup.

    Example:
        extractor = MarkupExtractor()
        doc = extractor.parse(page.content)
        index = extractor.extract_novel_index(doc)
        volumes = extractor.extract_volume_list(doc)
    """

    def __init__(self, parser: HtmlParser | None = None):
        self.parser = parser or HtmlParser()

    def parse(self, markup: bytes | str) -> Tag:
        return self.parser.parse(markup)

    def extract_novel_index(self, doc: Tag) -> NovelIndex:
        """Extract novel-level metadata from the index page.

        Raises:
            MissingFieldError: If the title or author is absent
        """
        title = _text(self.parser.select_one(doc, "span.series-name > a"))
        if not title:
            raise MissingFieldError("title")

        author = ""
        illustrator = None
        for item in self.parser.select(doc, "div.info-item"):
            label = _text(self.parser.select_one(item, "span.info-name"))
            value = _text(self.parser.select_one(item, "span.info-value > a"))
            if AUTHOR_LABEL in label:
                author = value
            elif ILLUSTRATOR_LABEL in label and value:
                illustrator = value

        if not author:
            raise MissingFieldError("author")

        paragraphs = [
            _text(p) for p in self.parser.select(doc, "div.summary-content > p")
        ]
        tags = [_text(a) for a in self.parser.select(doc, "div.series-gernes > a")]

        return NovelIndex(
            title=title,
            author=author,
            illustrator=illustrator,
            description="\n".join(p for p in paragraphs if p),
            tags=[t for t in tags if t],
            cover_url=self._cover_url(
                self.parser.select_one(doc, "div.content.img-in-ratio")
            ),
        )

    def extract_volume_list(self, doc: Tag) -> list[VolumeListing]:
        """Extract volumes in page order.

        Entries without a section anchor cannot be linked to a chapter list
        and are skipped.

        Raises:
            MissingFieldError: If the volume list section is absent
        """
        section = self.parser.select_one(doc, "section#list-vol")
        if section is None:
            raise MissingFieldError("volume list")

        volumes: list[VolumeListing] = []
        for item in self.parser.select(section, "ol.list-volume > li"):
            anchor = (item.get("data-scrollto") or "").lstrip("#")
            if not anchor:
                logger.debug("Skipping volume entry without data-scrollto")
                continue

            title = _text(self.parser.select_one(item, "span.list_vol-title"))
            cover_div = None
            container = self._volume_container(doc, anchor)
            if container is not None:
                cover_div = self.parser.select_one(
                    container, "div.volume-cover div.content.img-in-ratio"
                )

            volumes.append(
                VolumeListing(
                    title=title or DEFAULT_VOLUME_TITLE,
                    anchor=anchor,
                    cover_url=self._cover_url(cover_div),
                )
            )
        return volumes

    def extract_volume_chapters(self, doc: Tag, anchor: str) -> list[ChapterListing]:
        """Extract the chapter list of one volume in page order.

        Raises:
            MissingFieldError: If the volume section cannot be found
        """
        container = self._volume_container(doc, anchor)
        if container is None:
            raise MissingFieldError(f"volume section {anchor}")

        chapter_list = self.parser.select_one(container, "ul.list-chapters")
        if chapter_list is None:
            return []

        chapters: list[ChapterListing] = []
        for item in self.parser.select(chapter_list, "li"):
            name_div = self.parser.select_one(item, "div.chapter-name")
            if name_div is None:
                continue
            link = self.parser.select_one(name_div, "a")
            if link is None:
                continue

            title = _text(link)
            url = (link.get("href") or "").strip()
            if not title or not url:
                continue

            chapters.append(
                ChapterListing(
                    title=title,
                    url=url,
                    has_illustrations=self.parser.select_one(name_div, "i") is not None,
                )
            )
        return chapters

    def extract_chapter_body(self, doc: Tag) -> str:
        """Extract the chapter's paragraphs as raw markup.

        Raises:
            MissingFieldError: If the chapter content container is absent
        """
        content = self.parser.select_one(doc, "div#chapter-content")
        if content is None:
            raise MissingFieldError("chapter content")

        return "\n".join(str(p) for p in self.parser.select(content, "p"))

    def extract_image_urls(self, body: str | Tag) -> list[str]:
        """Return image sources in document order.

        Duplicates are kept; each occurrence is a separate reference.
        """
        node = self.parse(body) if isinstance(body, str) else body
        urls = []
        for img in self.parser.select(node, "img[src]"):
            src = (img.get("src") or "").strip()
            if src:
                urls.append(src)
        return urls

    def _volume_container(self, doc: Tag, anchor: str) -> Tag | None:
        header = self.parser.select_one(doc, f'header[id="{anchor}"]')
        if header is None:
            return None
        return header.parent

    def _cover_url(self, cover_div: Tag | None) -> str | None:
        if cover_div is None:
            return None
        match = STYLE_URL_PATTERN.search(cover_div.get("style") or "")
        if match is None or not match.group(1):
            return None
        url = match.group(1)
        if PLACEHOLDER_COVER_MARKER in url:
            logger.debug(f"Ignoring placeholder cover {url}")
            return None
        return url
