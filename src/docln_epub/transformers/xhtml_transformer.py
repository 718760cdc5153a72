"""XHTML Transformer for converting chapter markup to EPUB text documents.

Normalizes extracted chapter paragraphs into well-formed XHTML with lxml,
rewrites illustration sources to package-local paths, and renders complete
chapter and volume cover documents through Jinja2 templates.
"""

import logging
from pathlib import Path
from xml.sax.saxutils import escape

from jinja2 import Environment, FileSystemLoader
from lxml import etree
from lxml import html as lxml_html

from docln_epub.aggregators import AssetMap
from schemas.novel import Chapter, Volume

from .filters import FILTERS, xml_text
from .transformer import Transformer

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"

DROPPED_TAGS = ("script", "style", "iframe", "noscript", "object", "embed", "form")
LAZY_IMAGE_ATTRIBUTES = ("srcset", "data-src", "data-srcset", "loading")
MISSING_IMAGE_CLASS = "illustration-missing"


class XhtmlTransformer(Transformer):
    """Transform chapter markup into XHTML fragments and documents.

    The transformer:
    1. Parses the raw body with lxml's HTML parser, which repairs nesting
    2. Drops scripts, embeds, comments and event-handler attributes
    3. Rewrites each <img> to its local href from the asset map, or replaces
       it with an inert text marker when the image is not available locally
    4. Serializes the result as XML so it is valid inside an XHTML document

    Output depends only on the input markup and asset map.
    """

    def __init__(
        self,
        chapter_template: str = "chapter.xhtml.j2",
        volume_cover_template: str = "volume_cover.xhtml.j2",
        templates_dir: Path | None = None,
    ):
        """Initialize the XHTML transformer.

        Args:
            chapter_template: Template for chapter and placeholder documents
            volume_cover_template: Template for volume cover documents
            templates_dir: Directory containing templates (default: ./templates)
        """
        self.chapter_template = chapter_template
        self.volume_cover_template = volume_cover_template
        self.templates_dir = templates_dir or TEMPLATES_DIR

        self._env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=True,
        )
        for name, func in FILTERS.items():
            self._env.filters[name] = func

    def transform(self, raw_body: str, asset_map: AssetMap) -> str:
        """Transform raw chapter markup into an XHTML fragment.

        Args:
            raw_body: Markup extracted from the chapter page
            asset_map: Source URL to local href(s). A list value is consumed
                       one entry per occurrence of the URL; None entries and
                       unknown URLs leave the image unlinked.

        Returns:
            Fragment markup with every element closed and text escaped
        """
        if not raw_body or not raw_body.strip():
            return ""

        container = lxml_html.fragment_fromstring(xml_text(raw_body), create_parent="div")
        self._strip_unsafe(container)
        self._clean_text(container)
        self._rewrite_images(container, asset_map)

        parts = []
        if container.text:
            parts.append(escape(container.text))
        for child in container:
            parts.append(etree.tostring(child, method="xml", encoding="unicode"))
        return "".join(parts).strip()

    def render_chapter(self, chapter: Chapter) -> str:
        """Render a full chapter document.

        Chapters without a body (failed fetches) render as a placeholder
        page that keeps the chapter's title.
        """
        template = self._env.get_template(self.chapter_template)
        return template.render(
            title=chapter.title,
            body=chapter.body or "",
            available=chapter.status == "ok",
        )

    def render_volume_cover(self, volume: Volume, cover_href: str) -> str:
        """Render the cover page shown before a volume's first chapter."""
        template = self._env.get_template(self.volume_cover_template)
        return template.render(title=volume.title, cover_href=cover_href)

    def _strip_unsafe(self, container: etree._Element) -> None:
        for el in container.xpath(
            " | ".join(f".//{tag}" for tag in DROPPED_TAGS) + " | .//comment()"
        ):
            el.drop_tree()

        for el in container.iter(etree.Element):
            for name in list(el.attrib):
                if name.lower().startswith("on"):
                    del el.attrib[name]

    def _clean_text(self, container: etree._Element) -> None:
        """Drop non-XML characters that character references reintroduce."""
        for el in container.iter():
            if el.text:
                el.text = xml_text(el.text)
            if el.tail:
                el.tail = xml_text(el.tail)
            if isinstance(el.tag, str):
                for name, value in el.attrib.items():
                    el.set(name, xml_text(value))

    def _rewrite_images(self, container: etree._Element, asset_map: AssetMap) -> None:
        seen: dict[str, int] = {}

        for img in list(container.iter("img")):
            src = (img.get("src") or "").strip()
            occurrence = seen.get(src, 0)
            seen[src] = occurrence + 1

            href = self._lookup(asset_map, src, occurrence)
            if href is not None:
                img.set("src", href)
                if img.get("alt") is None:
                    img.set("alt", "")
                for name in LAZY_IMAGE_ATTRIBUTES:
                    img.attrib.pop(name, None)
                continue

            logger.debug(f"Leaving image {src!r} unlinked")
            marker = lxml_html.Element("span")
            marker.set("class", MISSING_IMAGE_CLASS)
            marker.text = f"[Illustration unavailable: {src}]"
            marker.tail = img.tail
            img.getparent().replace(img, marker)

    def _lookup(self, asset_map: AssetMap, src: str, occurrence: int) -> str | None:
        hrefs = asset_map.get(src)
        if hrefs is None:
            return None
        if isinstance(hrefs, str):
            return hrefs
        if occurrence < len(hrefs):
            return hrefs[occurrence]
        return None
