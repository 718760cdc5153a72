"""EPUB package builder.

Writes the structural files, one XHTML document per chapter, the OPF package
manifest and the NCX navigation document for a novel, then checks that the
manifest and the files under OEBPS/ agree exactly.
"""

import logging
from datetime import date
from pathlib import Path

from lxml import etree

from docln_epub.exceptions import (
    InconsistentManifestError,
    PackageError,
    PackageIOError,
)
from docln_epub.transformers import XhtmlTransformer
from schemas.novel import Novel, Volume
from schemas.package import ManifestItem, PackageResult

from .compiler import Compiler

logger = logging.getLogger(__name__)

OPF_NS = "http://www.idpf.org/2007/opf"
DC_NS = "http://purl.org/dc/elements/1.1/"
NCX_NS = "http://www.daisy.org/z3986/2005/ncx/"
CONTAINER_NS = "urn:oasis:names:tc:opendocument:xmlns:container"

MIMETYPE = "application/epub+zip"
XHTML_MEDIA_TYPE = "application/xhtml+xml"
NCX_MEDIA_TYPE = "application/x-dtbncx+xml"

CONTENT_DIRS = ("images", "text")
GENERATOR = "docln-epub"


def volume_dir(volume_seq: int) -> str:
    return f"volume_{volume_seq:03d}"


def chapter_name(chapter_seq: int) -> str:
    return f"chapter_{chapter_seq:03d}"


class PackageBuilder(Compiler):
    """Assemble an EPUB 2 package directory for a novel.

    The PackageBuilder:
    1. Writes mimetype and META-INF/container.xml
    2. Renders OEBPS/text/volume_NNN/chapter_NNN.xhtml for every chapter,
       using a placeholder page for failed chapters, plus chapter_000.xhtml
       for volumes with a cover
    3. Lists every text document and downloaded image in content.opf with
       the reading order in the spine
    4. Writes toc.ncx with volumes as top-level entries and chapters nested
    5. Verifies that the manifest and the OEBPS content directories match

    Attributes:
        package_dir: Package root (e.g. epub_12345/)
        oebps_dir: Content root holding content.opf and toc.ncx
    """

    def __init__(
        self,
        package_dir: Path,
        transformer: XhtmlTransformer | None = None,
        build_date: date | None = None,
        language: str = "vi",
    ):
        """Initialize the package builder.

        Args:
            package_dir: Directory to write the package into
            transformer: Renderer for text documents
            build_date: Date recorded in the metadata (default: today)
            language: Publication language code
        """
        self.package_dir = package_dir
        self.oebps_dir = package_dir / "OEBPS"
        self.transformer = transformer or XhtmlTransformer()
        self.build_date = build_date or date.today()
        self.language = language

    def build(self, novel: Novel) -> PackageResult:
        """Write the package for a novel.

        Raises:
            PackageIOError: If any file cannot be written
            PackageError: If novel text cannot be represented as XML
            InconsistentManifestError: If manifest and disk disagree
        """
        logger.info(f"Building package for novel {novel.novel_id} in {self.package_dir}")

        try:
            self._write_structure()
            items, spine = self._write_text_documents(novel)
            items = self._image_items(novel) + items
            items.insert(0, ManifestItem(id="ncx", href="toc.ncx", media_type=NCX_MEDIA_TYPE))
            self._write_xml(self.oebps_dir / "content.opf", self._build_opf(novel, items, spine))
            self._write_xml(self.oebps_dir / "toc.ncx", self._build_ncx(novel))
        except OSError as e:
            raise PackageIOError(f"Failed to write package {self.package_dir}: {e}") from e
        except (ValueError, etree.LxmlError) as e:
            raise PackageError(f"Failed to serialize package {self.package_dir}: {e}") from e

        result = PackageResult(root=str(self.package_dir), items=items, spine=spine)
        self.verify(result)

        logger.info(
            f"Built package {self.package_dir.name} with {len(result.text_items)} "
            f"text documents and {len(items) - len(result.text_items) - 1} images"
        )
        return result

    def verify(self, result: PackageResult) -> None:
        """Check that manifest entries and content files correspond exactly.

        Raises:
            InconsistentManifestError: On a missing or unlisted file
        """
        listed = {item.href for item in result.items}
        on_disk = set()
        for name in CONTENT_DIRS:
            root = self.oebps_dir / name
            if root.exists():
                on_disk.update(
                    p.relative_to(self.oebps_dir).as_posix()
                    for p in root.rglob("*")
                    if p.is_file()
                )

        missing = sorted(href for href in listed if not (self.oebps_dir / href).is_file())
        orphaned = sorted(on_disk - listed)
        if missing or orphaned:
            raise InconsistentManifestError(
                f"Manifest mismatch: {len(missing)} missing, {len(orphaned)} unlisted",
                missing=missing,
                orphaned=orphaned,
            )

    def _write_structure(self) -> None:
        meta_inf = self.package_dir / "META-INF"
        meta_inf.mkdir(parents=True, exist_ok=True)
        self.oebps_dir.mkdir(parents=True, exist_ok=True)

        (self.package_dir / "mimetype").write_text(MIMETYPE, encoding="ascii")

        container = etree.Element(f"{{{CONTAINER_NS}}}container", nsmap={None: CONTAINER_NS})
        container.set("version", "1.0")
        rootfiles = etree.SubElement(container, f"{{{CONTAINER_NS}}}rootfiles")
        rootfile = etree.SubElement(rootfiles, f"{{{CONTAINER_NS}}}rootfile")
        rootfile.set("full-path", "OEBPS/content.opf")
        rootfile.set("media-type", "application/oebps-package+xml")
        self._write_xml(meta_inf / "container.xml", container)

    def _write_text_documents(self, novel: Novel) -> tuple[list[ManifestItem], list[str]]:
        """Render every text document and return manifest items and spine."""
        items: list[ManifestItem] = []
        spine: list[str] = []

        for volume in novel.volumes:
            vol_dir = volume_dir(volume.sequence)
            text_dir = self.oebps_dir / "text" / vol_dir

            if volume.chapters or volume.has_cover:
                text_dir.mkdir(parents=True, exist_ok=True)

            if volume.has_cover:
                href = f"text/{vol_dir}/{chapter_name(0)}.xhtml"
                cover_href = self._relative_to_text(volume.cover.local_path)
                (self.oebps_dir / href).write_text(
                    self.transformer.render_volume_cover(volume, cover_href),
                    encoding="utf-8",
                )
                item_id = f"v{volume.sequence:03d}-cover-page"
                items.append(ManifestItem(id=item_id, href=href, media_type=XHTML_MEDIA_TYPE, in_spine=True))
                spine.append(item_id)

            for chapter in volume.chapters:
                href = f"text/{vol_dir}/{chapter_name(chapter.sequence)}.xhtml"
                (self.oebps_dir / href).write_text(
                    self.transformer.render_chapter(chapter), encoding="utf-8"
                )
                chapter.output_path = href
                logger.debug(f"Wrote {href} ({chapter.status})")

                item_id = f"v{volume.sequence:03d}-c{chapter.sequence:03d}"
                items.append(ManifestItem(id=item_id, href=href, media_type=XHTML_MEDIA_TYPE, in_spine=True))
                spine.append(item_id)

        return items, spine

    def _image_items(self, novel: Novel) -> list[ManifestItem]:
        items: list[ManifestItem] = []

        if novel.cover is not None and novel.cover.ok:
            items.append(
                ManifestItem(id="cover-image", href=novel.cover.local_path, media_type=novel.cover.media_type)
            )

        for volume in novel.volumes:
            prefix = f"v{volume.sequence:03d}"
            if volume.has_cover:
                items.append(
                    ManifestItem(id=f"{prefix}-cover", href=volume.cover.local_path, media_type=volume.cover.media_type)
                )
            for chapter in volume.chapters:
                for n, asset in enumerate(chapter.assets, start=1):
                    if not asset.ok:
                        continue
                    items.append(
                        ManifestItem(
                            id=f"{prefix}-c{chapter.sequence:03d}-img{n:03d}",
                            href=asset.local_path,
                            media_type=asset.media_type,
                        )
                    )
        return items

    def _build_opf(
        self, novel: Novel, items: list[ManifestItem], spine: list[str]
    ) -> etree._Element:
        """Build the OPF package document."""
        root = etree.Element(f"{{{OPF_NS}}}package", nsmap={None: OPF_NS})
        root.set("version", "2.0")
        root.set("unique-identifier", "BookId")

        metadata = etree.SubElement(
            root, f"{{{OPF_NS}}}metadata", nsmap={"dc": DC_NS, "opf": OPF_NS}
        )

        def dc(name: str, text: str) -> etree._Element:
            el = etree.SubElement(metadata, f"{{{DC_NS}}}{name}")
            el.text = text
            return el

        dc("identifier", f"docln:{novel.novel_id}").set("id", "BookId")
        dc("title", novel.title)
        dc("language", self.language)
        dc("creator", novel.author).set(f"{{{OPF_NS}}}role", "aut")
        if novel.illustrator:
            dc("contributor", novel.illustrator).set(f"{{{OPF_NS}}}role", "ill")
        for tag in novel.tags:
            dc("subject", tag)
        if novel.description:
            dc("description", novel.description)
        dc("publisher", GENERATOR)
        dc("date", self.build_date.isoformat())
        if novel.url:
            dc("source", novel.url)

        generator = etree.SubElement(metadata, f"{{{OPF_NS}}}meta")
        generator.set("name", "generator")
        generator.set("content", GENERATOR)

        has_cover = any(item.id == "cover-image" for item in items)
        if has_cover:
            cover_meta = etree.SubElement(metadata, f"{{{OPF_NS}}}meta")
            cover_meta.set("name", "cover")
            cover_meta.set("content", "cover-image")

        manifest = etree.SubElement(root, f"{{{OPF_NS}}}manifest")
        for item in items:
            el = etree.SubElement(manifest, f"{{{OPF_NS}}}item")
            el.set("id", item.id)
            el.set("href", item.href)
            el.set("media-type", item.media_type)

        spine_el = etree.SubElement(root, f"{{{OPF_NS}}}spine")
        spine_el.set("toc", "ncx")
        for item_id in spine:
            itemref = etree.SubElement(spine_el, f"{{{OPF_NS}}}itemref")
            itemref.set("idref", item_id)

        if has_cover:
            guide = etree.SubElement(root, f"{{{OPF_NS}}}guide")
            reference = etree.SubElement(guide, f"{{{OPF_NS}}}reference")
            reference.set("type", "cover")
            reference.set("title", "Cover")
            reference.set("href", novel.cover.local_path)

        return root

    def _build_ncx(self, novel: Novel) -> etree._Element:
        """Build the NCX navigation document."""
        root = etree.Element(f"{{{NCX_NS}}}ncx", nsmap={None: NCX_NS})
        root.set("version", "2005-1")

        head = etree.SubElement(root, f"{{{NCX_NS}}}head")
        for name, content in (
            ("dtb:uid", f"docln:{novel.novel_id}"),
            ("dtb:depth", "2"),
            ("dtb:totalPageCount", "0"),
            ("dtb:maxPageNumber", "0"),
        ):
            meta = etree.SubElement(head, f"{{{NCX_NS}}}meta")
            meta.set("name", name)
            meta.set("content", content)

        doc_title = etree.SubElement(root, f"{{{NCX_NS}}}docTitle")
        etree.SubElement(doc_title, f"{{{NCX_NS}}}text").text = novel.title
        doc_author = etree.SubElement(root, f"{{{NCX_NS}}}docAuthor")
        etree.SubElement(doc_author, f"{{{NCX_NS}}}text").text = novel.author

        nav_map = etree.SubElement(root, f"{{{NCX_NS}}}navMap")
        play_order = 0

        for volume in novel.volumes:
            target = self._volume_target(volume)
            if target is None:
                logger.debug(f"Volume {volume.sequence} has no documents; not listed in navigation")
                continue

            play_order += 1
            volume_point = self._nav_point(nav_map, play_order, volume.title, target)
            for chapter in volume.chapters:
                play_order += 1
                self._nav_point(volume_point, play_order, chapter.title, chapter.output_path)

        return root

    def _nav_point(
        self, parent: etree._Element, play_order: int, label: str, src: str
    ) -> etree._Element:
        point = etree.SubElement(parent, f"{{{NCX_NS}}}navPoint")
        point.set("id", f"navPoint{play_order}")
        point.set("playOrder", str(play_order))
        nav_label = etree.SubElement(point, f"{{{NCX_NS}}}navLabel")
        etree.SubElement(nav_label, f"{{{NCX_NS}}}text").text = label
        etree.SubElement(point, f"{{{NCX_NS}}}content").set("src", src)
        return point

    def _volume_target(self, volume: Volume) -> str | None:
        if volume.has_cover:
            return f"text/{volume_dir(volume.sequence)}/{chapter_name(0)}.xhtml"
        if volume.chapters:
            return volume.chapters[0].output_path
        return None

    def _relative_to_text(self, local_path: str) -> str:
        """Href of an OEBPS-relative file as seen from text/volume_NNN/."""
        return f"../../{local_path}"

    def _write_xml(self, path: Path, root: etree._Element) -> None:
        path.write_bytes(
            etree.tostring(
                root,
                xml_declaration=True,
                encoding="UTF-8",
                pretty_print=True,
            )
        )
        logger.debug(f"Wrote {path}")
