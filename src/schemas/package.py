"""Package and run result schemas.

Directory structure produced for one novel:
    epub_{novel_id}/
    ├── mimetype
    ├── META-INF/
    │   └── container.xml
    └── OEBPS/
        ├── content.opf           # package manifest
        ├── toc.ncx               # navigation document
        ├── images/
        │   ├── cover.jpg
        │   └── volume_{NNN}/
        │       ├── cover.jpg
        │       └── chapter_{NNN}/
        │           └── {NNN}.jpg
        └── text/
            └── volume_{NNN}/
                ├── chapter_000.xhtml   # volume cover page
                └── chapter_{NNN}.xhtml
"""

from pydantic import BaseModel

from .novel import Novel


class ManifestItem(BaseModel):
    """An entry in the package manifest.

    Attributes:
        id: Unique manifest identifier
        href: Path relative to the OEBPS directory
        media_type: MIME type of the file
        in_spine: Whether the item is part of the reading order
    """

    id: str
    href: str
    media_type: str
    in_spine: bool = False


class PackageResult(BaseModel):
    """Outcome of building a package.

    Attributes:
        root: Package root directory
        items: Manifest items in manifest order
        spine: Manifest ids in reading order
        archive_path: Path of the compressed .epub, if one was written
    """

    root: str
    items: list[ManifestItem] = []
    spine: list[str] = []
    archive_path: str | None = None

    @property
    def text_items(self) -> list[ManifestItem]:
        return [i for i in self.items if i.media_type == "application/xhtml+xml"]


class RunSummary(BaseModel):
    """Counts reported at the end of every run.

    Attributes:
        novel_id: Novel the run processed
        chapters_ok: Chapters fetched and transformed
        chapters_failed: Chapters represented by placeholder pages
        assets_ok: Images downloaded
        assets_failed: Images that could not be downloaded
        failures: Human-readable failure descriptions
    """

    novel_id: str
    chapters_ok: int = 0
    chapters_failed: int = 0
    assets_ok: int = 0
    assets_failed: int = 0
    failures: list[str] = []


class CrawlResult(BaseModel):
    """Everything a completed run produced.

    Attributes:
        novel: The populated content model
        summary: Success and failure counts
        package: The written package
    """

    novel: Novel
    summary: RunSummary
    package: PackageResult
