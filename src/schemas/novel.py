"""Novel content model.

A novel is fetched once per run and assembled into an EPUB package. The
hierarchy mirrors the way the site presents it:

    Novel
    └── Volume (1-based sequence)
        ├── cover (AssetReference, optional)
        └── Chapter (1-based sequence within its volume)
            └── assets (AssetReference per illustration)

Sequence numbers follow source order and are never renumbered: a chapter
that fails to download keeps its slot with status "failed".
"""

from typing import Literal

from pydantic import BaseModel

Category = Literal["original", "translated"]
FetchStatus = Literal["pending", "ok", "failed"]
AssetStatus = Literal["pending", "ok", "failed"]

CATEGORY_PATHS: dict[str, str] = {
    "original": "sang-tac",
    "translated": "ai-dich",
}


class AssetReference(BaseModel):
    """An image owned by a chapter, a volume or the novel itself.

    Attributes:
        source_url: URL the image was referenced by in the source markup
        local_path: Path relative to the OEBPS directory
        media_type: MIME type derived from the local file extension
        checksum: SHA-256 hash of the downloaded file
        status: Download status
        error: Failure reason when status is "failed"
    """

    source_url: str
    local_path: str
    media_type: str = "image/jpeg"
    checksum: str | None = None
    status: AssetStatus = "pending"
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class Chapter(BaseModel):
    """A chapter within a volume.

    Attributes:
        sequence: 1-based position within the volume
        title: Chapter title as listed on the index page
        url: Absolute chapter URL
        has_illustrations: Whether the index marks the chapter as illustrated
        raw_body: Extracted body markup, before transformation
        body: Transformed XHTML fragment
        assets: Illustrations referenced by the body, in document order
        status: Fetch status
        error: Failure reason when status is "failed"
        output_path: Path of the chapter document relative to OEBPS
    """

    sequence: int
    title: str
    url: str
    has_illustrations: bool = False
    raw_body: str | None = None
    body: str | None = None
    assets: list[AssetReference] = []
    status: FetchStatus = "pending"
    error: str | None = None
    output_path: str | None = None

    def mark_failed(self, reason: str) -> None:
        """Record a failure while keeping the chapter's slot."""
        self.status = "failed"
        self.error = reason
        self.body = None


class Volume(BaseModel):
    """A volume of a novel.

    Attributes:
        sequence: 1-based position within the novel
        title: Volume title
        anchor: Element id of the volume section on the index page
        cover_url: Cover image URL, if the site provides a real one
        cover: Downloaded cover image
        chapters: Chapters in source order
    """

    sequence: int
    title: str
    anchor: str = ""
    cover_url: str | None = None
    cover: AssetReference | None = None
    chapters: list[Chapter] = []

    @property
    def has_cover(self) -> bool:
        return self.cover is not None and self.cover.ok


class Novel(BaseModel):
    """A novel and everything fetched for it during one run.

    Attributes:
        novel_id: Site-assigned identifier
        category: Site section the novel is published under
        title: Novel title
        author: Author name
        illustrator: Illustrator name, when credited
        description: Summary paragraphs joined with newlines
        tags: Genre tags in page order
        url: Index page URL
        cover_url: Novel cover image URL, if the site provides a real one
        cover: Downloaded novel cover
        volumes: Volumes in source order
    """

    novel_id: str
    category: Category
    title: str
    author: str
    illustrator: str | None = None
    description: str = ""
    tags: list[str] = []
    url: str = ""
    cover_url: str | None = None
    cover: AssetReference | None = None
    volumes: list[Volume] = []

    @property
    def chapters(self) -> list[Chapter]:
        return [chapter for volume in self.volumes for chapter in volume.chapters]
