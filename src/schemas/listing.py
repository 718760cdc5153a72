"""Structured fields extracted from site pages.

These are the intermediate results of markup extraction, before the
orchestrator turns them into the Novel/Volume/Chapter content model.
"""

from pydantic import BaseModel


class ChapterListing(BaseModel):
    """A chapter entry from a volume's chapter list."""

    title: str
    url: str
    has_illustrations: bool = False


class VolumeListing(BaseModel):
    """A volume entry from the novel index.

    Attributes:
        title: Volume title
        anchor: Element id of the volume section (without the leading '#')
        cover_url: Cover image URL, or None when absent or the site placeholder
    """

    title: str
    anchor: str
    cover_url: str | None = None


class NovelIndex(BaseModel):
    """Novel-level fields from the index page.

    Attributes:
        title: Novel title
        author: Author name
        illustrator: Illustrator name, or None when not credited
        description: Summary paragraphs joined with newlines
        tags: Genre tags in page order
        cover_url: Cover image URL, or None when absent or the site placeholder
    """

    title: str
    author: str
    illustrator: str | None = None
    description: str = ""
    tags: list[str] = []
    cover_url: str | None = None
