"""Schema definitions for docln-epub."""

from .listing import ChapterListing, NovelIndex, VolumeListing
from .novel import CATEGORY_PATHS, AssetReference, Category, Chapter, Novel, Volume
from .package import CrawlResult, ManifestItem, PackageResult, RunSummary
from .raw_page import RawPage

__all__ = [
    "AssetReference",
    "CATEGORY_PATHS",
    "Category",
    "Chapter",
    "ChapterListing",
    "CrawlResult",
    "ManifestItem",
    "Novel",
    "NovelIndex",
    "PackageResult",
    "RawPage",
    "RunSummary",
    "Volume",
    "VolumeListing",
]
