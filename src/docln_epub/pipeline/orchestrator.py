"""Crawl orchestrator for end-to-end novel → EPUB processing.

Runs one novel through the pipeline:

    init → index_fetched → volume_loop → packaged
                 ↘ aborted (index or package failure, or cancel())

Chapter and image failures are recorded on the content model and counted in
the run summary; they never stop the run.
"""

import logging
import shutil
import threading
from datetime import date
from pathlib import Path
from typing import Literal

from bs4 import Tag
from lxml import etree

from docln_epub.aggregators import AssetResolver
from docln_epub.clients import (
    FetchError,
    FetchTimeoutError,
    RateLimitedFetcher,
    TransportError,
)
from docln_epub.compilers import EpubArchiver, PackageBuilder
from docln_epub.compilers.package_builder import chapter_name, volume_dir
from docln_epub.exceptions import CrawlAbortedError, ExtractError, PackageError
from docln_epub.extractors import MarkupExtractor
from docln_epub.transformers import XhtmlTransformer
from schemas.listing import VolumeListing
from schemas.novel import CATEGORY_PATHS, Category, Chapter, Novel, Volume
from schemas.package import CrawlResult, PackageResult, RunSummary
from schemas.raw_page import RawPage

logger = logging.getLogger(__name__)

CrawlState = Literal["init", "index_fetched", "volume_loop", "packaged", "aborted"]


class CrawlOrchestrator:
    """Fetch a novel, transform its chapters and package it as an EPUB.

    The orchestrator is the only writer of the Novel, its volumes and
    chapters during a run, and owns output_dir/epub_{novel_id}/ for the
    run's duration. Volumes and chapters are processed strictly in source
    order.

    Attributes:
        fetcher: Rate-limited fetcher shared by every request of the run
        output_dir: Directory receiving epub_{novel_id}/ and the .epub file
        retry_attempts: Attempts per page for timeouts and transport errors
        create_archive: Whether to compress the package into an .epub
        keep_directory: Whether to keep the package directory after compressing
        state: Current pipeline state

    Example:
        with RateLimitedFetcher(config) as fetcher:
            orchestrator = CrawlOrchestrator(fetcher, Path("./output"))
            result = orchestrator.run("original", "12345")
    """

    def __init__(
        self,
        fetcher: RateLimitedFetcher,
        output_dir: Path,
        extractor: MarkupExtractor | None = None,
        transformer: XhtmlTransformer | None = None,
        archiver: EpubArchiver | None = None,
        retry_attempts: int = 3,
        create_archive: bool = True,
        keep_directory: bool = True,
        build_date: date | None = None,
    ):
        if retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")

        self.fetcher = fetcher
        self.output_dir = output_dir
        self.extractor = extractor or MarkupExtractor()
        self.transformer = transformer or XhtmlTransformer()
        self.archiver = archiver or EpubArchiver()
        self.retry_attempts = retry_attempts
        self.create_archive = create_archive
        self.keep_directory = keep_directory
        self.build_date = build_date

        self.state: CrawlState = "init"
        self._cancelled = threading.Event()

    def index_url(self, category: Category, novel_id: str) -> str:
        return f"{self.fetcher.base_url}/{CATEGORY_PATHS[category]}/{novel_id}"

    def cancel(self) -> None:
        """Request that the run stop at the next volume or chapter boundary."""
        self._cancelled.set()

    def run(self, category: Category, novel_id: str) -> CrawlResult:
        """Run one novel through the full pipeline.

        Args:
            category: Site section the novel is published under
            novel_id: Site-assigned novel identifier

        Returns:
            CrawlResult with the populated novel, run summary and package

        Raises:
            CrawlAbortedError: If the index cannot be fetched or parsed, the
                               package cannot be written, or the run was
                               cancelled. A partially written package
                               directory should be discarded.
        """
        novel_id = str(novel_id)
        self.state = "init"
        summary = RunSummary(novel_id=novel_id)
        package_dir = self.output_dir / f"epub_{novel_id}"
        oebps_dir = package_dir / "OEBPS"

        novel: Novel | None = None

        try:
            self._prepare(package_dir)
            resolver = AssetResolver(self.fetcher, oebps_dir)

            novel, doc = self._fetch_index(category, novel_id)
            volume_listings = self.extractor.extract_volume_list(doc)
            self.state = "index_fetched"

            if novel.cover_url:
                novel.cover = resolver.resolve_cover(novel.cover_url, oebps_dir / "images")

            self.state = "volume_loop"
            for sequence, listing in enumerate(volume_listings, start=1):
                self._check_cancelled(novel_id)
                novel.volumes.append(
                    self._process_volume(doc, sequence, listing, resolver, summary)
                )

            self._check_cancelled(novel_id)
            package = self._package(novel, package_dir)
            self.state = "packaged"
        except ExtractError as e:
            self._abort(novel, summary)
            raise CrawlAbortedError(e.message, novel_id=novel_id, step="index") from e
        except CrawlAbortedError:
            self._abort(novel, summary)
            raise

        self._count(novel, summary)
        self._report(summary)
        return CrawlResult(novel=novel, summary=summary, package=package)

    def _prepare(self, package_dir: Path) -> None:
        try:
            if package_dir.exists():
                logger.info(f"Removing previous package directory {package_dir}")
                shutil.rmtree(package_dir)
            (package_dir / "OEBPS").mkdir(parents=True)
        except OSError as e:
            raise CrawlAbortedError(
                f"Cannot prepare {package_dir}: {e}",
                novel_id=package_dir.name.removeprefix("epub_"),
                step="setup",
            ) from e

    def _abort(self, novel: Novel | None, summary: RunSummary) -> None:
        self.state = "aborted"
        if novel is not None:
            self._count(novel, summary)
        self._report(summary)

    def _fetch_index(self, category: Category, novel_id: str) -> tuple[Novel, Tag]:
        url = self.index_url(category, novel_id)
        logger.info(f"Fetching novel index {url}")
        try:
            page = self._fetch_page(url)
        except FetchError as e:
            raise CrawlAbortedError(e.message, novel_id=novel_id, step="index") from e

        doc = self.extractor.parse(page.content)
        index = self.extractor.extract_novel_index(doc)
        novel = Novel(
            novel_id=novel_id,
            category=category,
            url=url,
            **index.model_dump(),
        )
        logger.info(f"Found novel '{novel.title}' by {novel.author}")
        return novel, doc

    def _process_volume(
        self,
        doc: Tag,
        sequence: int,
        listing: VolumeListing,
        resolver: AssetResolver,
        summary: RunSummary,
    ) -> Volume:
        volume = Volume(
            sequence=sequence,
            title=listing.title,
            anchor=listing.anchor,
            cover_url=listing.cover_url,
        )
        images_dir = resolver.oebps_dir / "images" / volume_dir(sequence)

        if volume.cover_url:
            volume.cover = resolver.resolve_cover(volume.cover_url, images_dir)

        try:
            listings = self.extractor.extract_volume_chapters(doc, listing.anchor)
        except ExtractError as e:
            logger.warning(f"Volume '{volume.title}': {e.message}")
            summary.failures.append(f"Volume {sequence} '{volume.title}': {e.message}")
            listings = []

        logger.info(f"Processing volume {sequence} '{volume.title}' with {len(listings)} chapters")
        for chapter_seq, chapter_listing in enumerate(listings, start=1):
            self._check_cancelled(summary.novel_id)
            chapter = Chapter(
                sequence=chapter_seq,
                title=chapter_listing.title,
                url=self.fetcher.absolute_url(chapter_listing.url),
                has_illustrations=chapter_listing.has_illustrations,
            )
            self._process_chapter(volume, chapter, resolver, images_dir)
            if chapter.status == "failed":
                summary.failures.append(
                    f"Volume {sequence} chapter {chapter_seq} '{chapter.title}': {chapter.error}"
                )
            volume.chapters.append(chapter)

        return volume

    def _process_chapter(
        self,
        volume: Volume,
        chapter: Chapter,
        resolver: AssetResolver,
        images_dir: Path,
    ) -> None:
        """Fetch, extract, resolve images and transform one chapter in place."""
        try:
            page = self._fetch_page(chapter.url)
            chapter.raw_body = self.extractor.extract_chapter_body(
                self.extractor.parse(page.content)
            )
        except (FetchError, ExtractError) as e:
            logger.warning(f"Chapter '{chapter.title}' failed: {e.message}")
            chapter.mark_failed(e.message)
            return

        image_urls = self.extractor.extract_image_urls(chapter.raw_body)
        if image_urls:
            chapter.assets = resolver.resolve(
                image_urls, images_dir / chapter_name(chapter.sequence)
            )

        asset_map = resolver.asset_map(chapter.assets, f"text/{volume_dir(volume.sequence)}")
        try:
            chapter.body = self.transformer.transform(chapter.raw_body, asset_map)
        except etree.LxmlError as e:
            logger.warning(f"Chapter '{chapter.title}' could not be transformed: {e}")
            chapter.mark_failed(f"Transform failed: {e}")
            return

        chapter.status = "ok"
        failed = sum(1 for a in chapter.assets if not a.ok)
        logger.info(
            f"  Chapter {chapter.sequence} '{chapter.title}': ok"
            + (f" ({failed} of {len(chapter.assets)} images failed)" if failed else "")
        )

    def _fetch_page(self, url: str) -> RawPage:
        """Fetch a page, retrying timeouts and transport errors.

        HTTP status errors are not retried. Every attempt goes through the
        fetcher's rate limiter.
        """
        last_error: FetchError | None = None
        for attempt in range(self.retry_attempts):
            try:
                return self.fetcher.fetch(url)
            except (FetchTimeoutError, TransportError) as e:
                last_error = e
                logger.warning(
                    f"{e.message} (attempt {attempt + 1}/{self.retry_attempts})"
                )
        raise last_error

    def _package(self, novel: Novel, package_dir: Path) -> PackageResult:
        builder = PackageBuilder(
            package_dir, transformer=self.transformer, build_date=self.build_date
        )
        try:
            package = builder.build(novel)
            if self.create_archive:
                archive = self.archiver.compress(
                    package_dir, remove_directory=not self.keep_directory
                )
                package.archive_path = str(archive)
        except PackageError as e:
            raise CrawlAbortedError(e.message, novel_id=novel.novel_id, step="package") from e
        return package

    def _check_cancelled(self, novel_id: str) -> None:
        if self._cancelled.is_set():
            raise CrawlAbortedError("Run cancelled", novel_id=novel_id, step="cancelled")

    def _count(self, novel: Novel, summary: RunSummary) -> None:
        for chapter in novel.chapters:
            if chapter.status == "ok":
                summary.chapters_ok += 1
            else:
                summary.chapters_failed += 1

        assets = [a for c in novel.chapters for a in c.assets]
        assets += [v.cover for v in novel.volumes if v.cover is not None]
        if novel.cover is not None:
            assets.append(novel.cover)
        for asset in assets:
            if asset.ok:
                summary.assets_ok += 1
            else:
                summary.assets_failed += 1
                summary.failures.append(f"Image {asset.source_url}: {asset.error}")

    def _report(self, summary: RunSummary) -> None:
        logger.info(
            f"Novel {summary.novel_id}: {summary.chapters_ok} chapters succeeded, "
            f"{summary.chapters_failed} failed; {summary.assets_ok} images succeeded, "
            f"{summary.assets_failed} failed"
        )
        for failure in summary.failures:
            logger.warning(f"  - {failure}")
