"""Image download and local path assignment for chapters and volumes."""

import hashlib
import logging
import posixpath
from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit

from docln_epub.clients import FetchError, RateLimitedFetcher
from docln_epub.exceptions import AssetDownloadError
from schemas.novel import AssetReference

logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}
DEFAULT_EXTENSION = "jpg"

AssetMap = dict[str, list[str | None]]


class AssetResolver:
    """Downloads images into the package and assigns their local paths.

    Local filenames come from an image's position in its sequence
    (001.jpg, 002.png, ...) and never from the remote filename. Only the
    extension is taken from the URL, and only when it is a known image type.
    A failed download is recorded on its AssetReference and does not stop
    the remaining images.

    Example:
        resolver = AssetResolver(fetcher, oebps_dir)
        refs = resolver.resolve(urls, oebps_dir / "images/volume_001/chapter_001")
        asset_map = resolver.asset_map(refs, "text/volume_001")
    """

    def __init__(self, fetcher: RateLimitedFetcher, oebps_dir: Path):
        """Initialize the resolver.

        Args:
            fetcher: Fetcher used for every download
            oebps_dir: Package content root; local paths are relative to it
        """
        self.fetcher = fetcher
        self.oebps_dir = oebps_dir

    def resolve(self, asset_urls: list[str], target_dir: Path) -> list[AssetReference]:
        """Download each URL into target_dir.

        Every URL gets its own file, even when the same URL occurs twice.

        Args:
            asset_urls: Image URLs in document order
            target_dir: Directory under oebps_dir to write files to

        Returns:
            One AssetReference per URL, in the same order
        """
        refs: list[AssetReference] = []
        for position, url in enumerate(asset_urls, start=1):
            filename = f"{position:03d}.{self._extension(url)}"
            refs.append(self._download(url, target_dir / filename))
        return refs

    def resolve_cover(self, url: str, target_dir: Path) -> AssetReference:
        """Download a cover image as target_dir/cover.{ext}."""
        return self._download(url, target_dir / f"cover.{self._extension(url)}")

    def asset_map(self, refs: list[AssetReference], document_dir: str) -> AssetMap:
        """Map source URLs to hrefs relative to a text document's directory.

        Each URL maps to one entry per occurrence, in order; failed downloads
        are None so the transformer can leave them unlinked.

        Args:
            refs: References returned by resolve()
            document_dir: Directory of the referencing document, relative
                          to oebps_dir (e.g. "text/volume_001")
        """
        mapping: AssetMap = {}
        for ref in refs:
            href = posixpath.relpath(ref.local_path, document_dir) if ref.ok else None
            mapping.setdefault(ref.source_url, []).append(href)
        return mapping

    def _download(self, url: str, destination: Path) -> AssetReference:
        ext = destination.suffix.lstrip(".")
        ref = AssetReference(
            source_url=url,
            local_path=destination.relative_to(self.oebps_dir).as_posix(),
            media_type=MEDIA_TYPES.get(ext, "application/octet-stream"),
        )

        try:
            self._download_file(url, destination)
        except AssetDownloadError as e:
            logger.warning(f"Failed to download image {url}: {e.message}")
            ref.status = "failed"
            ref.error = e.message
            return ref

        ref.status = "ok"
        ref.checksum = self._compute_checksum(destination)
        logger.debug(f"Downloaded image {url} to {ref.local_path}")
        return ref

    def _download_file(self, url: str, destination: Path) -> None:
        """Fetch url and write it to destination.

        Raises:
            AssetDownloadError: If the fetch or the write fails
        """
        try:
            page = self.fetcher.fetch(url)
        except FetchError as e:
            raise AssetDownloadError(e.message, source_url=url) from e

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(page.content)
        except OSError as e:
            destination.unlink(missing_ok=True)
            raise AssetDownloadError(
                f"Could not write {destination}: {e}", source_url=url
            ) from e

    def _extension(self, url: str) -> str:
        suffix = PurePosixPath(urlsplit(url).path).suffix.lower().lstrip(".")
        return suffix if suffix in MEDIA_TYPES else DEFAULT_EXTENSION

    def _compute_checksum(self, file_path: Path) -> str:
        """Compute SHA-256 checksum of a file."""
        sha256 = hashlib.sha256()
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(8192), b""):
                sha256.update(chunk)
        return sha256.hexdigest()
