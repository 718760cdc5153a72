"""Compress a package directory into a single .epub archive."""

import logging
import shutil
import zipfile
from pathlib import Path

from docln_epub.exceptions import PackageIOError

logger = logging.getLogger(__name__)

# Fixed timestamp so identical packages produce identical archives
ZIP_TIMESTAMP = (1980, 1, 1, 0, 0, 0)


class EpubArchiver:
    """Write a package directory as an OCF zip container.

    The mimetype file is written first and stored uncompressed, as readers
    require; every other file follows in sorted path order, deflated.

    Example:
        archiver = EpubArchiver()
        epub_path = archiver.compress(Path("epub_12345"))  # -> docln_12345.epub
    """

    def compress(
        self,
        package_dir: Path,
        archive_path: Path | None = None,
        remove_directory: bool = False,
    ) -> Path:
        """Compress package_dir into an .epub file.

        Args:
            package_dir: Package root containing mimetype
            archive_path: Output file (default: docln_{id}.epub beside package_dir)
            remove_directory: Delete package_dir after a successful write

        Returns:
            Path of the written archive

        Raises:
            PackageIOError: If the package cannot be read or the archive written
        """
        archive_path = archive_path or self.default_archive_path(package_dir)
        mimetype_path = package_dir / "mimetype"
        if not mimetype_path.is_file():
            raise PackageIOError(f"No mimetype file in {package_dir}")

        logger.info(f"Compressing {package_dir} to {archive_path}")
        try:
            with zipfile.ZipFile(archive_path, "w") as zf:
                self._add(zf, mimetype_path, "mimetype", zipfile.ZIP_STORED)
                for path in sorted(package_dir.rglob("*")):
                    if not path.is_file() or path == mimetype_path:
                        continue
                    arcname = path.relative_to(package_dir).as_posix()
                    self._add(zf, path, arcname, zipfile.ZIP_DEFLATED)
        except OSError as e:
            raise PackageIOError(f"Failed to write archive {archive_path}: {e}") from e

        if remove_directory:
            shutil.rmtree(package_dir)
            logger.debug(f"Removed package directory {package_dir}")

        return archive_path

    def default_archive_path(self, package_dir: Path) -> Path:
        name = package_dir.name
        novel_id = name[len("epub_"):] if name.startswith("epub_") else name
        return package_dir.parent / f"docln_{novel_id}.epub"

    def _add(self, zf: zipfile.ZipFile, path: Path, arcname: str, compression: int) -> None:
        info = zipfile.ZipInfo(arcname, date_time=ZIP_TIMESTAMP)
        info.compress_type = compression
        zf.writestr(info, path.read_bytes())
