"""Exceptions raised outside the network layer."""


class DoclnError(Exception):
    """Base exception carrying a human-readable message."""

    def __init__(self, message: str, *args, **kwargs):
        self.message = message
        super().__init__(message, *args, **kwargs)


class ExtractError(DoclnError):
    """Raised when a page does not have the expected structure."""

    pass


class MissingFieldError(ExtractError):
    """Raised when a required element is absent from a page."""

    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"Missing required field: {field_name}")


class AssetError(DoclnError):
    """Base exception for image download failures."""

    pass


class AssetDownloadError(AssetError):
    """Raised when an image could not be downloaded or stored."""

    def __init__(self, message: str, source_url: str):
        self.source_url = source_url
        super().__init__(message)


class PackageError(DoclnError):
    """Base exception for package assembly failures."""

    pass


class PackageIOError(PackageError):
    """Raised when a package file cannot be written."""

    pass


class InconsistentManifestError(PackageError):
    """Raised when the manifest and the files on disk disagree."""

    def __init__(
        self,
        message: str,
        missing: list[str] | None = None,
        orphaned: list[str] | None = None,
    ):
        self.missing = missing or []
        self.orphaned = orphaned or []
        super().__init__(message)


class CrawlAbortedError(DoclnError):
    """Raised when a run cannot produce a package.

    Attributes:
        novel_id: Novel being processed
        step: Pipeline step that failed (e.g. "index", "package")
    """

    def __init__(self, message: str, novel_id: str, step: str):
        self.novel_id = novel_id
        self.step = step
        super().__init__(f"[novel {novel_id}, step {step}] {message}")
