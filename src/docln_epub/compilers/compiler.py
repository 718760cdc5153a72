"""Base class for package compilers."""

from abc import ABC, abstractmethod

from schemas.novel import Novel
from schemas.package import PackageResult


class Compiler(ABC):
    """Abstract base class for package compilers.

    Compilers write a fully fetched novel to disk as a package and describe
    what they wrote.
    """

    @abstractmethod
    def build(self, novel: Novel) -> PackageResult:
        """Build a package for a novel.

        Args:
            novel: Novel with every volume and chapter processed

        Returns:
            PackageResult describing the package contents
        """
        pass
