"""Package assembly."""

from .compiler import Compiler
from .epub_archiver import EpubArchiver
from .package_builder import PackageBuilder

__all__ = ["Compiler", "EpubArchiver", "PackageBuilder"]
