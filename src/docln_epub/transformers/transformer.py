"""Base class for body transformers.

A transformer turns extracted chapter markup into a fragment that can be
embedded in a package text document, with image sources rewritten to the
package-local files recorded in an asset map.
"""

from abc import ABC, abstractmethod

from docln_epub.aggregators import AssetMap


class Transformer(ABC):
    """Abstract base class for chapter body transformers."""

    @abstractmethod
    def transform(self, raw_body: str, asset_map: AssetMap) -> str:
        """Transform raw body markup into a package fragment.

        Args:
            raw_body: Markup extracted from the chapter page
            asset_map: Source URL to local href(s), per occurrence

        Returns:
            Well-formed fragment markup
        """
        pass
