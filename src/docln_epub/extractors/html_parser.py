"""HTML parsing capability used by the markup extractor.

Two primitives: turn bytes into a document tree, and run a CSS selector
against a node. Site-specific selectors live in markup_extractor.py.
"""

from bs4 import BeautifulSoup, Tag


class HtmlParser:
    """Parse HTML with BeautifulSoup and query it with CSS selectors.

    Attributes:
        features: BeautifulSoup tree builder (default: "lxml")
    """

    def __init__(self, features: str = "lxml"):
        self.features = features

    def parse(self, markup: bytes | str) -> BeautifulSoup:
        """Parse a complete document or a fragment."""
        return BeautifulSoup(markup, self.features)

    def select(self, node: Tag, selector: str) -> list[Tag]:
        """Return every node matching selector, in document order."""
        return node.select(selector)

    def select_one(self, node: Tag, selector: str) -> Tag | None:
        """Return the first node matching selector, or None."""
        return node.select_one(selector)
