"""Page parsing and field extraction."""

from .html_parser import HtmlParser
from .markup_extractor import MarkupExtractor

__all__ = ["HtmlParser", "MarkupExtractor"]
