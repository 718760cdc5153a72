"""Fetch docln.net light novels and package them as EPUB files."""

__version__ = "0.1.0"
