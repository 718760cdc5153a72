"""Text filters shared by extraction, transformation and packaging.

Scraped pages can carry characters that HTML tolerates but XML 1.0 forbids
(C0 control characters other than tab, newline and carriage return, lone
surrogates, U+FFFE/U+FFFF). Every string that ends up in a package document
passes through xml_text() first.
"""

import re

INVALID_XML_CHARS = re.compile(
    r"[^\u0009\u000a\u000d\u0020-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]"
)


def xml_text(value: str | None) -> str:
    """Remove characters outside the XML 1.0 Char range.

    Examples:
        >>> xml_text("Chap\\x0bter 1")
        'Chapter 1'
    """
    if not value:
        return ""
    return INVALID_XML_CHARS.sub("", value)


FILTERS = {
    "xml_text": xml_text,
}
