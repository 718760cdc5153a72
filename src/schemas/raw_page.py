"""Raw page domain object."""

from dataclasses import dataclass


@dataclass
class RawPage:
    """A successfully fetched HTTP response body.

    The body is kept as bytes; the HTML parser detects its charset.

    Attributes:
        url: Final URL after redirects
        status_code: HTTP status code (always 2xx)
        content: Response body bytes
    """

    url: str
    status_code: int
    content: bytes
