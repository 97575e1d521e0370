"""
Defines the types that flow through the request-handling pipeline.

These types are as simple as possible. Neither outlives the handling of a
single client connection.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional


class HttpVersion(Enum):
    """
    The closed set of protocol versions a client may speak to the proxy.
    """

    HTTP_1_1 = 'HTTP/1.1'


SUPPORTED_VERSIONS = frozenset(version.value for version in HttpVersion)


@dataclass
class IncomingRequest:
    """
    Represents the request line sent by a client, excluding everything else.

    Headers and body are not needed for routing or caching, and so we exclude
    them.
    """

    method: str
    """
    The HTTP method of the request. E.g., "GET".
    """

    target: str
    """
    The absolute-form request target. E.g., "http://example.com/foo.txt".
    """

    version: str
    """
    The protocol version exactly as the client sent it.
    """


@dataclass
class OriginResponse:
    """
    Represents a complete response read from an origin server.

    We keep the raw bytes alongside the parsed parts because a non-200 response
    is relayed to the client verbatim.
    """

    raw: bytes = field(repr=False)
    """
    Every byte the origin sent, unmodified.
    """

    status_line: str
    """
    The first line of the response. E.g., "HTTP/1.1 200 OK".
    """

    headers: Mapping[str, str]
    """
    The response headers. Duplicate names resolve to the last occurrence.
    """

    body: bytes = field(repr=False)
    """
    Everything after the first blank line, still content-encoded.
    """

    @property
    def status_code(self) -> str:
        return self.status_line.split()[1]

    @property
    def content_encoding(self) -> Optional[str]:
        return self.headers.get('Content-Encoding')

    @property
    def content_length(self) -> Optional[int]:
        value = self.headers.get('Content-Length')
        if value is None or not value.strip().isdigit():
            return None
        return int(value)
