from .errors import ParseError, UnsupportedVersion
from .model import HttpVersion, IncomingRequest, SUPPORTED_VERSIONS


END_L = '\r\n'


def parse(raw: str) -> IncomingRequest:
    """
    Parse the request line out of whatever a client sent.

    @param raw
      The request text. Only the first line is looked at.
    @return
      The method, target and version of the request.
    @throws ParseError
      If the request line is not exactly three space-separated tokens.
    """
    request_line = raw.split(END_L, 1)[0]
    words = request_line.split(' ')
    if len(words) != 3:
        raise ParseError('Malformed request line: {!r}'.format(request_line[:80]))
    method, target, version = words
    return IncomingRequest(method=method, target=target, version=version)


def check_version(version: str) -> HttpVersion:
    if version not in SUPPORTED_VERSIONS:
        raise UnsupportedVersion(version)
    return HttpVersion(version)


def extract_file_name(target: str) -> str:
    """
    Derive the cache key of a request target.

    The key is the last path segment only, so the same file name requested from
    two hosts maps to the same key.
    """
    return target.split('/')[-1]


def extract_server_name(target: str) -> str:
    # Only absolute-form targets ("http://host/path") carry a host.
    parts = target.split('/')
    if len(parts) < 3:
        return ''
    return parts[2]
