import logging
import socket
from typing import Optional

from requests.structures import CaseInsensitiveDict

from .errors import OriginConnectError, ParseError, SocketReadError, SocketWriteError
from .model import OriginResponse
from .util import read_until_eof


logger = logging.getLogger(__name__)

HTTP_PORT = 80
END_L = '\r\n'
HEADER_BOUNDARY = b'\r\n\r\n'
# Header bytes are decoded one to one so that no input can fail to decode.
HEADER_ENCODING = 'iso-8859-1'


def build_request(method: str, target: str, host: str) -> bytes:
    """
    Synthesize the request sent to an origin server.

    None of the client's own headers are forwarded, and a request body is never
    sent.
    """
    request = '{} {} HTTP/1.1{}'.format(method, target, END_L) \
              + 'Host: {}{}'.format(host, END_L) \
              + 'Connection: keep-alive{}'.format(END_L) \
              + 'Accept-Encoding: gzip, deflate{}'.format(END_L) \
              + END_L
    return request.encode('utf-8')


def parse_response(raw: bytes) -> OriginResponse:
    """
    Split a complete origin response into status line, headers and body.

    @param raw
      Every byte the origin sent.
    @return
      The parsed response. Header names are matched case-insensitively and the
      last of several headers with the same name wins.
    @throws ParseError
      If there is no blank line ending the header block, or if the status line
      has no status code.
    """
    head, boundary, body = raw.partition(HEADER_BOUNDARY)
    if not boundary:
        raise ParseError('The origin response has no header/body boundary')

    lines = head.decode(HEADER_ENCODING).split(END_L)
    status_line = lines[0]
    if len(status_line.split()) < 2:
        raise ParseError('The origin response has no status code: {!r}'.format(status_line))

    headers = CaseInsensitiveDict()
    for line in lines[1:]:
        name, separator, value = line.partition(':')
        if not separator:
            logger.debug('Ignoring malformed header line: {!r}'.format(line))
            continue
        headers[name.strip()] = value.strip()

    return OriginResponse(raw=raw, status_line=status_line, headers=headers, body=body)


class OriginFetcher:
    """
    Fetches resources from origin servers over plain TCP.

    Each fetch uses its own connection, which is closed before `fetch()`
    returns, whatever the outcome.
    """

    def __init__(self, port: int = HTTP_PORT, timeout: Optional[float] = None, chunk_size: int = 4096) -> None:
        """
        @param port
          The port every origin is contacted on.
        @param timeout
          The timeout in seconds for connecting and for each read. `None` waits
          forever, so a silent origin holds its handler indefinitely.
        @param chunk_size
          The number of bytes requested per read.
        """
        self.__port = port
        self.__timeout = timeout
        self.__chunk_size = chunk_size

    @property
    def port(self) -> int:
        return self.__port

    @property
    def timeout(self) -> Optional[float]:
        return self.__timeout

    def fetch(self, host: str, method: str, target: str) -> OriginResponse:
        connection = self._connect(host)
        with connection:
            logger.info('Sending {} {} to {}:{}'.format(method, target, host, self.__port))
            try:
                connection.sendall(build_request(method, target, host))
            except OSError as e:
                raise SocketWriteError('Could not send the request to {}: {}'.format(host, e)) from e

            try:
                raw = read_until_eof(connection, self.__chunk_size)
            except OSError as e:
                raise SocketReadError('Could not read the response from {}: {}'.format(host, e)) from e
        logger.info('Received {} bytes from {}'.format(len(raw), host))

        response = parse_response(raw)
        logger.info('Status code: {}'.format(response.status_code))
        return response

    def _connect(self, host: str) -> socket.socket:
        try:
            return socket.create_connection((host, self.__port), timeout=self.__timeout)
        except (OSError, ValueError) as e:
            logger.warning('Could not connect to server {}:{}: {}'.format(host, self.__port, e))
            raise OriginConnectError(host, self.__port) from e
