import logging
import socket
from typing import Optional, Tuple

from . import parser, relay
from .cache import Cache
from .errors import CacheIOError, MissingRouteInfo, ProxyError, SocketReadError
from .model import IncomingRequest
from .normalize import normalize
from .origin import OriginFetcher
from .request_log import RequestLogger


logger = logging.getLogger(__name__)

BUFFER_SIZE = 4096
TIMEOUT = 10.0


class ConnectionHandler:
    """
    Handles a single client connection from the first read until it is closed.

    A handler shares nothing with the handlers of other connections except the
    cache and the request log.
    """

    def __init__(self,
                 connection: socket.socket,
                 cache: Cache,
                 fetcher: OriginFetcher,
                 request_log: Optional[RequestLogger] = None,
                 buffer_size: int = BUFFER_SIZE,
                 timeout: Optional[float] = TIMEOUT,
                 lock_timeout: Optional[float] = TIMEOUT) -> None:
        self.__connection = connection
        self.__cache = cache
        self.__fetcher = fetcher
        self.__request_log = request_log
        self.__buffer_size = buffer_size
        self.__timeout = timeout
        self.__lock_timeout = lock_timeout

    def handle(self) -> None:
        """
        Serve the request on the connection, then close the connection.

        Every failure aborts the request: the connection is closed without a
        response and the reason is logged. The only response other than
        "200 OK" is a non-200 origin response, which is relayed verbatim.
        """
        try:
            self._handle()
        except ProxyError as e:
            logger.warning('Aborting the connection. {}'.format(e))
        finally:
            self.__connection.close()

    def _handle(self) -> None:
        raw = self._read_request()
        request = parser.parse(raw)
        parser.check_version(request.version)

        if self.__request_log is not None and not self.__request_log.log(raw):
            logger.warning('Could not log request.')

        server_name = parser.extract_server_name(request.target)
        file_name = parser.extract_file_name(request.target)
        if not file_name:
            raise MissingRouteInfo('No file name acquired from {!r}'.format(request.target))
        if '\x00' in file_name:
            raise MissingRouteInfo('The file name in {!r} is not a valid cache key'.format(request.target))
        if not server_name:
            raise MissingRouteInfo('No server name acquired from {!r}'.format(request.target))
        logger.info('Server name: {}'.format(server_name))
        logger.info('File name: {}'.format(file_name))

        # Holding the key lock from the probe until the store means concurrent
        # misses for the same file fetch it once; the others then hit.
        with self.__cache.lock(file_name, self.__lock_timeout):
            if self.__cache.exists(file_name):
                logger.info('{} is cached, returning the cached file.'.format(file_name))
                body, passthrough = self._read_cached(file_name), None
            else:
                body, passthrough = self._fetch(server_name, file_name, request)

        if passthrough is not None:
            relay.relay_raw(self.__connection, passthrough)
        else:
            relay.serve(self.__connection, request.version, body)

    def _read_request(self) -> str:
        try:
            self.__connection.settimeout(self.__timeout)
            data = self.__connection.recv(self.__buffer_size)
        except OSError as e:
            raise SocketReadError('Could not read the request: {}'.format(e)) from e
        return data.decode('utf-8', errors='replace')

    def _read_cached(self, file_name: str) -> bytes:
        try:
            return self.__cache.read(file_name)
        except (OSError, ValueError) as e:
            raise CacheIOError('Could not open cached file {}: {}'.format(file_name, e)) from e

    def _fetch(self, server_name: str, file_name: str,
               request: IncomingRequest) -> Tuple[Optional[bytes], Optional[bytes]]:
        """
        Fetch, normalize and store a resource that is not in the cache.

        @return
          A pair of the body to serve and the raw origin response to relay
          instead. Exactly one of them is `None`; a non-200 response is relayed
          as is and never stored.
        """
        response = self.__fetcher.fetch(server_name, request.method, request.target)

        if response.status_code != '200':
            logger.warning('Retrieving the file from the server is unsuccessful. '
                           'Relaying the response with status code {}.'.format(response.status_code))
            return None, response.raw

        logger.debug('Content-Encoding: {}, Content-Length: {}'.format(response.content_encoding,
                                                                      response.content_length))
        body = normalize(response.body, response.content_encoding)

        try:
            self.__cache.write(file_name, body)
        except (OSError, ValueError) as e:
            raise CacheIOError('Could not write cached file {}: {}'.format(file_name, e)) from e
        logger.info('File is retrieved successfully with status code {}.'.format(response.status_code))
        return body, None
