from concurrent.futures import Future, ThreadPoolExecutor
import logging
import socket
import threading
from typing import Callable, Optional, Tuple

from .cache import Cache, FileCache
from .config import ProxyConfig
from .handler import ConnectionHandler
from .origin import OriginFetcher
from .request_log import RequestLogger


logger = logging.getLogger(__name__)

HandlerFactory = Callable[[socket.socket], ConnectionHandler]

# How often the accept loop wakes up to notice a shutdown request.
POLL_INTERVAL = 0.5


class ProxyServer:
    """
    Accepts client connections and hands each one to a `ConnectionHandler`.

    Handlers run on a bounded pool of worker threads. At most
    `max_workers + max_pending` connections are admitted at any time; beyond
    that the accept loop waits for a handler to finish, and new clients queue
    in the listen backlog.
    """

    def __init__(self, config: ProxyConfig, handler_factory: Optional[HandlerFactory] = None) -> None:
        self.__config = config
        self.__cache = None  # type: Optional[Cache]
        if handler_factory is None:
            self.__cache = FileCache(config.cache_dir)
            fetcher = OriginFetcher(port=config.origin_port, timeout=config.origin_timeout,
                                    chunk_size=config.buffer_size)
            request_log = RequestLogger(config.log_file)

            def handler_factory(connection: socket.socket) -> ConnectionHandler:
                return ConnectionHandler(connection, self.__cache, fetcher, request_log,
                                         buffer_size=config.buffer_size, timeout=config.client_timeout,
                                         lock_timeout=config.lock_timeout)
        self.__handler_factory = handler_factory
        self.__socket = None  # type: Optional[socket.socket]
        self.__executor = None  # type: Optional[ThreadPoolExecutor]
        self.__admission = threading.BoundedSemaphore(config.max_workers + config.max_pending)
        self.__stopped = threading.Event()

    @property
    def address(self) -> Tuple[str, int]:
        if self.__socket is None:
            raise RuntimeError('The server is not listening')
        return self.__socket.getsockname()[:2]

    def listen(self) -> None:
        """
        Bind the listening socket.

        @throws OSError
          If the address cannot be bound.
        """
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.bind((self.__config.host, self.__config.port))
            listener.listen(self.__config.backlog)
        except OSError:
            listener.close()
            raise
        listener.settimeout(POLL_INTERVAL)
        self.__socket = listener
        logger.info('Listening on port {}.'.format(self.address[1]))

    def serve_forever(self) -> None:
        if self.__socket is None:
            self.listen()

        self.__executor = ThreadPoolExecutor(max_workers=self.__config.max_workers,
                                             thread_name_prefix='proxy-worker')
        try:
            while not self.__stopped.is_set():
                if not self.__admission.acquire(timeout=POLL_INTERVAL):
                    continue
                connection = self._accept()
                if connection is None:
                    self.__admission.release()
                    continue
                future = self.__executor.submit(self._handle, connection)
                future.add_done_callback(self._on_done)
        finally:
            self.__executor.shutdown(wait=True)
            self.__socket.close()
            if self.__cache is not None:
                self.__cache.close()
            logger.info('Server stopped.')

    def shutdown(self) -> None:
        """
        Stop accepting connections. `serve_forever()` returns once every
        running handler has finished.
        """
        self.__stopped.set()

    def _accept(self) -> Optional[socket.socket]:
        try:
            connection, address = self.__socket.accept()
        except socket.timeout:
            return None
        except OSError:
            if not self.__stopped.is_set():
                logger.exception('Could not accept connection, internal error.')
            return None
        # Accepted sockets inherit the listener's timeout; the handler sets its own.
        connection.settimeout(None)
        logger.info('Accepted connection from {}:{}'.format(*address[:2]))
        return connection

    def _handle(self, connection: socket.socket) -> None:
        try:
            handler = self.__handler_factory(connection)
        except Exception:
            connection.close()
            raise
        handler.handle()

    def _on_done(self, future: Future) -> None:
        self.__admission.release()
        error = future.exception()
        if error is not None:
            logger.error('Unexpected error while handling a connection.',
                         exc_info=(type(error), error, error.__traceback__))
