class ProxyError(Exception):
    """
    Base class for every failure that aborts the handling of one connection.

    None of these stop the proxy itself. The connection handler catches them,
    logs the reason and closes the client connection.
    """


class SocketReadError(ProxyError):
    pass


class SocketWriteError(ProxyError):
    pass


class ParseError(ProxyError):
    """
    A request line or an origin response could not be parsed.
    """


class UnsupportedVersion(ProxyError):
    def __init__(self, version: str) -> None:
        super().__init__('Invalid version: {}'.format(version))
        self.__version = version

    @property
    def version(self) -> str:
        return self.__version


class MissingRouteInfo(ProxyError):
    """
    The request target did not yield a file name or a server name.
    """


class OriginConnectError(ProxyError):
    def __init__(self, host: str, port: int) -> None:
        super().__init__('Could not connect to server: {}:{}'.format(host, port))
        self.__host = host
        self.__port = port

    @property
    def host(self) -> str:
        return self.__host

    @property
    def port(self) -> int:
        return self.__port


class DecompressionError(ProxyError):
    pass


class CacheIOError(ProxyError):
    """
    Reading or writing a cache file failed.
    """


class LockTimeout(CacheIOError):
    def __init__(self, key: str, timeout: float) -> None:
        super().__init__('Gave up waiting {}s for the cache lock on {}'.format(timeout, key))
        self.__key = key

    @property
    def key(self) -> str:
        return self.__key
