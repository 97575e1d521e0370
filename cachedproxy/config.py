from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .util import clamp


MIN_PORT, MAX_PORT = 1024, 65535
MIN_WORKERS, MAX_WORKERS = 1, 256


@dataclass
class ProxyConfig:
    """
    Every tunable of the proxy.

    The defaults reproduce the behaviour the proxy has always had, except that
    connections are served by a bounded pool of workers.
    """

    port: int = 8080
    host: str = '0.0.0.0'

    cache_dir: Path = Path('src', 'cache')
    log_file: Path = Path('src', 'log.txt')

    buffer_size: int = 4096
    """
    The number of bytes read from a client. Anything sent beyond that is ignored.
    """

    client_timeout: float = 10.0

    origin_port: int = 80
    origin_timeout: Optional[float] = None
    """
    Timeout in seconds for connecting to and reading from origins. `None` waits
    forever.
    """

    lock_timeout: Optional[float] = 10.0
    """
    Seconds a request waits for another request holding the same cache key,
    typically one still fetching that file. On expiry the waiting request is
    aborted. `None` waits forever.
    """

    max_workers: int = 16
    max_pending: int = 32
    """
    The number of accepted connections allowed to wait for a free worker before
    the accept loop stops accepting.
    """

    backlog: int = 128

    def __post_init__(self) -> None:
        self.cache_dir = Path(self.cache_dir)
        self.log_file = Path(self.log_file)
        self.max_workers = clamp(self.max_workers, MIN_WORKERS, MAX_WORKERS)
        self.max_pending = max(self.max_pending, 0)


def parse_port(value: Optional[str]) -> Optional[int]:
    """
    Parse a listening port given on the command line.

    @return
      The port, or `None` if `value` is missing, not an integer, or outside of
      the unreserved range.
    """
    if value is None:
        return None
    try:
        port = int(value)
    except ValueError:
        return None
    if not MIN_PORT <= port <= MAX_PORT:
        return None
    return port
