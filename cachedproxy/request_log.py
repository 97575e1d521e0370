from datetime import datetime
import logging
from pathlib import Path
import threading


logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'
TRIM_MARKER = 'Accept-Encoding:'


class RequestLogger:
    """
    Appends every handled request to a plain text file.

    Each record is two lines: a timestamp, then the raw request with everything
    from the `Accept-Encoding` header onward removed. Failing to log is never
    fatal to the request being handled.
    """

    def __init__(self, path: Path) -> None:
        self.__path = Path(path)
        self.__lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self.__path

    def log(self, raw: str) -> bool:
        now = datetime.now().strftime(TIMESTAMP_FORMAT)
        record = '{}\n{}\n'.format(now, raw.split(TRIM_MARKER, 1)[0])
        try:
            with self.__lock:
                self.__path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.__path, 'a+', encoding='utf-8', newline='') as f:
                    f.write(record)
        except OSError:
            logger.exception('Could not log request to {}'.format(self.__path))
            return False
        return True
