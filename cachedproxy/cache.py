from abc import ABC, abstractmethod
from contextlib import contextmanager
import logging
import os
from pathlib import Path
import tempfile
import threading
from typing import Dict, Iterator, Optional

from .errors import LockTimeout


logger = logging.getLogger(__name__)


class Cache(ABC):
    """
    An abstraction of a resource cache.

    A resource cache has a deliberately narrow scope: to remember the bytes of
    a resource under a key such that they can be recalled later. It has no
    notion of expiry, eviction or invalidation. Once a key is written it stays
    until something outside the proxy removes it.
    """

    @abstractmethod
    def exists(self, key: str) -> bool:
        """
        Check whether a blob is stored under `key`.
        """

    @abstractmethod
    def read(self, key: str) -> bytes:
        """
        Retrieve the blob stored under `key`.

        @param key
          The cache key, i.e. the file name of the requested resource.
        @return
          The stored bytes.
        @throws OSError
          If the blob could not be opened or read.
        """

    @abstractmethod
    def write(self, key: str, data: bytes) -> None:
        """
        Store `data` under `key`, replacing any previous blob.

        Readers never observe a partially written blob: either the previous
        contents or the new contents are visible.

        @param key
          The cache key, i.e. the file name of the requested resource.
        @param data
          The decompressed resource bytes.
        @throws OSError
          If the blob could not be written. Nothing is left under `key` in
          that case, beyond whatever was there before.
        """

    @contextmanager
    def lock(self, key: str, timeout: Optional[float] = None) -> Iterator[None]:
        """
        Hold exclusive access to `key` for the duration of the block.

        The default implementation does not lock anything.

        @param key
          The cache key to lock.
        @param timeout
          The number of seconds to wait for the lock, or `None` to wait forever.
        @throws LockTimeout
          If the lock could not be acquired within `timeout`.
        """
        yield

    def close(self) -> None:
        """
        Close any resources associated with the cache.
        """


class _KeyLock:
    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class FileCache(Cache):
    """
    A cache that stores each blob as a file named after its key, in one flat
    directory.

    No metadata is stored next to the blob. Locking is per key and only
    coordinates threads of the same process.
    """

    def __init__(self, directory: Path) -> None:
        """
        Initialize the file cache.

        @param directory
          The path to the cache directory. It is created if it does not exist.
        """
        self.__directory = Path(directory)
        self.__directory.mkdir(parents=True, exist_ok=True)
        self.__locks = {}  # type: Dict[str, _KeyLock]
        self.__locks_guard = threading.Lock()

    @property
    def directory(self) -> Path:
        return self.__directory

    def _get_path(self, key: str) -> Path:
        return self.__directory / key

    def exists(self, key: str) -> bool:
        return self._get_path(key).is_file()

    def read(self, key: str) -> bytes:
        path = self._get_path(key)
        logger.info('Reading cached file {}'.format(path))
        with open(path, 'rb') as f:
            return f.read()

    def write(self, key: str, data: bytes) -> None:
        path = self._get_path(key)

        logger.info('Writing {} bytes to a temporary file next to {}'.format(len(data), path))
        # The temporary file lives in the cache directory so that the final
        # rename never crosses a file system boundary.
        temp_file = tempfile.NamedTemporaryFile(mode='wb', dir=str(self.__directory),
                                                prefix='.{}.'.format(key), suffix='.tmp', delete=False)
        try:
            with temp_file:
                temp_file.write(data)
                temp_file.flush()
                os.fsync(temp_file.fileno())
            logger.info('Moving temporary file into permanent location')
            os.replace(temp_file.name, str(path))
        except OSError:
            logger.warning('Could not write cache file {}. Removing the temporary file.'.format(path))
            try:
                os.unlink(temp_file.name)
            except FileNotFoundError:
                pass
            raise

    @contextmanager
    def lock(self, key: str, timeout: Optional[float] = None) -> Iterator[None]:
        with self.__locks_guard:
            key_lock = self.__locks.get(key)
            if key_lock is None:
                key_lock = self.__locks[key] = _KeyLock()
            key_lock.users += 1

        try:
            if not key_lock.lock.acquire(timeout=-1 if timeout is None else timeout):
                logger.warning('Timed out waiting for the lock on {}'.format(key))
                raise LockTimeout(key, timeout)
            try:
                yield
            finally:
                key_lock.lock.release()
        finally:
            with self.__locks_guard:
                key_lock.users -= 1
                if key_lock.users == 0:
                    del self.__locks[key]
