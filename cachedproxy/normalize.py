import gzip
import logging
from typing import Optional
import zlib

from .errors import DecompressionError


logger = logging.getLogger(__name__)


def normalize(body: bytes, content_encoding: Optional[str]) -> bytes:
    """
    Convert a response body into its canonical, decompressed form.

    @param body
      The body exactly as the origin sent it.
    @param content_encoding
      The value of the `Content-Encoding` header, or `None` if there was none.
    @return
      The decompressed body for `gzip` and `deflate`. Any other encoding is
      passed through unchanged.
    @throws DecompressionError
      If the body is not a valid stream for its declared encoding. No partial
      output is returned in that case.
    """
    encoding = (content_encoding or '').strip().lower()
    if encoding == 'gzip':
        logger.info('Decompressing gzip encoded body of {} bytes'.format(len(body)))
        try:
            return gzip.decompress(body)
        except (OSError, EOFError, zlib.error) as e:
            raise DecompressionError('Could not decompress gzip body: {}'.format(e)) from e
    if encoding == 'deflate':
        logger.info('Decompressing deflate encoded body of {} bytes'.format(len(body)))
        return _inflate(body)
    return body


def _inflate(body: bytes) -> bytes:
    # Servers disagree on whether "deflate" means a zlib stream or a raw one.
    try:
        return zlib.decompress(body)
    except zlib.error:
        pass
    try:
        return zlib.decompress(body, -zlib.MAX_WBITS)
    except zlib.error as e:
        raise DecompressionError('Could not decompress deflate body: {}'.format(e)) from e
