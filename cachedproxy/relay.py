"""
Writes responses back to the client.

The two paths are deliberately inconsistent. A successful fetch (or a cache
hit) is sent as a bare status line and body, with none of the origin's headers.
Any other origin status is relayed byte for byte, headers included.
"""

import logging
import socket

from .errors import SocketWriteError


logger = logging.getLogger(__name__)

STATUS_OK = '{} 200 OK\r\n\r\n'


def serve(connection: socket.socket, version: str, body: bytes) -> None:
    _send(connection, STATUS_OK.format(version).encode('utf-8') + body)


def relay_raw(connection: socket.socket, raw: bytes) -> None:
    _send(connection, raw)


def _send(connection: socket.socket, data: bytes) -> None:
    try:
        connection.sendall(data)
    except OSError as e:
        raise SocketWriteError('Could not write to the client: {}'.format(e)) from e
    logger.info('Sent {} bytes to the client'.format(len(data)))
