import socket


def clamp(value, min, max):
    return sorted((min, value, max))[1]


def read_until_eof(connection: socket.socket, chunk_size: int = 4096) -> bytes:
    """
    Read from a connection until the peer closes its end.

    Any timeout configured on the connection applies to each individual read,
    not to the whole exchange.
    """
    chunks = []
    while True:
        chunk = connection.recv(chunk_size)
        if not chunk:
            break
        chunks.append(chunk)
    return b''.join(chunks)
