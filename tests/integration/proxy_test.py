import gzip
from pathlib import Path
import socket
from tempfile import TemporaryDirectory
import threading
from typing import Dict, List
from unittest import TestCase

import requests

from cachedproxy.config import ProxyConfig
from cachedproxy.server import ProxyServer


class RawOrigin:
    """
    An origin server that answers each request with canned bytes, chosen by the
    last path segment of the request target, and then closes the connection.
    """

    def __init__(self, responses: Dict[str, bytes]) -> None:
        self.responses = responses
        self.requests = []  # type: List[bytes]
        self.__socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.__socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.__socket.bind(('127.0.0.1', 0))
        self.__socket.listen(16)
        self.__socket.settimeout(0.2)
        self.__stopped = threading.Event()
        self.__thread = threading.Thread(target=self._serve)

    @property
    def port(self) -> int:
        return self.__socket.getsockname()[1]

    def start(self) -> None:
        self.__thread.start()

    def stop(self) -> None:
        self.__stopped.set()
        self.__thread.join(5)
        self.__socket.close()

    def _serve(self) -> None:
        while not self.__stopped.is_set():
            try:
                connection, _ = self.__socket.accept()
            except socket.timeout:
                continue
            with connection:
                connection.settimeout(5)
                request = b''
                while b'\r\n\r\n' not in request:
                    chunk = connection.recv(4096)
                    if not chunk:
                        break
                    request += chunk
                self.requests.append(request)
                target = request.split(b' ')[1].decode('ascii')
                connection.sendall(self.responses[target.split('/')[-1]])


class TestProxy(TestCase):
    def setUp(self):
        self.__temp_dir = TemporaryDirectory()
        directory = Path(self.__temp_dir.name)
        self.__cache_dir = directory / 'cache'
        self.__log_file = directory / 'log.txt'

        self.__origin = RawOrigin({
            'foo.txt': b'HTTP/1.1 200 OK\r\nContent-Length: 5\r\n\r\nhello',
            'world.txt': b'HTTP/1.1 200 OK\r\nContent-Encoding: gzip\r\n\r\n' + gzip.compress(b'world'),
            'busy.txt': b'HTTP/1.1 503 Service Unavailable\r\n\r\n',
            'missing.txt': b'HTTP/1.1 404 Not Found\r\nContent-Type: text/plain\r\n\r\nnot here',
        })
        self.__origin.start()

        config = ProxyConfig(host='127.0.0.1', port=0, cache_dir=self.__cache_dir, log_file=self.__log_file,
                             origin_port=self.__origin.port, origin_timeout=5.0, client_timeout=5.0,
                             max_workers=4)
        self.__proxy = ProxyServer(config)
        self.__proxy.listen()
        self.__proxy_thread = threading.Thread(target=self.__proxy.serve_forever)
        self.__proxy_thread.start()

        self.__session = requests.Session()
        self.__session.trust_env = False
        self.__session.proxies = {'http': 'http://127.0.0.1:{}'.format(self.__proxy.address[1])}

    def tearDown(self):
        self.__session.close()
        self.__proxy.shutdown()
        self.__proxy_thread.join(10)
        self.__origin.stop()
        self.__temp_dir.cleanup()

    def _raw_request(self, request: bytes) -> bytes:
        with socket.create_connection(self.__proxy.address, timeout=5) as client:
            client.sendall(request)
            response = b''
            while True:
                chunk = client.recv(4096)
                if not chunk:
                    return response
                response += chunk

    def test_miss_then_hit(self):
        first = self.__session.get('http://localhost/foo.txt', timeout=10)
        second = self.__session.get('http://localhost/foo.txt', timeout=10)

        self.assertEqual(200, first.status_code)
        self.assertEqual(b'hello', first.content)
        self.assertEqual(b'hello', second.content)
        self.assertEqual(b'hello', (self.__cache_dir / 'foo.txt').read_bytes())
        self.assertEqual(1, len(self.__origin.requests), 'The second request should be served from the cache')

    def test_origin_receives_the_synthesized_request(self):
        self.__session.get('http://localhost/dir/foo.txt', timeout=10)

        self.assertEqual([
            b'GET http://localhost/dir/foo.txt HTTP/1.1\r\n'
            b'Host: localhost\r\n'
            b'Connection: keep-alive\r\n'
            b'Accept-Encoding: gzip, deflate\r\n'
            b'\r\n'
        ], self.__origin.requests)

    def test_success_response_is_status_line_and_body_only(self):
        response = self._raw_request(b'GET http://localhost/foo.txt HTTP/1.1\r\nHost: localhost\r\n\r\n')

        self.assertEqual(b'HTTP/1.1 200 OK\r\n\r\nhello', response)

    def test_gzip_is_decompressed(self):
        response = self.__session.get('http://localhost/world.txt', timeout=10)

        self.assertEqual(b'world', response.content)
        self.assertNotIn('Content-Encoding', response.headers)
        self.assertEqual(b'world', (self.__cache_dir / 'world.txt').read_bytes())

    def test_non_success_is_passed_through(self):
        busy = self._raw_request(b'GET http://localhost/busy.txt HTTP/1.1\r\n\r\n')
        missing = self.__session.get('http://localhost/missing.txt', timeout=10)

        self.assertEqual(b'HTTP/1.1 503 Service Unavailable\r\n\r\n', busy)
        self.assertEqual(404, missing.status_code)
        self.assertEqual('text/plain', missing.headers['Content-Type'])
        self.assertEqual(b'not here', missing.content)
        self.assertFalse((self.__cache_dir / 'busy.txt').exists())
        self.assertFalse((self.__cache_dir / 'missing.txt').exists())

    def test_unsupported_version_gets_no_response(self):
        response = self._raw_request(b'GET http://localhost/foo.txt HTTP/1.0\r\n\r\n')

        self.assertEqual(b'', response)
        self.assertEqual([], self.__origin.requests)

    def test_requests_are_logged(self):
        self._raw_request(b'GET http://localhost/foo.txt HTTP/1.1\r\nHost: localhost\r\n'
                          b'Accept-Encoding: gzip\r\nUser-Agent: test\r\n\r\n')

        lines = self.__log_file.read_bytes().decode('utf-8').split('\n')
        self.assertEqual('GET http://localhost/foo.txt HTTP/1.1\r', lines[1])
        self.assertEqual('Host: localhost\r', lines[2])
        self.assertEqual('', lines[3])

    def test_concurrent_misses_fetch_once(self):
        results = []

        def fetch():
            results.append(self._raw_request(b'GET http://localhost/foo.txt HTTP/1.1\r\n\r\n'))

        threads = [threading.Thread(target=fetch) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(10)

        self.assertEqual([b'HTTP/1.1 200 OK\r\n\r\nhello'] * 4, results)
        self.assertEqual(1, len(self.__origin.requests))
