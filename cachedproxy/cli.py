import argparse
import logging
from pathlib import Path
import sys
from typing import List, Optional

from .config import MAX_PORT, MIN_PORT, ProxyConfig, parse_port
from .server import ProxyServer


logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s %(threadName)s %(levelname)s %(name)s: %(message)s'


def _build_parser() -> argparse.ArgumentParser:
    defaults = ProxyConfig()
    parser = argparse.ArgumentParser(prog='cached-proxy',
                                     description='A forwarding HTTP proxy that caches resources on disk.')
    parser.add_argument('port', nargs='?',
                        help='The port to listen on, between {} and {}.'.format(MIN_PORT, MAX_PORT))
    parser.add_argument('--host', default=defaults.host)
    parser.add_argument('--cache-dir', type=Path, default=defaults.cache_dir)
    parser.add_argument('--log-file', type=Path, default=defaults.log_file)
    parser.add_argument('--client-timeout', type=float, default=defaults.client_timeout,
                        help='Seconds to wait for a client to send its request.')
    parser.add_argument('--origin-timeout', type=float, default=defaults.origin_timeout,
                        help='Seconds to wait on an origin server. Waits forever by default.')
    parser.add_argument('--lock-timeout', type=float, default=defaults.lock_timeout,
                        help='Seconds to wait for a request fetching the same file name.')
    parser.add_argument('--origin-port', type=int, default=defaults.origin_port)
    parser.add_argument('--workers', type=int, default=defaults.max_workers,
                        help='The number of connections served at the same time.')
    parser.add_argument('--pending', type=int, default=defaults.max_pending,
                        help='The number of accepted connections allowed to wait for a worker.')
    parser.add_argument('-v', '--verbose', action='store_true')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    port = parse_port(args.port)
    if port is None:
        parser.print_usage(sys.stdout)
        if args.port is None:
            print('Please provide a port number.')
        else:
            print('Please provide a valid port number between {} and {}.'.format(MIN_PORT, MAX_PORT))
        return 0

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT)

    config = ProxyConfig(port=port,
                         host=args.host,
                         cache_dir=args.cache_dir,
                         log_file=args.log_file,
                         client_timeout=args.client_timeout,
                         origin_port=args.origin_port,
                         origin_timeout=args.origin_timeout,
                         lock_timeout=args.lock_timeout,
                         max_workers=args.workers,
                         max_pending=args.pending)

    server = ProxyServer(config)
    try:
        server.listen()
    except OSError as e:
        logger.error('Could not bind to port {}, internal error: {}'.format(port, e))
        return 1

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info('Interrupted. Shutting down.')
        server.shutdown()
    return 0
