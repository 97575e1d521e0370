"""
A forwarding HTTP proxy that caches fetched resources on local disk.
"""

VERSION = '0.1.0'
