"""Core utilities for the MediaWiki asset connector.

- config: Configuration loading, asset-source options and network settings
- network: HTTP session, requests, rate limiting
- cache: Thread-safe memoization of query result batches
"""

__all__ = [
    "config",
    "network",
    "cache",
]
