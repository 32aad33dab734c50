"""Network utilities for HTTP requests, rate limiting, and session management.

Provides a shared HTTP session, per-host rate limiting and a JSON request
helper that maps transport, HTTP and decoding failures onto the connector's
error kinds instead of returning sentinel values.
"""
from __future__ import annotations

import logging
import random
import threading
import time
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Iterator, Optional
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..model import AssetSourceConnectionError, MalformedResponseError
from .config import get_network_config

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "mediawiki-assets/0.1 (+https://www.mediawiki.org/wiki/API:Etiquette) python-requests"

# Global session (lazy-initialized)
_SESSION: Optional[requests.Session] = None
_SESSION_LOCK = threading.Lock()

_RETRYABLE_STATUS = (429, 500, 502, 503, 504)


class RateLimiter:
    """Simple per-host rate limiter with jitter, using monotonic time."""

    def __init__(self, min_interval_s: float = 0.0, jitter_s: float = 0.0):
        self.min_interval_s = max(0.0, float(min_interval_s or 0.0))
        self.jitter_s = max(0.0, float(jitter_s or 0.0))
        self._last_ts = 0.0
        self._lock = threading.Lock()

    def wait(self) -> None:
        """Wait until the minimum interval has passed since the last request."""
        if self.min_interval_s <= 0 and self.jitter_s <= 0:
            return

        with self._lock:
            now = time.monotonic()
            jitter = random.uniform(0.0, self.jitter_s) if self.jitter_s > 0 else 0.0
            next_ready = self._last_ts + self.min_interval_s + jitter
            sleep_s = next_ready - now

            if sleep_s > 0:
                time.sleep(sleep_s)
                now = time.monotonic()

            self._last_ts = now


# Per-host rate limiter instances
_RATE_LIMITERS: Dict[str, RateLimiter] = {}


def get_host(url: str) -> Optional[str]:
    """Return the lower-cased host of a URL without port, or None."""
    host = urlparse(url).netloc.lower()
    if ":" in host:
        host = host.split(":", 1)[0]
    return host or None


def get_rate_limiter(host: Optional[str]) -> Optional[RateLimiter]:
    """Get or create a rate limiter for a host.

    Args:
        host: Wiki host name

    Returns:
        RateLimiter instance or None if no host is known
    """
    if not host:
        return None

    net = get_network_config(host)
    delay_s = float(net.get("delay_ms", 0) or 0) / 1000.0
    jitter_s = float(net.get("jitter_ms", 0) or 0) / 1000.0

    rl = _RATE_LIMITERS.get(host)
    if rl is None or rl.min_interval_s != delay_s or rl.jitter_s != jitter_s:
        rl = RateLimiter(delay_s, jitter_s)
        _RATE_LIMITERS[host] = rl

    return rl


def build_session(user_agent: str = DEFAULT_USER_AGENT) -> requests.Session:
    """Build a requests session with connection pooling and default headers.

    Returns:
        Configured Session instance
    """
    session = requests.Session()

    # Retries are decided in make_request from the network config
    adapter = HTTPAdapter(max_retries=Retry(total=0, raise_on_status=False), pool_maxsize=10)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    # Wikimedia rejects generic user agents; identify the client
    session.headers.update({
        "User-Agent": user_agent,
        "Accept": "application/json",
        "Accept-Encoding": "gzip",
    })

    return session


def get_session() -> requests.Session:
    """Get the global HTTP session (lazy initialization)."""
    global _SESSION
    with _SESSION_LOCK:
        if _SESSION is None:
            _SESSION = build_session()
        return _SESSION


def _backoff(attempt: int, net: Dict[str, Any]) -> float:
    base_backoff = float(net.get("base_backoff_s", 1.5) or 1.5)
    backoff_mult = float(net.get("backoff_multiplier", 1.5) or 1.5)
    max_backoff = float(net.get("max_backoff_s", 60.0) or 60.0)
    return min(base_backoff * (backoff_mult ** (attempt - 1)), max_backoff)


def _retry_after_seconds(resp: requests.Response) -> Optional[float]:
    retry_after = resp.headers.get("Retry-After")
    if not retry_after:
        return None
    try:
        return float(retry_after)
    except ValueError:
        pass
    try:
        retry_dt = parsedate_to_datetime(retry_after)
    except (TypeError, ValueError):
        return None
    return max(0.0, (retry_dt - datetime.now(retry_dt.tzinfo)).total_seconds())


def make_request(
    url: str,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
    session: Optional[requests.Session] = None,
) -> Dict[str, Any]:
    """HTTP GET returning the decoded JSON object, with per-host pacing.

    Args:
        url: URL to request
        params: Query parameters
        headers: Additional headers
        timeout: Request timeout in seconds (defaults to the host's timeout_s)
        session: Session to use instead of the shared one

    Returns:
        Decoded JSON object

    Raises:
        AssetSourceConnectionError: Transport failure or HTTP error status
        MalformedResponseError: Body is not a JSON object
    """
    session = session or get_session()
    host = get_host(url)
    net = get_network_config(host)

    max_attempts = max(1, int(net.get("max_attempts", 1) or 1))
    max_backoff = float(net.get("max_backoff_s", 60.0) or 60.0)
    effective_timeout = float(timeout if timeout is not None else net.get("timeout_s", 15.0))
    rl = get_rate_limiter(host)

    # Merge headers: session defaults < host headers < per-call headers
    req_headers = {str(k): str(v) for k, v in (net.get("headers") or {}).items() if v is not None}
    if headers:
        req_headers.update(headers)

    for attempt in range(1, max_attempts + 1):
        try:
            if rl:
                rl.wait()
            resp = session.get(
                url,
                params=params,
                headers=req_headers or None,
                timeout=effective_timeout,
                verify=bool(net.get("verify_ssl", True)),
            )
        except requests.exceptions.Timeout as e:
            if attempt < max_attempts:
                sleep_s = _backoff(attempt, net)
                logger.warning(
                    "Timeout for %s; sleeping %.1fs (attempt %d/%d)",
                    url, sleep_s, attempt, max_attempts
                )
                time.sleep(sleep_s)
                continue
            logger.error("Request timed out: %s", url)
            raise AssetSourceConnectionError(f"Request to {url} timed out", url=url) from e
        except requests.exceptions.RequestException as e:
            if attempt < max_attempts:
                sleep_s = _backoff(attempt, net)
                logger.warning(
                    "Request error for %s: %s; sleeping %.1fs (attempt %d/%d)",
                    url, e, sleep_s, attempt, max_attempts
                )
                time.sleep(sleep_s)
                continue
            logger.error("Request failed for %s: %s", url, e)
            raise AssetSourceConnectionError(f"Request to {url} failed: {e}", url=url) from e

        status = resp.status_code
        if status in _RETRYABLE_STATUS and attempt < max_attempts:
            sleep_s = _retry_after_seconds(resp) if status == 429 else None
            sleep_s = min(sleep_s, max_backoff) if sleep_s is not None else _backoff(attempt, net)
            logger.warning(
                "HTTP %s for %s; sleeping %.1fs (attempt %d/%d)",
                status, url, sleep_s, attempt, max_attempts
            )
            time.sleep(sleep_s)
            continue

        if status >= 400:
            logger.warning("HTTP %s for %s", status, url)
            raise AssetSourceConnectionError(
                f"HTTP {status} from {url}", url=url, status_code=status
            )

        try:
            data = resp.json()
        except ValueError as e:
            logger.error("JSON decode error for %s: %s", url, e)
            raise MalformedResponseError(f"Response from {url} is not valid JSON") from e

        if not isinstance(data, dict):
            raise MalformedResponseError(
                f"Response from {url} is a JSON {type(data).__name__}, expected an object"
            )
        return data

    # Only reachable when every attempt asked for a retry
    raise AssetSourceConnectionError(f"Giving up after {max_attempts} attempts for {url}", url=url)


def stream_file(
    url: str,
    chunk_size: int = 64 * 1024,
    session: Optional[requests.Session] = None,
) -> Iterator[bytes]:
    """Stream a remote file in chunks through the shared session.

    Raises:
        AssetSourceConnectionError: Transport failure or HTTP error status
    """
    session = session or get_session()
    host = get_host(url)
    net = get_network_config(host)
    rl = get_rate_limiter(host)
    if rl:
        rl.wait()

    try:
        with session.get(url, stream=True, timeout=float(net.get("timeout_s", 15.0))) as resp:
            if resp.status_code >= 400:
                raise AssetSourceConnectionError(
                    f"HTTP {resp.status_code} from {url}", url=url, status_code=resp.status_code
                )
            for chunk in resp.iter_content(chunk_size=chunk_size):
                if chunk:
                    yield chunk
    except requests.exceptions.RequestException as e:
        logger.error("Download failed for %s: %s", url, e)
        raise AssetSourceConnectionError(f"Download of {url} failed: {e}", url=url) from e
