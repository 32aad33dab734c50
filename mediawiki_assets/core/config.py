"""Configuration management for the MediaWiki asset connector.

Handles loading and caching of the JSON configuration file with environment
variable support (MEDIAWIKI_ASSETS_CONFIG_PATH).

The configuration file holds:
- asset_sources: one entry per configured wiki, each with its options
- network: default HTTP policy (timeouts, pacing, retries, headers)
- hosts: per-domain overrides of the network policy
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_CONFIG_CACHE: Optional[Dict[str, Any]] = None

DEFAULT_API_PATH = "/w/api.php"
DEFAULT_SCHEME = "https"
DEFAULT_FILE_NAMESPACE = 6
DEFAULT_THUMBNAIL_WIDTH = 250
# Anonymous clients may pass at most 50 titles to prop=imageinfo
DEFAULT_MAX_PAGE_SIZE = 50


def get_config(force_reload: bool = False) -> Dict[str, Any]:
    """Load project configuration JSON.

    Looks for the path in MEDIAWIKI_ASSETS_CONFIG_PATH; falls back to
    'config.json' in CWD. Caches the result unless force_reload is True.

    Returns:
        Configuration dictionary (empty dict if file not found or invalid)
    """
    global _CONFIG_CACHE
    if _CONFIG_CACHE is not None and not force_reload:
        return _CONFIG_CACHE

    path = os.environ.get("MEDIAWIKI_ASSETS_CONFIG_PATH", "config.json")
    try:
        if os.path.exists(path):
            with open(path, "r", encoding="utf-8") as f:
                _CONFIG_CACHE = json.load(f) or {}
        else:
            _CONFIG_CACHE = {}
    except (OSError, ValueError) as e:
        logger.error("Failed to load config from %s: %s", path, e)
        _CONFIG_CACHE = {}

    return _CONFIG_CACHE


def get_option_by_path(options: Dict[str, Any] | None, option_path: str, default: Any = None) -> Any:
    """Resolve a dotted option path ("a.b.c") inside a nested options mapping.

    Args:
        options: Options mapping (may be None)
        option_path: Dot-separated key path
        default: Value returned when any segment is missing

    Returns:
        The value found at the path or default
    """
    current: Any = options
    for segment in option_path.split("."):
        if not isinstance(current, dict) or segment not in current:
            return default
        current = current[segment]
    return current


def get_asset_source_configs() -> Dict[str, Dict[str, Any]]:
    """Return the configured asset sources keyed by identifier."""
    cfg = get_config()
    sources = cfg.get("asset_sources", {}) or {}
    if not isinstance(sources, dict):
        logger.error("Config section 'asset_sources' must be an object; ignoring it")
        return {}
    return sources


def get_asset_source_options(identifier: str) -> Dict[str, Any]:
    """Get the options of one configured asset source.

    Args:
        identifier: Asset source identifier (e.g., 'wikimedia-commons')

    Returns:
        Options dictionary (empty if the source is not configured)
    """
    entry = get_asset_source_configs().get(identifier, {}) or {}
    return dict(entry.get("options", {}) or {})


def get_network_config(domain: Optional[str]) -> Dict[str, Any]:
    """Return network policy for a wiki domain, with sensible defaults.

    Values from the top-level 'network' section apply to every host and are
    overridden by 'hosts.<domain>.network'.

    Args:
        domain: Wiki host name (may be None for generic defaults)

    Returns:
        Network configuration dictionary with all fields populated
    """
    cfg = get_config()
    net = dict(cfg.get("network", {}) or {})
    if domain:
        host_cfg = (cfg.get("hosts", {}) or {}).get(domain.lower(), {}) or {}
        net.update(host_cfg.get("network", {}) or {})

    net.setdefault("timeout_s", 15.0)
    net.setdefault("delay_ms", 0)
    net.setdefault("jitter_ms", 0)
    # A failed call surfaces immediately unless retries are configured
    net.setdefault("max_attempts", 1)
    net.setdefault("base_backoff_s", 1.5)
    net.setdefault("backoff_multiplier", 1.5)
    net.setdefault("max_backoff_s", 60.0)
    net.setdefault("verify_ssl", True)

    if not isinstance(net.get("headers", {}), dict):
        net["headers"] = {}

    return net
