"""Asset source exposing one wiki to the host system.

Holds the asset-source options, creates the MediaWikiClient and the proxy
repository on first use, and answers the host's descriptive questions
(label, description, icon).
"""
from __future__ import annotations

import logging
import re
import threading
from typing import Any, Callable, Dict, Optional

from .client import MediaWikiClient
from .core.config import get_asset_source_configs, get_option_by_path
from .repository import MediaWikiAssetProxyRepository

logger = logging.getLogger(__name__)

IDENTIFIER_PATTERN = re.compile(r"^[a-z][a-z0-9-]{0,62}[a-z]$")


class MediaWikiAssetSource:
    """Read-only asset source backed by a MediaWiki file repository.

    Args:
        asset_source_identifier: Unique id matching IDENTIFIER_PATTERN
        asset_source_options: Options (domain, label, icon, useQueryResultCache, ...)
        icon_uri_resolver: Maps the 'icon' option to a public URI; the raw
            option value is returned when omitted
    """

    def __init__(
        self,
        asset_source_identifier: str,
        asset_source_options: Dict[str, Any],
        icon_uri_resolver: Optional[Callable[[str], str]] = None,
    ):
        if not IDENTIFIER_PATTERN.match(asset_source_identifier or ""):
            raise ValueError(
                f"Invalid asset source identifier {asset_source_identifier!r}; "
                f"must match {IDENTIFIER_PATTERN.pattern}"
            )
        if not get_option_by_path(asset_source_options, "domain"):
            raise ValueError(f"Asset source {asset_source_identifier!r} has no 'domain' option")

        self._identifier = asset_source_identifier
        self._options = dict(asset_source_options)
        self._copyright_notice_template = str(self._options.get("copyRightNoticeTemplate") or "")
        self._icon_uri_resolver = icon_uri_resolver
        self._client: Optional[MediaWikiClient] = None
        self._repository: Optional[MediaWikiAssetProxyRepository] = None
        self._client_lock = threading.Lock()

    @classmethod
    def create_from_configuration(
        cls,
        asset_source_identifier: str,
        asset_source_options: Dict[str, Any],
        icon_uri_resolver: Optional[Callable[[str], str]] = None,
    ) -> "MediaWikiAssetSource":
        return cls(asset_source_identifier, asset_source_options, icon_uri_resolver)

    def get_identifier(self) -> str:
        return self._identifier

    def get_label(self) -> str:
        return self.get_option("label") or self.get_option("domain")

    def get_description(self) -> str:
        return f"{self.get_label()}: {self.get_option('domain')}"

    def get_option(self, option_path: str, default: Any = None) -> Any:
        """Return an option by dotted path (e.g., 'network.timeout_s')."""
        return get_option_by_path(self._options, option_path, default)

    def is_read_only(self) -> bool:
        return True

    def get_copyright_notice_template(self) -> str:
        return self._copyright_notice_template

    def get_icon_uri(self) -> str:
        icon = self.get_option("icon") or ""
        if self._icon_uri_resolver is None or not icon:
            return icon
        return self._icon_uri_resolver(icon)

    def get_mediawiki_client(self) -> MediaWikiClient:
        with self._client_lock:
            if self._client is None:
                self._client = MediaWikiClient.from_options(self._options)
            return self._client

    def get_asset_proxy_repository(self) -> MediaWikiAssetProxyRepository:
        if self._repository is None:
            self._repository = MediaWikiAssetProxyRepository(self)
        return self._repository

    def __repr__(self) -> str:
        return f"MediaWikiAssetSource({self._identifier!r}, domain={self.get_option('domain')!r})"


def load_asset_sources(
    icon_uri_resolver: Optional[Callable[[str], str]] = None,
) -> Dict[str, MediaWikiAssetSource]:
    """Create every asset source listed under 'asset_sources' in the config.

    Entries that fail validation are logged and left out.
    """
    sources: Dict[str, MediaWikiAssetSource] = {}
    for identifier, entry in get_asset_source_configs().items():
        options = (entry or {}).get("options", {}) or {}
        try:
            sources[identifier] = MediaWikiAssetSource.create_from_configuration(
                identifier, options, icon_uri_resolver
            )
        except ValueError as e:
            logger.error("Skipping asset source %s: %s", identifier, e)
    logger.info("Loaded %d asset source(s)", len(sources))
    return sources
