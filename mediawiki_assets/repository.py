"""Repository entry points the host uses to browse one asset source."""
from __future__ import annotations

from typing import TYPE_CHECKING

from .proxy import AssetProxy
from .query import MediaWikiAssetProxyQuery

if TYPE_CHECKING:
    from .asset_source import MediaWikiAssetSource


class MediaWikiAssetProxyRepository:
    """Creates queries and resolves single proxies for an asset source."""

    def __init__(self, asset_source: "MediaWikiAssetSource"):
        self._asset_source = asset_source

    def find_all(self) -> MediaWikiAssetProxyQuery:
        return MediaWikiAssetProxyQuery(self._asset_source)

    def find_by_search_term(self, search_term: str) -> MediaWikiAssetProxyQuery:
        query = MediaWikiAssetProxyQuery(self._asset_source)
        query.search_term = search_term
        return query

    def get_asset_proxy(self, identifier: str) -> AssetProxy:
        """Fetch one proxy by page id.

        Raises:
            RemoteApiError: If the wiki has no file with that id
        """
        record = self._asset_source.get_mediawiki_client().find_by_identifier(identifier)
        return AssetProxy.from_record(record, self._asset_source)

    def count_all(self) -> int:
        return self._asset_source.get_mediawiki_client().count_all()
