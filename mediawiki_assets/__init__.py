"""MediaWiki asset connector package.

Exposes the files of a MediaWiki / Wikimedia installation as a read-only,
paginated and searchable asset catalog.

Key modules:
- core: Modular core utilities (config, network, cache)
- model: RawAssetRecord, QueryResultBatch and error kinds
- client: MediaWikiClient issuing list/search/imageinfo requests
- query_result: Immutable container for one batch of records
- query: MediaWikiAssetProxyQuery (search term, offset, limit, execute)
- proxy: AssetProxy and the lazy query result adapter
- asset_source: MediaWikiAssetSource built from configuration
- repository: Query and single-proxy entry points for the host
- interfaces: Protocols the host relies on

Usage:
    from mediawiki_assets import MediaWikiAssetSource

    source = MediaWikiAssetSource("wikimedia-commons", {"domain": "commons.wikimedia.org"})
    query = source.get_asset_proxy_repository().find_by_search_term("cat")
    for proxy in query.execute():
        print(proxy.filename, proxy.license)
"""

from .asset_source import MediaWikiAssetSource, load_asset_sources
from .client import MediaWikiClient
from .model import (
    AssetSourceConnectionError,
    AssetSourceError,
    MalformedResponseError,
    QueryResultBatch,
    RawAssetRecord,
    RemoteApiError,
)
from .proxy import AssetProxy, MediaWikiAssetProxyQueryResult
from .query import MediaWikiAssetProxyQuery
from .query_result import MediaWikiQueryResult
from .repository import MediaWikiAssetProxyRepository

__all__ = [
    "AssetProxy",
    "AssetSourceConnectionError",
    "AssetSourceError",
    "MalformedResponseError",
    "MediaWikiAssetProxyQuery",
    "MediaWikiAssetProxyQueryResult",
    "MediaWikiAssetProxyRepository",
    "MediaWikiAssetSource",
    "MediaWikiClient",
    "MediaWikiQueryResult",
    "QueryResultBatch",
    "RawAssetRecord",
    "RemoteApiError",
    "load_asset_sources",
]
