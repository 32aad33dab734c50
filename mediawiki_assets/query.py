"""Mutable search/paging specification and its execution."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .proxy import MediaWikiAssetProxyQueryResult
from .query_result import MediaWikiQueryResult

if TYPE_CHECKING:
    from .asset_source import MediaWikiAssetSource

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20


class MediaWikiAssetProxyQuery:
    """Search term, offset and limit for one browse or search request.

    Setting values never performs I/O; execute() reads whatever is set at
    the time of the call.
    """

    def __init__(self, asset_source: "MediaWikiAssetSource"):
        self._asset_source = asset_source
        self._search_term = ""
        self._offset = 0
        self._limit = DEFAULT_LIMIT

    @property
    def search_term(self) -> str:
        return self._search_term

    @search_term.setter
    def search_term(self, value: str) -> None:
        self._search_term = value or ""

    @property
    def offset(self) -> int:
        return self._offset

    @offset.setter
    def offset(self, value: int) -> None:
        self._offset = int(value)

    @property
    def limit(self) -> int:
        return self._limit

    @limit.setter
    def limit(self, value: int) -> None:
        self._limit = int(value)

    def get_search_term(self) -> str:
        return self.search_term

    def set_search_term(self, search_term: str) -> None:
        self.search_term = search_term

    def get_offset(self) -> int:
        return self.offset

    def set_offset(self, offset: int) -> None:
        self.offset = offset

    def get_limit(self) -> int:
        return self.limit

    def set_limit(self, limit: int) -> None:
        self.limit = limit

    def execute(self) -> MediaWikiAssetProxyQueryResult:
        """Run the query against the wiki.

        An empty search term lists all files, anything else is a search.
        Errors from the client propagate unchanged.
        """
        client = self._asset_source.get_mediawiki_client()
        if not self._search_term:
            batch = client.find_all(self._offset, self._limit)
        else:
            batch = client.search(self._search_term, self._offset, self._limit)

        logger.debug(
            "Query %r (offset=%d, limit=%d) returned %d record(s) of %d",
            self._search_term, self._offset, self._limit, len(batch), batch.total_results,
        )
        return MediaWikiAssetProxyQueryResult(
            self, MediaWikiQueryResult.from_batch(batch), self._asset_source
        )

    def count(self) -> int:
        # Use execute().count() for the total the wiki reported
        raise NotImplementedError(f"{type(self).__name__}.count is not yet implemented")
