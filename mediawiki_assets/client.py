"""Client for the MediaWiki Action API (api.php) of a file repository.

Docs:
- Query module: https://www.mediawiki.org/wiki/API:Query
- list=search: https://www.mediawiki.org/wiki/API:Search
- list=allimages: https://www.mediawiki.org/wiki/API:Allimages
- prop=imageinfo: https://www.mediawiki.org/wiki/API:Imageinfo

Both find_all() and search() work in two steps: a listing request yields the
file titles of the requested page, then prop=imageinfo requests (at most 50
titles each) resolve those titles into URLs, sizes and license metadata.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from .core.cache import QueryResultCache, build_signature
from .core.config import (
    DEFAULT_API_PATH,
    DEFAULT_FILE_NAMESPACE,
    DEFAULT_MAX_PAGE_SIZE,
    DEFAULT_SCHEME,
    DEFAULT_THUMBNAIL_WIDTH,
    get_option_by_path,
)
from .core.network import build_session, make_request
from .model import (
    MalformedResponseError,
    QueryResultBatch,
    RawAssetRecord,
    RemoteApiError,
    convert_to_asset_record,
)

logger = logging.getLogger(__name__)

# Upper bound of ailimit for anonymous clients
ALLIMAGES_MAX_LIMIT = 500
# Titles accepted by one prop=imageinfo request (also the iiurlwidth thumbnail limit)
IMAGEINFO_MAX_TITLES = 50

IMAGEINFO_PROPS = "url|size|mime|extmetadata|timestamp"
EXTMETADATA_FILTER = "LicenseShortName|UsageTerms|License|LicenseUrl|Artist|Credit"


class MediaWikiClient:
    """Read-only access to the files of one wiki.

    Args:
        domain: Wiki host name (e.g., "commons.wikimedia.org")
        use_query_result_cache: Memoize batches per request signature
        cache: Cache instance to use; a private one is created when omitted
        api_path: Path of api.php on the host
        scheme: URL scheme
        file_namespace: Namespace number of file pages
        thumbnail_width: Width requested for thumbnail URLs
        max_page_size: Largest accepted limit; bigger limits are clamped
        session: requests session; the shared one is used when omitted
    """

    def __init__(
        self,
        domain: str,
        use_query_result_cache: bool = False,
        cache: Optional[QueryResultCache] = None,
        api_path: str = DEFAULT_API_PATH,
        scheme: str = DEFAULT_SCHEME,
        file_namespace: int = DEFAULT_FILE_NAMESPACE,
        thumbnail_width: int = DEFAULT_THUMBNAIL_WIDTH,
        max_page_size: int = DEFAULT_MAX_PAGE_SIZE,
        session: Optional[requests.Session] = None,
    ):
        if not domain:
            raise ValueError("A wiki domain is required")
        self.domain = domain
        self.endpoint = f"{scheme}://{domain}/{api_path.lstrip('/')}"
        self.use_query_result_cache = bool(use_query_result_cache)
        self.cache = cache if cache is not None else QueryResultCache()
        self.file_namespace = int(file_namespace)
        self.thumbnail_width = int(thumbnail_width)
        self.max_page_size = max(1, int(max_page_size))
        self.session = session

    @classmethod
    def from_options(cls, options: Dict[str, Any]) -> "MediaWikiClient":
        """Build a client from asset-source options."""
        user_agent = get_option_by_path(options, "userAgent")
        max_entries = get_option_by_path(options, "cacheMaxEntries")
        return cls(
            domain=get_option_by_path(options, "domain"),
            use_query_result_cache=bool(get_option_by_path(options, "useQueryResultCache", False)),
            cache=QueryResultCache(max_entries=int(max_entries) if max_entries else None),
            api_path=get_option_by_path(options, "apiPath", DEFAULT_API_PATH),
            scheme=get_option_by_path(options, "scheme", DEFAULT_SCHEME),
            file_namespace=get_option_by_path(options, "fileNamespace", DEFAULT_FILE_NAMESPACE),
            thumbnail_width=get_option_by_path(options, "thumbnailWidth", DEFAULT_THUMBNAIL_WIDTH),
            max_page_size=get_option_by_path(options, "maxPageSize", DEFAULT_MAX_PAGE_SIZE),
            session=build_session(user_agent) if user_agent else None,
        )

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def find_all(self, offset: int = 0, limit: int = 20) -> QueryResultBatch:
        """List files of the wiki in name order.

        Args:
            offset: Number of files to skip
            limit: Page size (clamped to max_page_size)

        Returns:
            Batch of at most limit records and the site's file count
        """
        offset, limit = self._normalize_paging(offset, limit)
        signature = build_signature(self.endpoint, {"mode": "all", "offset": offset, "limit": limit})
        return self._cached(signature, lambda: self._load_all(offset, limit))

    def search(self, term: str, offset: int = 0, limit: int = 20) -> QueryResultBatch:
        """Full-text search in the file namespace.

        Args:
            term: Search expression passed to list=search
            offset: Number of hits to skip
            limit: Page size (clamped to max_page_size)

        Returns:
            Batch of at most limit records and the reported total hits
        """
        offset, limit = self._normalize_paging(offset, limit)
        signature = build_signature(
            self.endpoint, {"mode": "search", "term": term, "offset": offset, "limit": limit}
        )
        return self._cached(signature, lambda: self._load_search(term, offset, limit))

    def find_by_identifier(self, identifier: str) -> RawAssetRecord:
        """Fetch one file by page id.

        Raises:
            RemoteApiError: With code "missing" if no such file exists
        """
        data = self._query({
            "prop": "imageinfo",
            "pageids": str(identifier),
            **self._imageinfo_params(),
        })
        pages = self._pages(data)
        for page in pages:
            if self._is_unusable(page):
                break
            return convert_to_asset_record(page)
        raise RemoteApiError("missing", f"No file with page id {identifier} on {self.domain}")

    def count_all(self) -> int:
        """Return the number of files the wiki reports in its statistics."""
        data = self._query({"meta": "siteinfo", "siprop": "statistics"})
        total, _ = self._statistics_total(self._query_section(data))
        return total

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _cached(self, signature: str, loader) -> QueryResultBatch:
        if not self.use_query_result_cache:
            return loader()
        return self.cache.get_or_load(signature, loader)

    def _normalize_paging(self, offset: int, limit: int) -> Tuple[int, int]:
        if offset < 0:
            raise ValueError(f"offset must be >= 0, got {offset}")
        if limit <= 0:
            raise ValueError(f"limit must be > 0, got {limit}")
        if limit > self.max_page_size:
            logger.debug("Clamping limit %d to max page size %d", limit, self.max_page_size)
            limit = self.max_page_size
        return int(offset), int(limit)

    def _load_all(self, offset: int, limit: int) -> QueryResultBatch:
        logger.info("Listing files on %s (offset=%d, limit=%d)", self.domain, offset, limit)
        wanted = offset + limit
        titles: List[str] = []
        total: Optional[int] = None
        reported = False
        continuation: Dict[str, Any] = {}

        # allimages has no numeric offset; walk the continuation until offset+limit titles are known
        while len(titles) < wanted:
            params: Dict[str, Any] = {
                "list": "allimages",
                "aisort": "name",
                "aiprop": "",
                "ailimit": min(ALLIMAGES_MAX_LIMIT, wanted - len(titles)),
            }
            if total is None:
                params["meta"] = "siteinfo"
                params["siprop"] = "statistics"
            params.update(continuation)

            data = self._query(params)
            query = self._query_section(data)
            if total is None:
                total, reported = self._statistics_total(query)

            images = query.get("allimages", [])
            if not isinstance(images, list):
                raise MalformedResponseError("query.allimages is not a list")
            titles.extend(img["title"] for img in images if isinstance(img, dict) and img.get("title"))

            continuation = data.get("continue") or {}
            if not continuation:
                break

        records = self._fetch_image_info(titles[offset:wanted])
        return QueryResultBatch(assets=tuple(records), total_results=total or 0, total_reported=reported)

    def _load_search(self, term: str, offset: int, limit: int) -> QueryResultBatch:
        logger.info("Searching %s for: %s (offset=%d, limit=%d)", self.domain, term, offset, limit)
        data = self._query({
            "list": "search",
            "srsearch": term,
            "srnamespace": self.file_namespace,
            "sroffset": offset,
            "srlimit": limit,
            "srinfo": "totalhits",
            "srprop": "",
        })
        query = self._query_section(data)

        hits = query.get("search", [])
        if not isinstance(hits, list):
            raise MalformedResponseError("query.search is not a list")
        titles = [h["title"] for h in hits if isinstance(h, dict) and h.get("title")]

        total = 0
        reported = False
        searchinfo = query.get("searchinfo")
        if isinstance(searchinfo, dict) and searchinfo.get("totalhits") is not None:
            try:
                total = int(searchinfo["totalhits"])
                reported = True
            except (TypeError, ValueError) as e:
                raise MalformedResponseError("searchinfo.totalhits is not a number") from e

        records = self._fetch_image_info(titles[:limit])
        return QueryResultBatch(assets=tuple(records), total_results=total, total_reported=reported)

    def _imageinfo_params(self) -> Dict[str, Any]:
        return {
            "iiprop": IMAGEINFO_PROPS,
            "iiurlwidth": self.thumbnail_width,
            "iiextmetadatafilter": EXTMETADATA_FILTER,
        }

    def _fetch_image_info(self, titles: List[str]) -> List[RawAssetRecord]:
        """Resolve titles into records, keeping the order of titles.

        Titles are sent in groups of IMAGEINFO_MAX_TITLES, one request each.
        """
        renamed: Dict[str, Any] = {}
        by_title: Dict[str, Dict[str, Any]] = {}
        for start in range(0, len(titles), IMAGEINFO_MAX_TITLES):
            group = titles[start:start + IMAGEINFO_MAX_TITLES]
            data = self._query({
                "prop": "imageinfo",
                "titles": "|".join(group),
                **self._imageinfo_params(),
            })
            query = self._query_section(data)

            # The API may rewrite titles (e.g. underscores to spaces)
            renamed.update(
                (n.get("from"), n.get("to"))
                for n in query.get("normalized", []) or []
                if isinstance(n, dict)
            )
            by_title.update(
                (page.get("title"), page)
                for page in self._pages(data)
                if isinstance(page, dict)
            )

        records: List[RawAssetRecord] = []
        for title in titles:
            page = by_title.get(renamed.get(title, title))
            if page is None or self._is_unusable(page):
                logger.warning("File %s vanished from %s between requests; skipping", title, self.domain)
                continue
            records.append(convert_to_asset_record(page))
        return records

    # ------------------------------------------------------------------
    # Response handling
    # ------------------------------------------------------------------

    def _query(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Issue an action=query request and check for an error payload."""
        full_params = {"action": "query", "format": "json", "formatversion": "2"}
        full_params.update(params)
        data = make_request(self.endpoint, params=full_params, session=self.session)

        error = data.get("error")
        if error is not None:
            if isinstance(error, dict):
                raise RemoteApiError(str(error.get("code") or "unknown"), str(error.get("info") or ""))
            raise RemoteApiError("unknown", str(error))

        warnings = data.get("warnings")
        if warnings:
            logger.warning("MediaWiki API warnings from %s: %s", self.domain, warnings)
        return data

    @staticmethod
    def _query_section(data: Dict[str, Any]) -> Dict[str, Any]:
        query = data.get("query")
        if query is None:
            # An empty result set may come without a query section
            return {}
        if not isinstance(query, dict):
            raise MalformedResponseError("'query' section is not an object")
        return query

    def _pages(self, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        pages = self._query_section(data).get("pages", [])
        if isinstance(pages, dict):
            # formatversion=1 keys pages by id
            pages = list(pages.values())
        if not isinstance(pages, list):
            raise MalformedResponseError("query.pages is not a list")
        return pages

    @staticmethod
    def _is_unusable(page: Dict[str, Any]) -> bool:
        return any(page.get(flag) not in (None, False) for flag in ("missing", "invalid", "filemissing"))

    @staticmethod
    def _statistics_total(query: Dict[str, Any]) -> Tuple[int, bool]:
        stats = query.get("statistics")
        if not isinstance(stats, dict) or stats.get("images") is None:
            return 0, False
        try:
            return int(stats["images"]), True
        except (TypeError, ValueError) as e:
            raise MalformedResponseError("statistics.images is not a number") from e
