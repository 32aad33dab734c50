"""Host-facing asset proxies and the lazy query result adapter.

Records are converted into AssetProxy objects only when the caller reads
them, so pages that are never fully consumed cost no conversion work.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Union

from .core.network import stream_file
from .model import RawAssetRecord
from .query_result import MediaWikiQueryResult

if TYPE_CHECKING:
    from .asset_source import MediaWikiAssetSource
    from .query import MediaWikiAssetProxyQuery

logger = logging.getLogger(__name__)


class _NoticeValues(dict):
    """Mapping for str.format_map that renders unknown placeholders empty."""

    def __missing__(self, key: str) -> str:
        return ""


def render_copyright_notice(template: str, record: RawAssetRecord) -> str:
    """Interpolate a copyright notice template with a record's license data.

    Placeholders: {artist}, {credit}, {license}, {licenseUrl}, {filename},
    {title}, {descriptionUrl}.

    Args:
        template: Template string from the asset-source options
        record: Record supplying the values

    Returns:
        Rendered notice; the template itself if it is not a valid format string
    """
    if not template:
        return ""
    values = _NoticeValues(
        artist=record.artist,
        credit=record.credit,
        license=record.license,
        licenseUrl=record.license_url or "",
        filename=record.filename,
        title=record.title,
        descriptionUrl=record.description_url or "",
    )
    try:
        return template.format_map(values).strip()
    except (ValueError, IndexError, AttributeError) as e:
        logger.warning("Invalid copyright notice template %r: %s", template, e)
        return template


@dataclass(frozen=True)
class AssetProxy:
    """Converted, host-facing representation of one remote file."""

    asset_source_identifier: str
    identifier: str
    label: str
    filename: str
    media_type: str
    width: Optional[int]
    height: Optional[int]
    file_size: int
    thumbnail_uri: str
    original_uri: str
    license: str
    copyright_notice: str
    last_modified: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: RawAssetRecord, asset_source: "MediaWikiAssetSource") -> "AssetProxy":
        return cls(
            asset_source_identifier=asset_source.get_identifier(),
            identifier=record.identifier,
            label=record.filename,
            filename=record.filename,
            media_type=record.media_type,
            width=record.width,
            height=record.height,
            file_size=record.file_size,
            thumbnail_uri=record.thumbnail_url,
            original_uri=record.original_url,
            license=record.license,
            copyright_notice=render_copyright_notice(
                asset_source.get_copyright_notice_template(), record
            ),
            last_modified=record.last_modified,
        )

    def import_stream(self, chunk_size: int = 64 * 1024, session=None) -> Iterator[bytes]:
        """Stream the original file content."""
        return stream_file(self.original_uri, chunk_size=chunk_size, session=session)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MediaWikiAssetProxyQueryResult(Sequence):
    """Adapter presenting a MediaWikiQueryResult as asset proxies.

    count() is the total the wiki reported for the query, len() the number of
    proxies available in this page. count(value) keeps the Sequence meaning
    and counts occurrences of value in this page.
    """

    def __init__(
        self,
        query: "MediaWikiAssetProxyQuery",
        result: MediaWikiQueryResult,
        asset_source: "MediaWikiAssetSource",
    ):
        self._query = query
        self._result = result
        self._asset_source = asset_source

    def _convert(self, record: RawAssetRecord) -> AssetProxy:
        return AssetProxy.from_record(record, self._asset_source)

    def get_query(self) -> "MediaWikiAssetProxyQuery":
        return self._query

    def get_query_result(self) -> MediaWikiQueryResult:
        return self._result

    def count(self, *value: Any) -> int:
        if value:
            return super().count(*value)
        return self._result.get_total_results()

    def get_first(self) -> Optional[AssetProxy]:
        if not self._result:
            return None
        return self._convert(self._result[0])

    def to_array(self) -> List[AssetProxy]:
        return [self._convert(r) for r in self._result]

    def __getitem__(self, index: Union[int, slice]):
        if isinstance(index, slice):
            return [self._convert(r) for r in self._result[index]]
        return self._convert(self._result[index])

    def __len__(self) -> int:
        return len(self._result)

    def __iter__(self) -> Iterator[AssetProxy]:
        for record in self._result.get_asset_iterator():
            yield self._convert(record)
