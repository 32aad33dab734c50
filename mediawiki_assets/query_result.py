"""Immutable container for one batch of raw query results."""
from __future__ import annotations

from collections.abc import Sequence
from typing import Iterable, Iterator, Tuple, Union, overload

from .model import QueryResultBatch, RawAssetRecord


class MediaWikiQueryResult(Sequence):
    """Ordered, indexable and repeatedly iterable view of a batch.

    len() is the number of records present in this page, while
    get_total_results() is the total the wiki reported for the whole query.
    Each iteration starts a fresh cursor at the first record.
    """

    def __init__(self, assets: Iterable[RawAssetRecord], total_results: int, total_reported: bool = True):
        self._assets: Tuple[RawAssetRecord, ...] = tuple(assets)
        self._total_results = int(total_results or 0)
        self._total_reported = bool(total_reported)

    @classmethod
    def from_batch(cls, batch: QueryResultBatch) -> "MediaWikiQueryResult":
        return cls(batch.assets, batch.total_results, batch.total_reported)

    def get_assets(self) -> Tuple[RawAssetRecord, ...]:
        return self._assets

    def get_asset_iterator(self) -> Iterator[RawAssetRecord]:
        return iter(self._assets)

    def get_total_results(self) -> int:
        return self._total_results

    def is_total_reported(self) -> bool:
        """Whether the wiki supplied the total or it was defaulted to 0."""
        return self._total_reported

    @overload
    def __getitem__(self, index: int) -> RawAssetRecord: ...

    @overload
    def __getitem__(self, index: slice) -> Tuple[RawAssetRecord, ...]: ...

    def __getitem__(self, index: Union[int, slice]):
        return self._assets[index]

    def __len__(self) -> int:
        return len(self._assets)

    def __iter__(self) -> Iterator[RawAssetRecord]:
        return iter(self._assets)

    def __repr__(self) -> str:
        return f"MediaWikiQueryResult(records={len(self._assets)}, total_results={self._total_results})"
