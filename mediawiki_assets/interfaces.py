"""Protocols describing the seams between the connector and its host.

The host only relies on these shapes, which lets the connector be tested
without the host present.
"""
from __future__ import annotations

from typing import Any, Iterator, Protocol, runtime_checkable


@runtime_checkable
class AssetProxyQuery(Protocol):
    """A queryable source: paging and term mutators plus execution."""

    def get_offset(self) -> int: ...

    def set_offset(self, offset: int) -> None: ...

    def get_limit(self) -> int: ...

    def set_limit(self, limit: int) -> None: ...

    def get_search_term(self) -> str: ...

    def set_search_term(self, search_term: str) -> None: ...

    def execute(self) -> "AssetProxyQueryResult": ...

    def count(self) -> int: ...


@runtime_checkable
class AssetProxyQueryResult(Protocol):
    """Converted records of one executed query."""

    def count(self) -> int: ...

    def __len__(self) -> int: ...

    def __iter__(self) -> Iterator[Any]: ...

    def __getitem__(self, index: Any) -> Any: ...
