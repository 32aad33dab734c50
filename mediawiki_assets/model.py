"""Data models for the MediaWiki asset connector.

Provides the RawAssetRecord and QueryResultBatch dataclasses, the conversion
from MediaWiki page JSON into records, and the error kinds raised by the
remote API client.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from bs4 import BeautifulSoup


class AssetSourceError(Exception):
    """Base class for errors raised while querying a remote wiki."""


class AssetSourceConnectionError(AssetSourceError, ConnectionError):
    """The remote API could not be reached or answered with an HTTP error."""

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class MalformedResponseError(AssetSourceError, ValueError):
    """The response body is not JSON or lacks fields the client relies on."""


class RemoteApiError(AssetSourceError):
    """The remote API answered with an error payload.

    Attributes:
        code: MediaWiki error code (e.g., "srsearch-text-disabled")
        info: Human readable message supplied by the wiki
    """

    def __init__(self, code: str, info: str = ""):
        super().__init__(f"{code}: {info}" if info else code)
        self.code = code
        self.info = info


@dataclass(frozen=True)
class RawAssetRecord:
    """One file page as reported by the MediaWiki imageinfo API.

    Attributes:
        identifier: Page id of the file page, as string
        title: Full page title including namespace (e.g., "File:Cat.jpg")
        filename: Title without the namespace prefix
        media_type: MIME type of the original file
        width: Pixel width, if the file has one
        height: Pixel height, if the file has one
        file_size: Size of the original file in bytes
        thumbnail_url: Scaled rendition URL (falls back to original_url)
        original_url: Direct URL of the original file
        license: License short name or usage terms, as plain text
        license_url: Link to the license text, if known
        artist: Author attribution, as plain text
        credit: Credit line, as plain text
        description_url: File description page on the wiki
        last_modified: Upload timestamp of the current file version
    """

    identifier: str
    title: str
    filename: str
    media_type: str
    original_url: str
    thumbnail_url: str
    width: Optional[int] = None
    height: Optional[int] = None
    file_size: int = 0
    license: str = ""
    license_url: Optional[str] = None
    artist: str = ""
    credit: str = ""
    description_url: Optional[str] = None
    last_modified: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert the record to a plain dictionary."""
        return asdict(self)


@dataclass(frozen=True)
class QueryResultBatch:
    """One page of records plus the total the remote API reported.

    total_reported is False when the wiki did not supply a total and
    total_results was defaulted to 0.
    """

    assets: Tuple[RawAssetRecord, ...] = field(default_factory=tuple)
    total_results: int = 0
    total_reported: bool = False

    def __len__(self) -> int:
        return len(self.assets)


def _strip_html(value: Any) -> str:
    """Reduce an extmetadata value (often an HTML fragment) to plain text."""
    if value is None:
        return ""
    text = str(value)
    if "<" not in text:
        return text.strip()
    return BeautifulSoup(text, "html.parser").get_text(" ", strip=True)


def _ext_value(extmetadata: Dict[str, Any], key: str) -> str:
    entry = extmetadata.get(key)
    if isinstance(entry, dict):
        return _strip_html(entry.get("value"))
    return ""


def _as_int(value: Any) -> Optional[int]:
    """Convert a numeric API value to int; None for missing or zero dimensions."""
    if value is None:
        return None
    try:
        iv = int(value)
    except (TypeError, ValueError):
        return None
    return iv if iv > 0 else None


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def filename_from_title(title: str) -> str:
    """Strip the namespace prefix from a file page title."""
    if ":" in title:
        return title.split(":", 1)[1]
    return title


def convert_to_asset_record(page: Dict[str, Any]) -> RawAssetRecord:
    """Convert a MediaWiki page (formatversion=2, prop=imageinfo) into a record.

    Args:
        page: One entry of query.pages

    Returns:
        Immutable RawAssetRecord

    Raises:
        MalformedResponseError: If the page has no id, no title or no file URL
    """
    if not isinstance(page, dict):
        raise MalformedResponseError(f"Expected a page object, got {type(page).__name__}")

    page_id = page.get("pageid")
    title = page.get("title")
    if page_id is None or not title:
        raise MalformedResponseError(f"Page entry without pageid/title: {page!r}")

    infos = page.get("imageinfo")
    if not isinstance(infos, list) or not infos or not isinstance(infos[0], dict):
        raise MalformedResponseError(f"Page {title!r} carries no imageinfo")
    info = infos[0]

    original_url = info.get("url")
    if not original_url:
        raise MalformedResponseError(f"Page {title!r} carries no file URL")

    extmetadata = info.get("extmetadata") or {}
    license_text = (
        _ext_value(extmetadata, "LicenseShortName")
        or _ext_value(extmetadata, "UsageTerms")
        or _ext_value(extmetadata, "License")
    )

    try:
        file_size = int(info.get("size") or 0)
    except (TypeError, ValueError):
        file_size = 0

    return RawAssetRecord(
        identifier=str(page_id),
        title=title,
        filename=filename_from_title(title),
        media_type=info.get("mime") or "application/octet-stream",
        original_url=original_url,
        thumbnail_url=info.get("thumburl") or original_url,
        width=_as_int(info.get("width")),
        height=_as_int(info.get("height")),
        file_size=file_size,
        license=license_text,
        license_url=_ext_value(extmetadata, "LicenseUrl") or None,
        artist=_ext_value(extmetadata, "Artist"),
        credit=_ext_value(extmetadata, "Credit"),
        description_url=info.get("descriptionurl"),
        last_modified=_parse_timestamp(info.get("timestamp")),
    )
