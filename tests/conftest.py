"""Pytest configuration and shared fixtures for mediawiki_assets tests."""
from __future__ import annotations

import json
import os
import shutil
import tempfile
from typing import Any, Callable, Dict, Generator, List
from unittest.mock import MagicMock, patch

import pytest


# ============================================================================
# Path and Directory Fixtures
# ============================================================================

@pytest.fixture
def temp_dir() -> Generator[str, None, None]:
    """Create a temporary directory for test files."""
    dirpath = tempfile.mkdtemp(prefix="mediawiki_test_")
    yield dirpath
    shutil.rmtree(dirpath, ignore_errors=True)


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def commons_options() -> Dict[str, Any]:
    """Return asset-source options for Wikimedia Commons."""
    return {
        "domain": "commons.wikimedia.org",
        "label": "Wikimedia Commons",
        "icon": "resource://Vendor.Site/Public/Icons/Commons.svg",
        "useQueryResultCache": False,
        "copyRightNoticeTemplate": "{artist} / {license}",
    }


@pytest.fixture
def sample_config(commons_options: Dict[str, Any]) -> Dict[str, Any]:
    """Return a sample configuration dictionary."""
    return {
        "asset_sources": {
            "wikimedia-commons": {"options": commons_options},
            "de-wikipedia": {
                "options": {
                    "domain": "de.wikipedia.org",
                    "useQueryResultCache": True,
                    "maxPageSize": 30,
                }
            },
        },
        "network": {
            "timeout_s": 10,
            "delay_ms": 0,
        },
        "hosts": {
            "commons.wikimedia.org": {
                "network": {
                    "timeout_s": 20,
                    "headers": {"X-Test": "1"},
                }
            }
        },
    }


@pytest.fixture
def config_file(temp_dir: str, sample_config: Dict[str, Any]) -> str:
    """Create a temporary config file."""
    config_path = os.path.join(temp_dir, "config.json")
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(sample_config, f)
    return config_path


@pytest.fixture
def mock_config(sample_config: Dict[str, Any]):
    """Install sample config as the loaded configuration."""
    with patch("mediawiki_assets.core.config._CONFIG_CACHE", sample_config):
        yield sample_config


@pytest.fixture(autouse=True)
def reset_config_cache():
    """Start every test with an empty config cache (no config.json from CWD)."""
    import mediawiki_assets.core.config as config_module
    original_cache = config_module._CONFIG_CACHE
    config_module._CONFIG_CACHE = {}
    yield
    config_module._CONFIG_CACHE = original_cache


@pytest.fixture(autouse=True)
def reset_rate_limiters():
    """Drop per-host rate limiters between tests."""
    from mediawiki_assets.core import network
    network._RATE_LIMITERS.clear()
    yield
    network._RATE_LIMITERS.clear()


# ============================================================================
# Mock Response Fixtures
# ============================================================================

@pytest.fixture
def mock_response():
    """Create a mock HTTP response."""
    def _create_mock(
        status_code: int = 200,
        json_data: Any = None,
        content: bytes = b"",
        headers: Dict[str, str] | None = None,
        json_error: bool = False,
    ) -> MagicMock:
        response = MagicMock()
        response.status_code = status_code
        response.ok = 200 <= status_code < 300
        if json_error:
            response.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
        else:
            response.json.return_value = json_data if json_data is not None else {}
        response.content = content
        response.text = content.decode("utf-8") if content else ""
        response.headers = headers or {"Content-Type": "application/json"}
        response.iter_content = MagicMock(return_value=[content] if content else [])
        response.__enter__ = MagicMock(return_value=response)
        response.__exit__ = MagicMock(return_value=False)
        return response
    return _create_mock


# ============================================================================
# MediaWiki API Payload Fixtures
# ============================================================================

def make_page(page_id: int, name: str, **info_overrides: Any) -> Dict[str, Any]:
    """Build a formatversion=2 file page with imageinfo."""
    info = {
        "timestamp": "2019-05-04T10:20:30Z",
        "size": 1000 + page_id,
        "width": 800,
        "height": 600,
        "thumburl": f"https://upload.wikimedia.org/thumb/{name}/250px-{name}",
        "thumbwidth": 250,
        "thumbheight": 188,
        "url": f"https://upload.wikimedia.org/{name}",
        "descriptionurl": f"https://commons.wikimedia.org/wiki/File:{name}",
        "mime": "image/jpeg",
        "extmetadata": {
            "LicenseShortName": {"value": "CC BY-SA 4.0", "source": "commons-desc-page"},
            "LicenseUrl": {"value": "https://creativecommons.org/licenses/by-sa/4.0", "source": "commons-desc-page"},
            "Artist": {"value": f'<a href="//commons.wikimedia.org/wiki/User:Author{page_id}">Author {page_id}</a>'},
            "Credit": {"value": "<span>Own work</span>"},
        },
    }
    info.update(info_overrides)
    return {
        "pageid": page_id,
        "ns": 6,
        "title": f"File:{name}",
        "imagerepository": "local",
        "imageinfo": [info],
    }


@pytest.fixture
def page_factory() -> Callable[..., Dict[str, Any]]:
    return make_page


class FakeMediaWikiApi:
    """Stand-in for make_request that answers like api.php.

    files: ordered list of file names known to the wiki
    search_hits: mapping of search term to matching file names
    """

    def __init__(self, files: List[str], search_hits: Dict[str, List[str]] | None = None,
                 total_images: int | None = None, totalhits: Dict[str, int] | None = None,
                 max_titles: int = 50):
        self.files = files
        self.search_hits = search_hits or {}
        self.total_images = total_images
        self.totalhits = totalhits or {}
        self.max_titles = max_titles
        self.calls: List[Dict[str, Any]] = []

    def _page_id(self, name: str) -> int:
        return self.files.index(name) + 100

    def __call__(self, url: str, params: Dict[str, Any] | None = None, **kwargs: Any) -> Dict[str, Any]:
        params = dict(params or {})
        self.calls.append(params)
        if params.get("list") == "allimages":
            return self._allimages(params)
        if params.get("list") == "search":
            return self._search(params)
        if params.get("prop") == "imageinfo":
            return self._imageinfo(params)
        if params.get("meta") == "siteinfo":
            return {"batchcomplete": True, "query": {"statistics": {"images": self.total_images}}}
        raise AssertionError(f"Unexpected request {params!r}")

    def _allimages(self, params: Dict[str, Any]) -> Dict[str, Any]:
        start = int(params.get("aicontinue") or 0)
        limit = int(params["ailimit"])
        chunk = self.files[start:start + limit]
        query: Dict[str, Any] = {"allimages": [{"name": n, "ns": 6, "title": f"File:{n}"} for n in chunk]}
        if params.get("meta") == "siteinfo" and self.total_images is not None:
            query["statistics"] = {"images": self.total_images, "pages": 99}
        data: Dict[str, Any] = {"query": query}
        if start + limit < len(self.files):
            data["continue"] = {"aicontinue": str(start + limit), "continue": "-||"}
        return data

    def _search(self, params: Dict[str, Any]) -> Dict[str, Any]:
        names = self.search_hits.get(params["srsearch"], [])
        offset = int(params["sroffset"])
        limit = int(params["srlimit"])
        chunk = names[offset:offset + limit]
        query: Dict[str, Any] = {
            "search": [{"ns": 6, "title": f"File:{n}", "pageid": self._page_id(n)} for n in chunk]
        }
        if params["srsearch"] in self.totalhits:
            query["searchinfo"] = {"totalhits": self.totalhits[params["srsearch"]]}
        return {"batchcomplete": True, "query": query}

    def _imageinfo(self, params: Dict[str, Any]) -> Dict[str, Any]:
        titles = params["titles"].split("|")
        warnings: Dict[str, Any] = {}
        if len(titles) > self.max_titles:
            # api.php ignores titles beyond its limit and only warns
            titles = titles[:self.max_titles]
            warnings = {"query": {"warnings": (
                f'Too many values supplied for parameter "titles". The limit is {self.max_titles}.'
            )}}
        # The API does not preserve the requested order
        pages = [make_page(self._page_id(t[len("File:"):]), t[len("File:"):]) for t in reversed(titles)]
        data: Dict[str, Any] = {"batchcomplete": True, "query": {"pages": pages}}
        if warnings:
            data["warnings"] = warnings
        return data

    def count(self, **match: Any) -> int:
        return sum(1 for c in self.calls if all(c.get(k) == v for k, v in match.items()))


@pytest.fixture
def fake_api() -> FakeMediaWikiApi:
    """A wiki with 120 files, a 'cat' search matching every third file."""
    files = [f"Image_{i:03d}.jpg" for i in range(120)]
    return FakeMediaWikiApi(
        files=files,
        search_hits={"cat": files[::3], "nothing": []},
        total_images=120,
        totalhits={"cat": 40},
    )


@pytest.fixture
def patched_api(fake_api: FakeMediaWikiApi):
    """Route the client's make_request through fake_api."""
    with patch("mediawiki_assets.client.make_request", side_effect=fake_api):
        yield fake_api
