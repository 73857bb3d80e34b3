"""
Pytest config.

Tests import the local `meekan/` package; pin the repo root on sys.path so that works even
when the package isn't installed or a global `pytest` entrypoint is used.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, Optional
from unittest.mock import MagicMock

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()


def _make_response(
    status_code: int = 200,
    *,
    body: bytes = b"",
    headers: Optional[Dict[str, str]] = None,
    reason: str = "OK",
    json_data: Any = None,
) -> MagicMock:
    """A stand-in for `requests.Response` (usable with or without `with`)."""
    from requests.structures import CaseInsensitiveDict

    resp = MagicMock()
    resp.status_code = status_code
    resp.reason = reason
    resp.headers = CaseInsensitiveDict(headers or {})
    resp.raw.read.return_value = body
    if json_data is None:
        resp.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        resp.json.return_value = json_data
    resp.__enter__.return_value = resp
    resp.__exit__.side_effect = lambda *a: resp.close() and None
    return resp


@pytest.fixture(autouse=True)
def _clear_api_config_cache(monkeypatch: pytest.MonkeyPatch):
    """`load_api_config` is cached; start every test from a clean environment."""
    from meekan.config import load_api_config

    monkeypatch.delenv("MEEKAN_API_URL", raising=False)
    monkeypatch.delenv("MEEKAN_HTTP_TIMEOUT_SECONDS", raising=False)
    load_api_config.cache_clear()
    yield
    load_api_config.cache_clear()


@pytest.fixture
def api_cfg():
    from meekan.config import ApiConfig

    return ApiConfig(api_url="https://api.meekan.test/")


@pytest.fixture
def cookie_jar():
    from meekan.transport import new_cookie_jar

    return new_cookie_jar()


@pytest.fixture
def fake_session(cookie_jar):
    session = MagicMock()
    session.cookies = cookie_jar
    return session


@pytest.fixture
def make_response():
    return _make_response
