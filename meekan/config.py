from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional
from urllib.parse import urlparse

DEFAULT_API_URL = "https://api.meekan.com/"


@dataclass(frozen=True)
class ApiConfig:
    # Base URL of the Meekan API; always ends with "/"
    api_url: str

    # None means requests block until the server answers
    http_timeout_seconds: Optional[float] = None

    @property
    def api_host(self) -> str:
        """Host name the Meekan session cookies are scoped to."""
        return urlparse(self.api_url).hostname or ""


def _normalize_api_url(value: str) -> str:
    url = (value or "").strip() or DEFAULT_API_URL
    if not url.endswith("/"):
        url = url + "/"
    return url


def _parse_timeout(value: str) -> Optional[float]:
    raw = (value or "").strip()
    if not raw:
        return None
    try:
        timeout = float(raw)
    except ValueError:
        return None
    if timeout <= 0:
        return None
    return timeout


@lru_cache(maxsize=1)
def load_api_config() -> ApiConfig:
    """
    Load SDK configuration from environment variables.

    MEEKAN_API_URL overrides the API origin (default https://api.meekan.com/).
    MEEKAN_HTTP_TIMEOUT_SECONDS sets a per-request timeout; unset, empty or non-positive
    values keep the blocking default.
    """
    return ApiConfig(
        api_url=_normalize_api_url(os.getenv("MEEKAN_API_URL", "")),
        http_timeout_seconds=_parse_timeout(os.getenv("MEEKAN_HTTP_TIMEOUT_SECONDS", "")),
    )
