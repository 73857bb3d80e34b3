"""
HTTP transport for Meekan API calls.

Supports cookie-based sessions: the transport shares a cookie jar with the auth handler, so a
session negotiated there is sent on every following API call.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable
from urllib.parse import urljoin, urlparse

import requests
from requests.cookies import RequestsCookieJar

from meekan.config import ApiConfig, load_api_config
from meekan.errors import MalformedURLError, MeekanApiException
from meekan.models import ApiRequestResponse, ResultMeta

logger = logging.getLogger(__name__)

QueryParams = Mapping[str, Union[str, Sequence[str]]]

# requests raises these before anything is sent; they all mean "bad URL"
URL_ERRORS = (
    requests.exceptions.InvalidURL,
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
    requests.exceptions.URLRequired,
)


@runtime_checkable
class IOHandler(Protocol):
    def do_api_request(
        self, method: str, path: str, params: Optional[QueryParams] = None
    ) -> ApiRequestResponse: ...


def new_cookie_jar() -> RequestsCookieJar:
    """Create an empty cookie jar; pass the same jar to the transport and the auth handler."""
    return RequestsCookieJar()


def build_api_url(cfg: ApiConfig, path: str) -> str:
    """
    Resolve an API path (e.g. `social_login/google/complete`) against the configured API URL.

    Raises:
        MalformedURLError if the result is not an absolute http(s) URL
    """
    try:
        url = urljoin(cfg.api_url, (path or "").lstrip("/"))
        parsed = urlparse(url)
    except ValueError as e:
        raise MalformedURLError(f"Invalid API URL: {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise MalformedURLError(f"Invalid API URL: {url!r}")
    return url


def parse_api_envelope(status_code: int, payload: Any) -> ApiRequestResponse:
    """
    Map a Meekan `{"meta": ..., "data": ...}` document to an ApiRequestResponse.

    Raises:
        MeekanApiException if the document is not an envelope
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("meta"), dict):
        raise MeekanApiException(f"Unexpected response from Meekan API (status={status_code})", code=status_code)

    meta = payload["meta"]
    try:
        code = int(meta.get("code") or status_code)
    except (TypeError, ValueError):
        code = status_code
    request_id = meta.get("request_id")
    message = meta.get("error_message") or meta.get("message") or ""
    return ApiRequestResponse(
        meta=ResultMeta(
            code=code,
            request_id=str(request_id) if request_id is not None else None,
            message=str(message),
        ),
        data=payload.get("data"),
    )


class DefaultIOHandler:
    """
    Transport backed by a `requests.Session` bound to an injected cookie jar.

    Errors are raised, not normalized: MalformedURLError for URL problems,
    `requests.RequestException` for network failures and MeekanApiException for
    responses that aren't Meekan envelopes. The auth handler folds them into results.
    """

    def __init__(
        self,
        cfg: Optional[ApiConfig] = None,
        cookie_jar: Optional[RequestsCookieJar] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.cfg = cfg or load_api_config()
        self.cookie_jar = cookie_jar if cookie_jar is not None else new_cookie_jar()
        self._session = session or requests.Session()
        self._session.cookies = self.cookie_jar

    def do_api_request(
        self, method: str, path: str, params: Optional[QueryParams] = None
    ) -> ApiRequestResponse:
        url = build_api_url(self.cfg, path)
        kwargs: Dict[str, Any] = {"params": dict(params or {})}
        if self.cfg.http_timeout_seconds is not None:
            kwargs["timeout"] = self.cfg.http_timeout_seconds

        try:
            with self._session.request(method.upper(), url, **kwargs) as resp:
                status_code = resp.status_code
                try:
                    payload = resp.json()
                except ValueError as e:
                    raise MeekanApiException(
                        f"Unexpected response from Meekan API (status={status_code})", code=status_code
                    ) from e
        except URL_ERRORS as e:
            raise MalformedURLError(str(e)) from e

        result = parse_api_envelope(status_code, payload)
        logger.debug("Meekan API %s %s -> %s", method.upper(), path, result.meta.code)
        return result

    def close(self) -> None:
        self._session.close()
