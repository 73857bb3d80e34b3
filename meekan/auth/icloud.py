"""
iCloud session bootstrap.

iCloud's setup service is stateful: `validate` only answers 200 once the jar holds a live
iCloud session, and `login` establishes one. Resolution therefore runs a fixed fallback:

    START -> VALIDATE       200 -> RESOLVED, else -> LOGIN
    LOGIN                   200 -> RESOLVED, else -> VALIDATE_RETRY
    VALIDATE_RETRY          200 -> RESOLVED, else -> UNRESOLVED

Non-200 answers are control flow, not errors. Network errors propagate to the caller.
"""

from __future__ import annotations

import gzip
import json
import logging
import zlib
from dataclasses import dataclass
from enum import Enum
from http.cookiejar import Cookie
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import requests
import urllib3

from meekan.auth.models import ICloudCredential, ICloudServerEntity
from meekan.config import ApiConfig
from meekan.errors import MeekanApiException

logger = logging.getLogger(__name__)

VALIDATE_ICLOUD_URL = "https://setup.icloud.com/setup/ws/1/validate"
LOGIN_ICLOUD_URL = "https://setup.icloud.com/setup/ws/1/login"

# Negotiated per call; never replayed on calendar requests.
TRANSPORT_NEGOTIATION_HEADERS = ("Accept", "Accept-Encoding")


class ICloudAuthState(str, Enum):
    START = "start"
    VALIDATE = "validate"
    LOGIN = "login"
    VALIDATE_RETRY = "validate_retry"
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class ICloudResolution:
    state: ICloudAuthState
    server_entity: Optional[ICloudServerEntity]
    transitions: Tuple[ICloudAuthState, ...]

    @property
    def resolved(self) -> bool:
        return self.state is ICloudAuthState.RESOLVED


def icloud_headers(include_accept: bool) -> Dict[str, str]:
    """Browser-like header bundle expected by setup.icloud.com."""
    headers: Dict[str, str] = {}
    if include_accept:
        headers["Accept"] = "*/*"
        headers["Accept-Encoding"] = "gzip, deflate, compress"
    headers.update(
        {
            "Host": "setup.icloud.com",
            "Origin": "https://www.icloud.com",
            "Referer": "https://www.icloud.com/",
            "User-Agent": "Opera/9.52 (X11; Linux i686; U; en)",
            "Content-Type": "text/plain",
            "Accept-Language": "en-US,en;q=0.8,he;q=0.6,it;q=0.4",
        }
    )
    return headers


def replayable_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    return {k: v for k, v in headers.items() if k not in TRANSPORT_NEGOTIATION_HEADERS}


def login_body(credential: ICloudCredential) -> bytes:
    payload = {
        "extended_login": False,
        "password": credential.password,
        "apple_id": credential.apple_id,
    }
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def parse_icloud_response(
    body: bytes,
    *,
    content_encoding: Optional[str],
    cookies: Iterable[Cookie],
    request_headers: Mapping[str, str],
) -> ICloudServerEntity:
    """
    Build an ICloudServerEntity from a validate/login response document.

    Args:
        body: Raw response body (still compressed when content_encoding is gzip)
        content_encoding: Value of the Content-Encoding response header
        cookies: Jar contents at the time of the call
        request_headers: Headers sent with the request

    Raises:
        MeekanApiException if the body is not valid gzip/JSON or lacks the calendar URL / dsid
    """
    try:
        if (content_encoding or "").strip().lower() == "gzip":
            body = gzip.decompress(body)
        doc = json.loads(body.decode("utf-8"))
        endpoint = doc["webservices"]["calendar"]["url"]
        dsid = doc["dsInfo"]["dsid"]
    except (ValueError, KeyError, TypeError, EOFError, OSError, zlib.error) as e:
        raise MeekanApiException(f"Unexpected iCloud session document: {type(e).__name__}") from e

    return ICloudServerEntity.build(
        endpoint=str(endpoint),
        dsid=str(dsid),
        cookies=cookies,
        headers=replayable_headers(request_headers),
    )


class ICloudSessionResolver:
    """
    Runs the validate / login / validate fallback against iCloud's setup service.

    The session's cookie jar is the shared store: validate reads it, login responses write to it.
    """

    def __init__(self, session: requests.Session, cfg: ApiConfig) -> None:
        self._session = session
        self.cfg = cfg

    def _request_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"stream": True}
        if self.cfg.http_timeout_seconds is not None:
            kwargs["timeout"] = self.cfg.http_timeout_seconds
        return kwargs

    def _entity_from_response(self, resp: requests.Response, request_headers: Mapping[str, str]) -> ICloudServerEntity:
        cookies: List[Cookie] = list(self._session.cookies)
        # Read undecoded bytes; decompression is handled by parse_icloud_response.
        try:
            body = resp.raw.read(decode_content=False)
        except urllib3.exceptions.HTTPError as e:
            # Reading raw bypasses requests' own wrapping of urllib3 errors.
            raise requests.exceptions.ConnectionError(str(e), response=resp) from e
        return parse_icloud_response(
            body,
            content_encoding=resp.headers.get("Content-Encoding"),
            cookies=cookies,
            request_headers=request_headers,
        )

    def validate(self) -> Optional[ICloudServerEntity]:
        """GET the validate endpoint with the stored cookies; None unless it answers 200."""
        headers = icloud_headers(include_accept=False)
        # None drops the session's Accept/Accept-Encoding defaults; http.client still sends
        # "Accept-Encoding: identity" when none is set.
        send_headers: Dict[str, Optional[str]] = {**headers, "Accept": None, "Accept-Encoding": None}
        resp = self._session.get(VALIDATE_ICLOUD_URL, headers=send_headers, **self._request_kwargs())
        try:
            if resp.status_code != 200:
                return None
            return self._entity_from_response(resp, headers)
        finally:
            resp.close()

    def login(self, credential: ICloudCredential) -> Optional[ICloudServerEntity]:
        """POST the Apple ID and password; None unless iCloud answers 200."""
        headers = icloud_headers(include_accept=True)
        body = login_body(credential)
        send_headers = {**headers, "Content-Length": str(len(body))}
        resp = self._session.post(LOGIN_ICLOUD_URL, data=body, headers=send_headers, **self._request_kwargs())
        try:
            if resp.status_code != 200:
                logger.warning("iCloud login failed (status=%s): %s", resp.status_code, resp.reason)
                return None
            return self._entity_from_response(resp, headers)
        finally:
            resp.close()

    def resolve(self, credential: ICloudCredential) -> ICloudResolution:
        steps: Tuple[Tuple[ICloudAuthState, Callable[[], Optional[ICloudServerEntity]]], ...] = (
            (ICloudAuthState.VALIDATE, self.validate),
            (ICloudAuthState.LOGIN, lambda: self.login(credential)),
            (ICloudAuthState.VALIDATE_RETRY, self.validate),
        )

        transitions = [ICloudAuthState.START]
        for state, step in steps:
            transitions.append(state)
            logger.debug("iCloud auth step: %s", state.value)
            entity = step()
            if entity is not None:
                transitions.append(ICloudAuthState.RESOLVED)
                return ICloudResolution(ICloudAuthState.RESOLVED, entity, tuple(transitions))

        transitions.append(ICloudAuthState.UNRESOLVED)
        logger.debug("iCloud auth unresolved after %d steps", len(steps))
        return ICloudResolution(ICloudAuthState.UNRESOLVED, None, tuple(transitions))
