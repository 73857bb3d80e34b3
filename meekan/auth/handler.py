from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

import requests
from requests.cookies import RequestsCookieJar

from meekan.auth.icloud import ICloudSessionResolver
from meekan.auth.models import (
    Credential,
    ICloudCredential,
    SessionCookies,
    SocialLoginCredential,
    with_server_entity,
)
from meekan.config import ApiConfig, load_api_config
from meekan.errors import MalformedURLError, MeekanApiException
from meekan.models import ApiRequestResponse
from meekan.transport import URL_ERRORS, DefaultIOHandler, IOHandler, new_cookie_jar

logger = logging.getLogger(__name__)

MALFORMED_URL_MESSAGE = "Malformed URL"


@runtime_checkable
class AuthHandler(Protocol):
    def social_login_authenticate(self, credential: SocialLoginCredential) -> ApiRequestResponse: ...

    def icloud_authenticate(self, credential: ICloudCredential) -> ApiRequestResponse: ...

    def session_cookies_authenticate(self, credential: SessionCookies) -> None: ...


def encode_state(params: Mapping[str, Any]) -> str:
    """Compact JSON sent as the `state` query parameter of the completion call."""
    return json.dumps(dict(params), separators=(",", ":"))


def completion_path(provider_name: str) -> str:
    return f"social_login/{provider_name}/complete"


class MeekanAuthHandler:
    """
    Negotiates a Meekan session for social-login, iCloud and raw-cookie credentials.

    Network-using operations never raise: URL problems become 400 "Malformed URL",
    network and API failures become 500 with the underlying message.
    """

    def __init__(
        self,
        io_handler: IOHandler,
        cookie_jar: RequestsCookieJar,
        cfg: Optional[ApiConfig] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.cfg = cfg or load_api_config()
        self.io_handler = io_handler
        self.cookie_jar = cookie_jar
        self._session = session or requests.Session()
        self._session.cookies = cookie_jar
        self.icloud = ICloudSessionResolver(self._session, self.cfg)

    def _complete(self, provider_name: str, params: Mapping[str, Any]) -> ApiRequestResponse:
        return self.io_handler.do_api_request(
            "GET",
            completion_path(provider_name),
            {"state": encode_state(params)},
        )

    def _error_result(self, provider_name: str, exc: Exception) -> ApiRequestResponse:
        if isinstance(exc, (MalformedURLError,) + URL_ERRORS):
            logger.warning("%s authentication failed: malformed URL (%s)", provider_name, exc)
            return ApiRequestResponse.error(400, MALFORMED_URL_MESSAGE)
        logger.warning("%s authentication failed: %s: %s", provider_name, type(exc).__name__, exc)
        return ApiRequestResponse.error(500, str(exc))

    def social_login_authenticate(self, credential: SocialLoginCredential) -> ApiRequestResponse:
        try:
            return self._complete(credential.provider_name, credential.to_params())
        except (MalformedURLError, MeekanApiException, requests.RequestException, OSError) as e:
            return self._error_result(credential.provider_name, e)

    def icloud_authenticate(self, credential: ICloudCredential) -> ApiRequestResponse:
        try:
            resolution = self.icloud.resolve(credential)
            # The completion call goes out even when unresolved; the server decides what to do.
            completed = with_server_entity(credential, resolution.server_entity)
            return self._complete(completed.provider_name, completed.to_params())
        except (MalformedURLError, MeekanApiException, requests.RequestException, OSError) as e:
            return self._error_result(credential.provider_name, e)

    def session_cookies_authenticate(self, credential: SessionCookies) -> None:
        domain = self.cfg.api_host
        self.cookie_jar.set("session", credential.session, domain=domain, path="/")
        self.cookie_jar.set("session_name", credential.session_name, domain=domain, path="/")

    def authenticate(self, credential: Credential) -> Optional[ApiRequestResponse]:
        """Dispatch on the credential kind. Raw session cookies produce no result."""
        if isinstance(credential, SocialLoginCredential):
            return self.social_login_authenticate(credential)
        if isinstance(credential, ICloudCredential):
            return self.icloud_authenticate(credential)
        if isinstance(credential, SessionCookies):
            self.session_cookies_authenticate(credential)
            return None
        raise TypeError(f"Unsupported credential type: {type(credential).__name__}")

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "MeekanAuthHandler":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def get_auth_handler(
    cfg: Optional[ApiConfig] = None,
    cookie_jar: Optional[RequestsCookieJar] = None,
) -> MeekanAuthHandler:
    """Build a handler and a transport that share one session and one cookie jar."""
    cfg = cfg or load_api_config()
    jar = cookie_jar if cookie_jar is not None else new_cookie_jar()
    session = requests.Session()
    io_handler = DefaultIOHandler(cfg, cookie_jar=jar, session=session)
    return MeekanAuthHandler(io_handler, jar, cfg=cfg, session=session)
