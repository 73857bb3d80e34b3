from __future__ import annotations

from dataclasses import dataclass, field, replace
from http.cookiejar import Cookie
from typing import Any, ClassVar, Dict, Iterable, Mapping, Optional, Tuple, Union

ICLOUD_PROVIDER_NAME = "icloud"


@dataclass(frozen=True)
class SocialLoginCredential:
    """Federated login: provider name plus whatever the provider handed back (code, token, ...)."""

    provider_name: str
    params: Mapping[str, str] = field(default_factory=dict)

    def to_params(self) -> Dict[str, Any]:
        return dict(self.params)


@dataclass(frozen=True)
class ServerCookie:
    """Snapshot of one cookie held by the jar when an iCloud session was established."""

    name: str
    value: str = field(repr=False)
    domain: str = ""
    path: str = "/"

    @classmethod
    def from_cookie(cls, cookie: Cookie) -> "ServerCookie":
        return cls(
            name=cookie.name,
            value=cookie.value or "",
            domain=cookie.domain or "",
            path=cookie.path or "/",
        )

    def to_params(self) -> Dict[str, str]:
        return {"name": self.name, "value": self.value, "domain": self.domain, "path": self.path}


@dataclass(frozen=True)
class ICloudServerEntity:
    """Session context returned by iCloud's setup service (validate or login)."""

    endpoint: str  # webservices.calendar.url
    dsid: str  # dsInfo.dsid
    cookies: Tuple[ServerCookie, ...] = ()
    # Outbound request headers, minus Accept/Accept-Encoding, for replay on calendar calls
    headers: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        *,
        endpoint: str,
        dsid: str,
        cookies: Iterable[Cookie],
        headers: Mapping[str, str],
    ) -> "ICloudServerEntity":
        return cls(
            endpoint=endpoint,
            dsid=dsid,
            cookies=tuple(ServerCookie.from_cookie(c) for c in cookies),
            headers=dict(headers),
        )

    def to_params(self) -> Dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "dsid": self.dsid,
            "cookies": [c.to_params() for c in self.cookies],
            "headers": dict(self.headers),
        }


@dataclass(frozen=True)
class ICloudCredential:
    apple_id: str
    password: str = field(repr=False)
    server_entity: Optional[ICloudServerEntity] = None

    provider_name: ClassVar[str] = ICLOUD_PROVIDER_NAME

    def to_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {"apple_id": self.apple_id, "password": self.password}
        if self.server_entity is not None:
            params.update(self.server_entity.to_params())
        return params


def with_server_entity(credential: ICloudCredential, entity: Optional[ICloudServerEntity]) -> ICloudCredential:
    """Return a copy of `credential` carrying `entity`; the original is left untouched."""
    if entity is None:
        return credential
    return replace(credential, server_entity=entity)


@dataclass(frozen=True)
class SessionCookies:
    """An existing Meekan session (values of the `session` and `session_name` cookies)."""

    session: str = field(repr=False)
    session_name: str


Credential = Union[SocialLoginCredential, ICloudCredential, SessionCookies]
