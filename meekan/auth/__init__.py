"""
Session authentication for the Meekan API.

Three credential kinds are supported:
- social login (provider callback parameters, completed by the Meekan API)
- iCloud (Apple ID + password, bootstrapped against setup.icloud.com first)
- raw session cookies (an already established Meekan session)
"""

from meekan.auth.handler import AuthHandler, MeekanAuthHandler, get_auth_handler
from meekan.auth.models import (
    Credential,
    ICloudCredential,
    ICloudServerEntity,
    SessionCookies,
    SocialLoginCredential,
)

__all__ = [
    "AuthHandler",
    "Credential",
    "ICloudCredential",
    "ICloudServerEntity",
    "MeekanAuthHandler",
    "SessionCookies",
    "SocialLoginCredential",
    "get_auth_handler",
]
