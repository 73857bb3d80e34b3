"""Exceptions raised inside the SDK before they are folded into an ApiRequestResponse."""

from __future__ import annotations

from typing import Optional


class MeekanApiException(Exception):
    """The Meekan API (or a vendor auth service) answered with something we can't use."""

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.code = code


class MalformedURLError(ValueError):
    """A request URL could not be built or was rejected before sending."""
