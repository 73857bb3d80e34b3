"""Normalized result returned by every Meekan API call.

The Meekan API wraps payloads as `{"meta": {...}, "data": ...}`. Failures that never reach the
server (bad URL, network error) are reported in the same shape so callers only branch on
`meta.code`.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ResultMeta(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    code: int
    request_id: Optional[str] = None
    message: str = Field(default="")


class ApiRequestResponse(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    meta: ResultMeta
    data: Optional[Any] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.meta.code < 300

    @classmethod
    def error(cls, code: int, message: str) -> "ApiRequestResponse":
        return cls(meta=ResultMeta(code=code, request_id="", message=message), data=None)
