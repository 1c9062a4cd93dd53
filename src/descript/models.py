from __future__ import annotations

from typing import List

from pydantic import BaseModel, field_validator

from .policy import ContentKind, Decision


class DecideRequest(BaseModel):
    content_kind: ContentKind
    url: str

    @field_validator("content_kind", mode="before")
    @classmethod
    def coerce_kind(cls, value: object) -> ContentKind:
        return ContentKind.coerce(value)  # type: ignore[arg-type]


class DecideResponse(BaseModel):
    content_kind: ContentKind
    url: str
    decision: Decision


class CheckResponse(BaseModel):
    url: str
    matchable: bool
    allowed: bool


class OriginEntry(BaseModel):
    scheme: str
    host: str
    origin: str


class WhitelistResponse(BaseModel):
    preference: str
    origins: List[OriginEntry]


class UrlRequest(BaseModel):
    url: str


class PreferenceRequest(BaseModel):
    preference: str


class ChangeResponse(BaseModel):
    status: str
    changed: bool
    preference: str
