"""Pydantic models for guides."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from src.models.base import FlorenceBase, Pagination, TimestampMixin


def split_languages(value: Any) -> list[str]:
    """Normalize a languages value to a list.

    Stored as a comma-separated string; there is no escaping, so a language
    name containing a comma cannot round-trip.  Falsy values become [].
    """
    if not value:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(part).strip() for part in value if str(part).strip()]


def join_languages(languages: list[str] | None) -> str | None:
    if not languages:
        return None
    return ",".join(languages)


class GuideBase(FlorenceBase):
    name: str = Field(min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    email: str | None = Field(default=None, max_length=255)
    languages: list[str] = Field(default_factory=list)
    bio: str | None = None
    photo_url: str | None = None

    @field_validator("languages", mode="before")
    @classmethod
    def _split_languages(cls, value: Any) -> list[str]:
        return split_languages(value)


class GuideCreate(GuideBase):
    phone: str = Field(min_length=1, max_length=50)
    # Legacy clients POST with an id to update an existing guide.
    id: int | None = None


class GuideUpdate(FlorenceBase):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    phone: str | None = None
    email: str | None = None
    languages: list[str] | None = None
    bio: str | None = None
    photo_url: str | None = None

    @field_validator("languages", mode="before")
    @classmethod
    def _split_languages(cls, value: Any) -> list[str] | None:
        if value is None:
            return None
        return split_languages(value)


class GuideRead(GuideBase, TimestampMixin):
    id: int


class GuideList(FlorenceBase):
    data: list[GuideRead]
    pagination: Pagination
