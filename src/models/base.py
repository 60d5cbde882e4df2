"""Shared Pydantic base models."""

from __future__ import annotations

import math
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class FlorenceBase(BaseModel):
    """Base model with shared config for all back-office schemas."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class TimestampMixin(BaseModel):
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Pagination(BaseModel):
    page: int
    per_page: int
    total: int
    total_pages: int
    has_next: bool = False
    has_prev: bool = False

    @classmethod
    def build(cls, page: int, per_page: int, total: int) -> "Pagination":
        total_pages = math.ceil(total / per_page) if per_page else 0
        return cls(
            page=page,
            per_page=per_page,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )
