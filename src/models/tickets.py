"""Pydantic models for museum ticket stock."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from src.models.base import FlorenceBase, Pagination, TimestampMixin
from src.models.tours import _validate_time

# Older clients send the museum as ``code``.
_MUSEUM_ALIASES = AliasChoices("museum", "code")


class TicketCreate(FlorenceBase):
    location: str = Field(max_length=255)
    museum: str = Field(default="", max_length=255, validation_alias=_MUSEUM_ALIASES)
    ticket_type: str = Field(default="", max_length=255)
    date: dt.date
    time: str | None = None
    quantity: int = Field(ge=0)
    price: Decimal = Field(default=Decimal("0"), ge=0)
    notes: str | None = None
    status: str = Field(default="available", max_length=50)

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str | None) -> str | None:
        return _validate_time(value or None)


class TicketUpdate(FlorenceBase):
    """Partial update: only fields present in the request body are written."""

    location: str | None = Field(default=None, max_length=255)
    museum: str | None = Field(default=None, max_length=255, validation_alias=_MUSEUM_ALIASES)
    ticket_type: str | None = Field(default=None, max_length=255)
    date: dt.date | None = None
    time: str | None = None
    quantity: int | None = Field(default=None, ge=0)
    price: Decimal | None = Field(default=None, ge=0)
    notes: str | None = None
    status: str | None = Field(default=None, max_length=50)

    @field_validator("location", "museum", "ticket_type", "date", "quantity", "price", "status")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("field cannot be null")
        return value

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str | None) -> str | None:
        return _validate_time(value or None)


class TicketRead(TimestampMixin, FlorenceBase):
    id: int
    location: str = ""
    museum: str = ""
    ticket_type: str = ""
    date: dt.date
    time: str | None = None
    quantity: int = 0
    price: float = 0.0
    notes: str | None = None
    status: str = "available"


class TicketList(FlorenceBase):
    data: list[TicketRead]
    pagination: Pagination
