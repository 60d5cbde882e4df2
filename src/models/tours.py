"""Pydantic models for tours and their paid/cancelled flags."""

from __future__ import annotations

import datetime as dt
import re
from decimal import Decimal
from typing import Any, Literal

from pydantic import AliasChoices, Field, field_validator

from src.models.base import FlorenceBase, Pagination, TimestampMixin

PaymentStatus = Literal["unpaid", "partial", "paid", "overpaid"]

_TIME_RE = re.compile(r"^\d{1,2}:\d{2}(:\d{2})?$")


def _validate_time(value: str | None) -> str | None:
    if value is None:
        return None
    if not _TIME_RE.match(value):
        raise ValueError("time must be HH:MM")
    hours, minutes = value.split(":")[:2]
    return f"{int(hours):02d}:{minutes}"


def _flag(value: Any) -> bool:
    """NULL / missing flags read as False."""
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    return bool(value)


class TourCreate(FlorenceBase):
    title: str = Field(min_length=1, max_length=500)
    duration: str | None = "2 hours"
    description: str | None = ""
    date: dt.date
    time: str
    guide_id: int = Field(validation_alias=AliasChoices("guideId", "guide_id"))
    paid: bool = False
    cancelled: bool = False
    booking_channel: str | None = Field(
        default=None, validation_alias=AliasChoices("bookingChannel", "booking_channel")
    )
    notes: str | None = None
    expected_amount: Decimal | None = Field(
        default=None, validation_alias=AliasChoices("expectedAmount", "expected_amount")
    )
    payment_status: PaymentStatus = Field(
        default="unpaid", validation_alias=AliasChoices("paymentStatus", "payment_status")
    )

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str | None) -> str | None:
        return _validate_time(value)


class TourUpdate(FlorenceBase):
    """Partial update: only fields present in the request body are written."""

    title: str | None = Field(default=None, min_length=1, max_length=500)
    duration: str | None = None
    description: str | None = None
    date: dt.date | None = None
    time: str | None = None
    guide_id: int | None = Field(
        default=None, validation_alias=AliasChoices("guideId", "guide_id")
    )
    notes: str | None = None
    booking_channel: str | None = None
    paid: bool | None = None
    cancelled: bool | None = None
    payment_status: PaymentStatus | None = None
    expected_amount: Decimal | None = None
    language: str | None = None

    @field_validator("title", "date", "time")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        # NOT NULL columns: omit the field to leave it unchanged.
        if value is None:
            raise ValueError("field cannot be null")
        return value

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str | None) -> str | None:
        return _validate_time(value)

    @field_validator("guide_id", mode="before")
    @classmethod
    def _empty_guide(cls, value: Any) -> Any:
        # An empty string unassigns the guide.
        return None if value == "" else value


class TourPaidUpdate(FlorenceBase):
    paid: bool


class TourCancelledUpdate(FlorenceBase):
    cancelled: bool


class TourRead(TimestampMixin, FlorenceBase):
    id: int
    title: str
    duration: str | None = None
    description: str | None = None
    date: dt.date
    time: str
    guide_id: int | None = None
    guide_name: str | None = None
    paid: bool = False
    cancelled: bool = False
    rescheduled: bool = False
    booking_channel: str | None = None
    notes: str | None = None
    language: str | None = None
    participants: int | None = None
    customer_name: str | None = None
    external_source: str | None = None
    bokun_confirmation_code: str | None = None
    needs_guide_assignment: bool = False
    payment_status: PaymentStatus = "unpaid"
    total_amount_paid: float = 0.0
    expected_amount: float | None = None

    @field_validator("paid", "cancelled", "rescheduled", "needs_guide_assignment", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        return _flag(value)

    @field_validator("payment_status", mode="before")
    @classmethod
    def _default_payment_status(cls, value: Any) -> str:
        return value or "unpaid"

    @field_validator("total_amount_paid", mode="before")
    @classmethod
    def _default_amount(cls, value: Any) -> Any:
        return 0.0 if value is None else value


class TourList(FlorenceBase):
    data: list[TourRead]
    pagination: Pagination
