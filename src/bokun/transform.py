"""Bokun booking -> tour row normalization.

A booking-search item carries its tour in ``productBookings[0]``.  Dates are
UTC (epoch milliseconds or ISO strings) and converted to Europe/Rome; the
``fields.startTimeStr`` value is already local time and wins over any
timestamp-derived time.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

logger = logging.getLogger("florence.bokun.transform")

ROME = ZoneInfo("Europe/Rome")
DEFAULT_TIME = "09:00"

_KNOWN_LANGUAGES = ("Italian", "Spanish", "French", "German", "English")
_GUIDE_NOTE_RE = re.compile(r"GUIDE\s*:\s*([A-Za-z]+)", re.IGNORECASE)
_BOOKING_LANG_RE = re.compile(r"Booking languages.*?:\s*([A-Za-z]+)", re.IGNORECASE | re.DOTALL)
_TRAVELER_RE = re.compile(
    r"Traveler\s+(\d+):\s*\n?First Name:\s*(.+?)\s*\n?Last Name:\s*(.+?)(?:\n|$)",
    re.IGNORECASE,
)


class MissingTourDateError(ValueError):
    """The booking has no tour start date; it must not be imported."""


@dataclass
class BookingTour:
    """Tour row derived from one Bokun booking.

    Attributes:
        bokun_booking_id:  Bokun booking id as a string.
        external_id:       Confirmation code, the cross-system booking key.
        date:              Tour date in Rome local time.
        time:              Tour start time ``HH:MM`` in Rome local time.
        cancelled:         True when the product booking status is CANCELLED.
        bokun_data:        The raw booking, JSON-encoded.
    """

    bokun_booking_id: str
    external_id: str | None
    bokun_confirmation_code: str | None
    title: str
    date: date
    time: str
    duration: str | None = None
    language: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    participants: int = 1
    participant_names: list[dict[str, str]] = field(default_factory=list)
    booking_channel: str = "Bokun"
    total_amount_paid: float = 0.0
    expected_amount: float = 0.0
    # Guide payment status; customer payment to Bokun is tracked separately.
    payment_status: str = "unpaid"
    paid: bool = False
    cancelled: bool = False
    external_source: str = "bokun"
    needs_guide_assignment: bool = True
    bokun_data: str = "{}"

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _to_rome(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    try:
        if isinstance(value, (int, float)) or (isinstance(value, str) and value.isdigit()):
            utc = datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
        else:
            utc = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
            if utc.tzinfo is None:
                utc = utc.replace(tzinfo=timezone.utc)
    except (ValueError, OverflowError, OSError):
        logger.debug("Unparseable Bokun timestamp: %r", value)
        return None
    return utc.astimezone(ROME)


def _normalize_time(value: str) -> str:
    parts = value.strip().split(":")
    try:
        return f"{int(parts[0]):02d}:{int(parts[1]):02d}"
    except (ValueError, IndexError):
        return DEFAULT_TIME


def _language_in(text: str) -> str | None:
    lowered = text.lower()
    for language in _KNOWN_LANGUAGES:
        if language.lower() in lowered:
            return language
    return None


def extract_language(booking: dict, product_booking: dict, title: str) -> str | None:
    """Tour language from notes, then explicit fields, then the product title."""
    for note in product_booking.get("notes") or []:
        body = note.get("body") if isinstance(note, dict) else None
        if not body:
            continue
        match = _GUIDE_NOTE_RE.search(body) or _BOOKING_LANG_RE.search(body)
        if match:
            return match.group(1).capitalize()

    fields = product_booking.get("fields") or {}
    explicit = (
        fields.get("language")
        or (product_booking.get("product") or {}).get("language")
        or booking.get("language")
    )
    if explicit:
        return explicit

    return _language_in(title)


def parse_participant_names(product_booking: dict) -> list[dict[str, str]]:
    """Traveler names from GetYourGuide-style special requests."""
    special = product_booking.get("specialRequests")
    if not isinstance(special, str) or len(special.strip()) < 2:
        return []
    names = []
    for _, first, last in _TRAVELER_RE.findall(special):
        first, last = first.strip(), last.strip()
        if first or last:
            names.append({"first": first.title(), "last": last.title()})
    return names


def _participants(booking: dict, product_booking: dict) -> int:
    fields = product_booking.get("fields") or {}
    for value in (
        fields.get("totalParticipants"),
        product_booking.get("totalParticipants"),
        booking.get("totalParticipants"),
    ):
        if value is not None:
            return int(value)
    categories = fields.get("priceCategoryBookings")
    if categories:
        return sum(int(c.get("quantity") or 0) for c in categories)
    return 1


def booking_to_tour(booking: dict) -> BookingTour:
    """Convert a Bokun booking-search item to a tour row.

    Raises:
        MissingTourDateError: No start date is present.  The booking's
            creation date is never used as a substitute.
    """
    product_booking = (booking.get("productBookings") or [{}])[0]
    fields = product_booking.get("fields") or {}
    title = (
        (product_booking.get("product") or {}).get("title")
        or booking.get("productTitle")
        or "Bokun Tour"
    )
    confirmation = booking.get("confirmationCode")

    start = None
    uses_timestamp_time = True
    for source, key in (
        (product_booking, "startDateTime"),
        (product_booking, "startTime"),
        (product_booking, "startDate"),
        (booking, "startTime"),
    ):
        if source.get(key) is not None:
            start = _to_rome(source[key])
            # A bare start date carries no meaningful time of day.
            uses_timestamp_time = key != "startDate"
            break

    if start is None:
        raise MissingTourDateError(f"No tour date found for booking {confirmation or 'unknown'}")

    if fields.get("startTimeStr"):
        tour_time = _normalize_time(fields["startTimeStr"])
    elif uses_timestamp_time:
        tour_time = start.strftime("%H:%M")
    else:
        tour_time = DEFAULT_TIME

    raw_duration = product_booking.get("duration", booking.get("duration"))
    customer = booking.get("customer") or {}
    customer_name = None
    if booking.get("customer") is not None:
        customer_name = f"{customer.get('firstName', '')} {customer.get('lastName', '')}".strip()

    amount = booking.get("totalPrice", booking.get("paidAmount"))
    amount = float(amount) if amount is not None else 0.0
    status = product_booking.get("status") or booking.get("status") or ""

    return BookingTour(
        bokun_booking_id=str(booking.get("id", "")),
        external_id=confirmation,
        bokun_confirmation_code=confirmation,
        title=title,
        date=start.date(),
        time=tour_time,
        duration=f"{raw_duration} minutes" if raw_duration is not None else None,
        language=extract_language(booking, product_booking, title),
        customer_name=customer_name,
        customer_email=customer.get("email"),
        customer_phone=customer.get("phoneNumber"),
        participants=_participants(booking, product_booking),
        participant_names=parse_participant_names(product_booking),
        booking_channel=(
            (booking.get("channel") or {}).get("title")
            or (booking.get("seller") or {}).get("title")
            or "Bokun"
        ),
        total_amount_paid=amount,
        expected_amount=amount,
        paid=amount > 0,
        cancelled=status == "CANCELLED",
        bokun_data=json.dumps(booking, default=str),
    )
