"""Tests for Bokun booking -> tour normalization."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone

import pytest

from src.bokun.tests.conftest import make_booking
from src.bokun.transform import MissingTourDateError, booking_to_tour


class TestTourDateAndTime:
    def test_utc_start_converted_to_rome(self, booking: dict) -> None:
        # 07:30 UTC in June is 09:30 in Rome (CEST)
        tour = booking_to_tour(booking)
        assert tour.date == date(2026, 6, 15)
        assert tour.time == "09:30"

    def test_epoch_millis_start(self) -> None:
        millis = int(datetime(2026, 1, 10, 13, 0, tzinfo=timezone.utc).timestamp() * 1000)
        tour = booking_to_tour(make_booking(start=millis))
        # CET is UTC+1 in January
        assert tour.date == date(2026, 1, 10)
        assert tour.time == "14:00"

    def test_late_utc_start_rolls_over_to_next_rome_day(self) -> None:
        tour = booking_to_tour(make_booking(start="2026-06-15T22:30:00Z"))
        assert tour.date == date(2026, 6, 16)
        assert tour.time == "00:30"

    def test_start_time_str_wins_over_timestamp(self) -> None:
        booking = make_booking(fields={"startTimeStr": "9:15", "totalParticipants": 2})
        assert booking_to_tour(booking).time == "09:15"

    def test_missing_start_raises(self) -> None:
        booking = make_booking(start=None)
        with pytest.raises(MissingTourDateError, match="VIA-70001"):
            booking_to_tour(booking)

    def test_creation_date_is_never_used(self) -> None:
        booking = make_booking(start=None)
        booking["creationDate"] = "2026-05-01T10:00:00Z"
        with pytest.raises(MissingTourDateError):
            booking_to_tour(booking)


class TestLanguage:
    def test_guide_note(self) -> None:
        booking = make_booking(notes=[{"body": "Pickup at hotel\nGUIDE : spanish"}])
        assert booking_to_tour(booking).language == "Spanish"

    def test_booking_languages_note(self) -> None:
        booking = make_booking(notes=[{"body": "Booking languages:\n  french"}])
        assert booking_to_tour(booking).language == "French"

    def test_explicit_field(self) -> None:
        booking = make_booking(fields={"language": "German"})
        assert booking_to_tour(booking).language == "German"

    def test_title_fallback(self) -> None:
        booking = make_booking(product={"id": 1, "title": "Accademia Tour in Italian"})
        assert booking_to_tour(booking).language == "Italian"

    def test_unknown_language_is_none(self, booking: dict) -> None:
        assert booking_to_tour(booking).language is None


class TestBookingFields:
    def test_identity_and_customer(self, booking: dict) -> None:
        tour = booking_to_tour(booking)
        assert tour.bokun_booking_id == "9001"
        assert tour.external_id == "VIA-70001"
        assert tour.title == "Uffizi Gallery Guided Tour"
        assert tour.customer_name == "Ada Lovelace"
        assert tour.customer_email == "ada@example.com"
        assert tour.booking_channel == "Viator.com"
        assert tour.duration == "180 minutes"
        assert tour.participants == 4
        assert tour.external_source == "bokun"
        assert tour.needs_guide_assignment is True

    def test_amounts_and_guide_payment_status(self, booking: dict) -> None:
        tour = booking_to_tour(booking)
        assert tour.total_amount_paid == 240.0
        assert tour.expected_amount == 240.0
        assert tour.paid is True
        assert tour.payment_status == "unpaid"

    def test_cancelled_product_booking(self) -> None:
        tour = booking_to_tour(make_booking(status="CANCELLED"))
        assert tour.cancelled is True

    def test_participants_from_price_categories(self) -> None:
        booking = make_booking(fields={"priceCategoryBookings": [{"quantity": 2}, {"quantity": 3}]})
        assert booking_to_tour(booking).participants == 5

    def test_gyg_traveler_names(self) -> None:
        booking = make_booking(
            specialRequests="Traveler 1:\nFirst Name: ETSUKO\nLast Name: tanaka\n"
        )
        assert booking_to_tour(booking).participant_names == [
            {"first": "Etsuko", "last": "Tanaka"}
        ]

    def test_raw_booking_kept_as_json(self, booking: dict) -> None:
        tour = booking_to_tour(booking)
        assert json.loads(tour.bokun_data)["confirmationCode"] == "VIA-70001"
