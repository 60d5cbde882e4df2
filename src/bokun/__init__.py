"""Bokun booking integration: signed API client, booking normalization, sync."""

from src.bokun.client import BokunAPIError, BokunClient, BokunRateLimitError
from src.bokun.sync import BookingSyncService, sync_window
from src.bokun.transform import BookingTour, MissingTourDateError, booking_to_tour

__all__ = [
    "BokunAPIError",
    "BokunClient",
    "BokunRateLimitError",
    "BookingSyncService",
    "BookingTour",
    "MissingTourDateError",
    "booking_to_tour",
    "sync_window",
]
