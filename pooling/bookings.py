"""
Purpose: Read-only booking source for the matching pipeline.
What it does:

- loads bookings from a CSV export (pandas)

- validates the required columns and coordinates

- groups bookings by flight so each flight can be matched on its own

Expected columns:

booking_id, dropoff_lat, dropoff_lon, luggage_count, flight_number
(optional: dropoff_address)

Rule: Never writes back. Bookings are owned by the booking store.
"""

# pooling/bookings.py

from __future__ import annotations

from typing import Dict, List, Optional

import pandas as pd

from .errors import InputError
from .models import Booking

REQUIRED_COLUMNS = ["booking_id", "dropoff_lat", "dropoff_lon", "flight_number"]


def load_bookings_csv(path: str, *, flight: Optional[str] = None) -> List[Booking]:
    """
    Read bookings from CSV. If flight is given, only that flight's rows are returned.
    """
    df = pd.read_csv(path, dtype={"booking_id": str, "flight_number": str})
    return bookings_from_frame(df, flight=flight)


def bookings_from_frame(df: pd.DataFrame, *, flight: Optional[str] = None) -> List[Booking]:
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise InputError(f"bookings file is missing columns: {', '.join(missing)}")

    if flight is not None:
        df = df[df["flight_number"] == flight]

    df = df.dropna(subset=["booking_id", "dropoff_lat", "dropoff_lon"])

    bad = df[(df["dropoff_lat"].abs() > 90) | (df["dropoff_lon"].abs() > 180)]
    if not bad.empty:
        raise InputError(f"invalid coordinates for bookings: {', '.join(bad['booking_id'].astype(str))}")

    has_luggage = "luggage_count" in df.columns
    has_address = "dropoff_address" in df.columns

    bookings: List[Booking] = []
    for row in df.itertuples(index=False):
        luggage = getattr(row, "luggage_count") if has_luggage else 0
        address = getattr(row, "dropoff_address") if has_address else None
        bookings.append(
            Booking(
                id=str(row.booking_id),
                latitude=float(row.dropoff_lat),
                longitude=float(row.dropoff_lon),
                luggage_count=0 if pd.isna(luggage) else int(luggage),
                flight_identifier=None if pd.isna(row.flight_number) else str(row.flight_number),
                address=None if address is None or pd.isna(address) else str(address),
            )
        )
    return bookings


def group_by_flight(bookings: List[Booking]) -> Dict[str, List[Booking]]:
    """
    flight_identifier -> bookings, in input order. Bookings without a flight are skipped.
    """
    flights: Dict[str, List[Booking]] = {}
    for b in bookings:
        if b.flight_identifier:
            flights.setdefault(b.flight_identifier, []).append(b)
    return flights
