import pandas as pd
import pytest

from pooling.bookings import group_by_flight, load_bookings_csv
from pooling.errors import InputError

from generate_mock_bookings import generate_mock_bookings


@pytest.fixture
def bookings_csv(tmp_path):
    df = pd.DataFrame([
        {"booking_id": "b1", "flight_number": "FL100", "dropoff_lat": -17.80, "dropoff_lon": 31.05,
         "luggage_count": 2, "dropoff_address": "Avondale"},
        {"booking_id": "b2", "flight_number": "FL100", "dropoff_lat": -17.81, "dropoff_lon": 31.04,
         "luggage_count": None, "dropoff_address": None},
        {"booking_id": "b3", "flight_number": "FL200", "dropoff_lat": -17.75, "dropoff_lon": 31.10,
         "luggage_count": 1, "dropoff_address": "Borrowdale"},
    ])
    path = tmp_path / "bookings.csv"
    df.to_csv(path, index=False)
    return str(path)


def test_load_bookings_csv(bookings_csv):
    bookings = load_bookings_csv(bookings_csv)

    assert [b.id for b in bookings] == ["b1", "b2", "b3"]
    assert bookings[0].destination == (-17.80, 31.05)
    assert bookings[0].luggage_count == 2
    assert bookings[0].address == "Avondale"
    assert bookings[1].luggage_count == 0
    assert bookings[1].address is None
    assert bookings[2].flight_identifier == "FL200"


def test_load_bookings_for_one_flight(bookings_csv):
    bookings = load_bookings_csv(bookings_csv, flight="FL100")

    assert [b.id for b in bookings] == ["b1", "b2"]


def test_group_by_flight(bookings_csv):
    flights = group_by_flight(load_bookings_csv(bookings_csv))

    assert sorted(flights) == ["FL100", "FL200"]
    assert [b.id for b in flights["FL100"]] == ["b1", "b2"]


def test_missing_columns_raise_input_error(tmp_path):
    path = tmp_path / "broken.csv"
    pd.DataFrame([{"booking_id": "b1", "dropoff_lat": 1.0}]).to_csv(path, index=False)

    with pytest.raises(InputError):
        load_bookings_csv(str(path))


def test_invalid_coordinates_raise_input_error(tmp_path):
    path = tmp_path / "bad_coords.csv"
    pd.DataFrame([
        {"booking_id": "b1", "flight_number": "FL1", "dropoff_lat": 95.0, "dropoff_lon": 31.0},
    ]).to_csv(path, index=False)

    with pytest.raises(InputError):
        load_bookings_csv(str(path))


def test_generated_mock_bookings_load_cleanly(tmp_path):
    path = tmp_path / "generated.csv"
    generate_mock_bookings(num_bookings=30, num_flights=2, output_file=str(path), seed=3)

    bookings = load_bookings_csv(str(path))

    assert len(bookings) == 30
    assert 1 <= len(group_by_flight(bookings)) <= 2
    assert all(-90 <= b.latitude <= 90 for b in bookings)


def test_optional_columns_may_be_absent(tmp_path):
    path = tmp_path / "minimal.csv"
    pd.DataFrame([
        {"booking_id": "b1", "flight_number": "FL1", "dropoff_lat": -17.8, "dropoff_lon": 31.0},
    ]).to_csv(path, index=False)

    booking = load_bookings_csv(str(path))[0]

    assert booking.id == "b1"
    assert booking.flight_identifier == "FL1"
    assert booking.luggage_count == 0
    assert booking.address is None
