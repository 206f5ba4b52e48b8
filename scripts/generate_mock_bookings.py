import pandas as pd
import numpy as np
import uuid

# Harare, Zimbabwe
AIRPORT_LAT = -17.931806
AIRPORT_LON = 31.092847
CITY_LAT = -17.824858
CITY_LON = 31.053028


def generate_mock_bookings(num_bookings=120, num_flights=4, num_neighborhoods=12,
                           output_file="bookings_generated.csv", seed=None):
    """
    Generates a realistic dataset of airport transfer bookings designed to test pooling.
    Destinations are scattered around a fixed number of 'neighborhoods' so that riders
    from the same flight often head the same way, which gives realistic pooling scenarios.
    """
    rng = np.random.default_rng(seed)

    # 1. Generate fixed neighborhoods (destination hot spots) within ~15km of the city center
    neighborhoods = []
    for index in range(num_neighborhoods):
        neighborhoods.append({
            "name": f"Suburb {index + 1}",
            "lat": CITY_LAT + rng.uniform(-0.12, 0.12),
            "lon": CITY_LON + rng.uniform(-0.12, 0.12),
        })

    flights = [f"FL{rng.integers(100, 999)}" for _ in range(num_flights)]

    data = []
    # 2. Generate bookings
    for booking_index in range(num_bookings):
        hood = neighborhoods[rng.integers(0, num_neighborhoods)]

        # Destination within ~2-3km of the neighborhood center
        dropoff_lat = hood["lat"] + rng.uniform(-0.025, 0.025)
        dropoff_lon = hood["lon"] + rng.uniform(-0.025, 0.025)

        data.append({
            "booking_id": f"b_{str(booking_index + 1).zfill(6)}",
            "flight_number": flights[rng.integers(0, num_flights)],
            "customer_id": f"c_{str(uuid.uuid4())[:8]}",
            "dropoff_lat": np.round(dropoff_lat, 6),
            "dropoff_lon": np.round(dropoff_lon, 6),
            "dropoff_address": hood["name"],
            "luggage_count": int(rng.choice([0, 1, 2, 3], p=[0.1, 0.5, 0.3, 0.1])),
        })

    # 3. Save to CSV
    df = pd.DataFrame(data)
    df.to_csv(output_file, index=False)
    print(f"Generated {num_bookings} bookings and saved to '{output_file}'")

    # Print a quick preview of pooling density
    print("\nBookings per flight:")
    for flight, count in df["flight_number"].value_counts().items():
        print(f"  {flight}: {count} riders")

    print("\nTop 5 Destinations (Pooling Potential):")
    for name, count in df["dropoff_address"].value_counts().head(5).items():
        print(f"  {name}: {count} riders")

    return df


if __name__ == "__main__":
    generate_mock_bookings(num_bookings=120, num_flights=4)
