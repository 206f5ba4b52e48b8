import argparse
import csv
import logging
import os
import time

from pooling.bookings import group_by_flight, load_bookings_csv
from pooling.engine import match_flights
from pooling.policy import policy_from_env
from pooling.pricing import pricing_summary
from pooling.quality import quality_report
from pooling.ranking import find_best_match, ranking_report
from routing.cache import RouteCache
from routing.osrm_client import OSRMClient
from routing.route_optimizer import RouteOptimizer

from generate_mock_bookings import AIRPORT_LAT, AIRPORT_LON, generate_mock_bookings


def build_optimizer(use_osrm: bool, average_speed_kmh: float) -> RouteOptimizer:
    if not use_osrm:
        return RouteOptimizer(average_speed_kmh=average_speed_kmh)
    return RouteOptimizer(OSRMClient(), cache=RouteCache(), average_speed_kmh=average_speed_kmh)


def run_simulation(bookings_file: str, use_osrm: bool = False):
    print("=== STARTING END-TO-END POOLING SIMULATION ===")

    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

    # 1. Load Data
    if not os.path.exists(bookings_file):
        generate_mock_bookings(output_file=bookings_file, seed=7)
    bookings = load_bookings_csv(bookings_file)
    flights = group_by_flight(bookings)
    print(f"Loaded {len(bookings)} Bookings across {len(flights)} Flights.\n")

    # 2. Configure System
    policy = policy_from_env()
    optimizer = build_optimizer(use_osrm, policy.average_speed_kmh)
    airport = (AIRPORT_LAT, AIRPORT_LON)

    # 3. Match every flight
    start_time = time.time()
    results = match_flights(flights, airport, optimizer=optimizer, policy=policy)
    print(f"Matched {len(results)} flights in {time.time() - start_time:.2f}s.\n")

    # 4. Report + write results next to the repo root
    output_path = os.path.join(base_dir, "pooling_results.csv")
    confirmed_riders = 0

    with open(output_path, "w", newline="") as file:
        writer = csv.writer(file)
        writer.writerow([
            "flight", "rank", "cluster_id", "passengers", "route_km",
            "quality_score", "stability_tier", "booking_id", "price",
        ])

        for flight, result in results.items():
            print(f"\n##### Flight {flight} #####")
            print(
                f"Clusters: {result.clustering.stats.clusters_found} "
                f"(noise {result.clustering.stats.noise_points}), "
                f"valid groups: {len(result.valid_clusters)}"
            )
            print(ranking_report(result.ranking))

            best = find_best_match(result.ranking.confirmable_pools)
            print(best.message)
            if best.best is not None:
                if best.best.pricing is not None:
                    print(pricing_summary(best.best.pricing))
                if best.best.quality is not None:
                    print(quality_report(best.best.quality))

            for rank, pool in enumerate(result.ranking.confirmable_pools, start=1):
                confirmed_riders += pool.total_pax
                for p in pool.pricing.passengers:
                    writer.writerow([
                        flight, rank, pool.cluster_id, pool.total_pax, pool.total_route_km,
                        pool.quality_score, pool.stability_tier.value, p.booking_id, p.total_price,
                    ])

    print("\n=== SIMULATION COMPLETE ===")
    print(f"Riders in confirmable pools: {confirmed_riders} / {len(bookings)}")
    print(f"Results written to '{output_path}'.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    parser = argparse.ArgumentParser(description="Run the airport pooling pipeline on a bookings CSV.")
    parser.add_argument("--bookings", default="bookings_generated.csv")
    parser.add_argument("--osrm", action="store_true", help="use the OSRM trip service (BASE_URL in .env)")
    args = parser.parse_args()

    run_simulation(args.bookings, use_osrm=args.osrm)
