#Purpose: The OSRM "adapter/client".
#Sole responsibility: talk to OSRM via HTTP and return normalized outputs.
#Encapsulates OSRM-specific details:
#coordinate formatting (lon,lat)
#URL construction (/trip)
#error classification (rate limit / transient / permanent)
#parsing response JSON into our Route shape
#It should not contain retry, fallback or pooling rules.


from dotenv import load_dotenv
import os
from typing import Any, Dict, List, Optional

import requests

from pooling.models import LatLon, Route, RouteSource, Waypoint

# Read OSRM base URL from environment
# Example in .env:
# BASE_URL=http://router.project-osrm.org
load_dotenv()
BASE_URL = os.getenv("BASE_URL")


class RoutingServiceError(Exception):
    """
    Custom exception for OSRM client errors.

    transient=True means the same request may succeed if retried
    (timeouts, dropped connections, 5xx).
    """
    def __init__(self, message: str, *, transient: bool = False):
        super().__init__(message)
        self.transient = transient


class RateLimitedError(RoutingServiceError):
    """OSRM answered HTTP 429."""
    def __init__(self, message: str = "OSRM rate limit exceeded"):
        super().__init__(message, transient=True)


class OSRMClient:
    """
    OSRM Adapter / Client

    Sole responsibility:
    - Talk to OSRM via HTTP
    - Convert internal (lat, lon) -> OSRM (lon,lat)
    - Return a normalized Route (km, minutes, waypoints in trip order)

    """
    def __init__(self, base_url: Optional[str] = None, profile: str = "driving", timeout: int = 5):
        self.base_url = (base_url or BASE_URL or "").rstrip("/")
        self.timeout = timeout #the time to wait for a response from OSRM before giving up
        self.profile = profile #the mode of transportation (driving, walking, cycling)

        if not self.base_url:
            raise ValueError("OSRM base URL not set. Please set it in the .env file.")

    #----------------
    # Internal helper methods for coordinate formatting
    #----------------
    def format_coordinates(self, coords: List[LatLon]) -> str:
        """Convert list of (lat, lon) to OSRM format 'lon,lat;lon,lat;...'"""
        return ';'.join([f"{lon},{lat}" for lat, lon in coords])

    #----------------
    # trip service (sequenced route, first stop fixed)
    #----------------
    def compute_trip(self, waypoints: List[Waypoint]) -> Route:
        """
        Calls the OSRM /trip endpoint with the first waypoint fixed as the source
        and any destination, no round trip.

        Returns a Route whose waypoints are the input waypoints re-ordered into
        trip order, distance in km and duration in minutes.
        """
        if len(waypoints) < 2:
            raise ValueError("At least two waypoints are required to compute a trip.")

        coordinates = self.format_coordinates([w.coordinates for w in waypoints])
        url = f"{self.base_url}/trip/v1/{self.profile}/{coordinates}"

        try:
            response = requests.get(
                url,
                params={
                    "source": "first",
                    "destination": "any",
                    "roundtrip": "false",
                    "geometries": "polyline",
                    "overview": "full",
                },
                timeout=self.timeout,
            )
        except (requests.Timeout, requests.ConnectionError) as exc:
            raise RoutingServiceError(f"OSRM unreachable: {exc}", transient=True) from exc

        if response.status_code == 429:
            raise RateLimitedError()

        if response.status_code >= 500:
            raise RoutingServiceError(
                f"OSRM server error: HTTP {response.status_code}", transient=True
            )

        try:
            data = response.json() #OSRM returns a JSON body even for most 4xx errors
        except ValueError as exc:
            raise RoutingServiceError(f"OSRM returned invalid JSON (HTTP {response.status_code})") from exc

        if data.get("code") != "Ok":
            raise RoutingServiceError(f"OSRM error: {data.get('message', data.get('code', 'Unknown error'))}")

        return parse_trip_response(data, waypoints)


def parse_trip_response(data: Dict[str, Any], waypoints: List[Waypoint]) -> Route:
    """
    Normalize an OSRM /trip JSON body.

    OSRM lists response waypoints in INPUT order; each carries
    waypoint_index = its position in the trip.
    """
    trips = data.get("trips") or []
    if not trips:
        raise RoutingServiceError("OSRM error: response contains no trips")

    trip = trips[0]
    osrm_waypoints = data.get("waypoints") or []
    if len(osrm_waypoints) != len(waypoints):
        raise RoutingServiceError("OSRM error: waypoint count mismatch")

    ordered: List[Optional[Waypoint]] = [None] * len(waypoints)
    for input_idx, wp in enumerate(osrm_waypoints):
        trip_idx = wp.get("waypoint_index")
        if trip_idx is None or not 0 <= trip_idx < len(waypoints) or ordered[trip_idx] is not None:
            raise RoutingServiceError("OSRM error: invalid waypoint_index in response")
        ordered[trip_idx] = waypoints[input_idx]

    legs = trip.get("legs") or []
    leg_minutes = [float(leg["duration"]) / 60.0 for leg in legs] if legs else None

    return Route(
        distance_km=float(trip["distance"]) / 1000.0,
        duration_minutes=float(trip["duration"]) / 60.0,
        waypoints=[w for w in ordered if w is not None],
        geometry=trip.get("geometry"),
        leg_durations_minutes=leg_minutes,
        source=RouteSource.SERVICE,
    )
