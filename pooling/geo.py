# pooling/geo.py

from __future__ import annotations

import math
from typing import Iterable, List, Sequence

import numpy as np

from .models import LatLon

EARTH_RADIUS_KM = 6371.0


def haversine_km(a: LatLon, b: LatLon) -> float:
    """
    Great-circle distance in km between two (lat, lon) pairs.
    """
    lat1, lon1 = a
    lat2, lon2 = b
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def haversine_matrix(coords: Sequence[LatLon]) -> np.ndarray:
    """
    NxN matrix of pairwise haversine distances (km).
    """
    if not coords:
        return np.zeros((0, 0))

    arr = np.radians(np.asarray(coords, dtype=float))
    lat = arr[:, 0][:, None]
    lon = arr[:, 1][:, None]

    d_lat = lat.T - lat
    d_lon = lon.T - lon
    h = np.sin(d_lat / 2) ** 2 + np.cos(lat) * np.cos(lat.T) * np.sin(d_lon / 2) ** 2
    h = np.clip(h, 0.0, 1.0)
    return 2 * EARTH_RADIUS_KM * np.arctan2(np.sqrt(h), np.sqrt(1 - h))


def centroid_of(coords: Iterable[LatLon]) -> LatLon:
    """
    Arithmetic mean of (lat, lon) pairs. (0, 0) for an empty input.
    """
    pts: List[LatLon] = list(coords)
    if not pts:
        return (0.0, 0.0)
    lat = sum(p[0] for p in pts) / len(pts)
    lon = sum(p[1] for p in pts) / len(pts)
    return (lat, lon)


def path_length_km(coords: Sequence[LatLon]) -> float:
    """
    Sum of consecutive haversine segments.
    """
    return sum(haversine_km(coords[i], coords[i + 1]) for i in range(len(coords) - 1))
