"""
Purpose: Decide which riders are even allowed to share a vehicle.
What it does:

Groups a flight's drop-off destinations with density-based clustering
(DBSCAN over haversine distance):

- riders within eps_km of each other are neighbors

- a rider with at least (min_samples - 1) neighbors is a core point

- clusters grow through density-reachable core points; isolated riders are noise

Then applies the business rules:

- clusters below the minimum group size are dropped

- oversized clusters are cut into latitude-sorted chunks

Outputs:

ClusteringResult(clusters, noise, stats) and the filtered cluster list.

Rule: Clustering does not route or price; it only forms candidate groups.
"""

# pooling/clustering.py

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from sklearn.cluster import DBSCAN

from .errors import InputError
from .geo import centroid_of, haversine_matrix
from .models import Booking, Cluster, ClusteringResult, ClusteringStats, GeoPoint
from .policy import PoolingPolicy, default_policy

logger = logging.getLogger(__name__)

_NOISE = -1


def points_from_bookings(bookings: Sequence[Booking]) -> List[GeoPoint]:
    """
    One GeoPoint per booking, keyed by the booking id.
    """
    return [
        GeoPoint(
            id=b.id,
            booking_id=b.id,
            latitude=b.latitude,
            longitude=b.longitude,
            metadata={"luggage_count": b.luggage_count, "flight": b.flight_identifier},
        )
        for b in bookings
    ]


def dbscan(
    points: Sequence[GeoPoint],
    eps_km: float = 8.5,
    min_samples: int = 2,
) -> ClusteringResult:
    """
    Density-based clustering of destinations.

    Inputs:
      - points: riders of one flight (order matters for cluster numbering).
      - eps_km: neighborhood radius; neighbors satisfy distance <= eps_km.
      - min_samples: minimum group size counting the point itself, so a core
        point needs (min_samples - 1) neighbors.

    Output:
      - clusters numbered 0..n-1 in discovery order, each with its centroid
      - noise: points that belong to no cluster
      - stats: counts and average cluster size (2 dp)

    Deterministic for a fixed input order. A single point is always noise.
    """
    if eps_km <= 0:
        raise InputError("eps_km must be > 0")
    if min_samples < 1:
        raise InputError("min_samples must be >= 1")

    n = len(points)
    if n == 0:
        return ClusteringResult(
            clusters=[],
            noise=[],
            stats=ClusteringStats(total_points=0, clusters_found=0, noise_points=0, average_cluster_size=0.0),
        )

    # precomputed haversine km so eps is a plain distance and neighbors are distance <= eps
    distances = haversine_matrix([(p.latitude, p.longitude) for p in points])
    labels = DBSCAN(eps=eps_km, min_samples=min_samples, metric="precomputed").fit(distances).labels_

    members: Dict[int, List[GeoPoint]] = {}
    noise: List[GeoPoint] = []
    for idx, label in enumerate(labels):
        if label == _NOISE:
            noise.append(points[idx])
        else:
            members.setdefault(int(label), []).append(points[idx])

    clusters = [
        _make_cluster(cid, members[cid])
        for cid in sorted(members)
    ]

    clustered = sum(c.size for c in clusters)
    stats = ClusteringStats(
        total_points=n,
        clusters_found=len(clusters),
        noise_points=len(noise),
        average_cluster_size=round(clustered / len(clusters), 2) if clusters else 0.0,
    )

    logger.info(
        "dbscan: %d points -> %d clusters, %d noise (eps=%.2f km, min_samples=%d)",
        n, stats.clusters_found, stats.noise_points, eps_km, min_samples,
    )
    return ClusteringResult(clusters=clusters, noise=noise, stats=stats)


def filter_clusters_by_business_rules(
    clusters: Sequence[Cluster],
    policy: Optional[PoolingPolicy] = None,
) -> List[Cluster]:
    """
    Enforce group size rules on raw clusters.

    - fewer than min_group_size riders: dropped
    - min_group_size..max_group_size riders: kept as-is
    - more than max_group_size riders: members sorted by latitude (stable),
      cut into contiguous chunks of split_group_size; chunks smaller than
      min_group_size are dropped

    Output clusters are re-numbered 0..n-1 in output order.
    """
    policy = policy or default_policy()

    groups: List[List[GeoPoint]] = []
    for cluster in clusters:
        if cluster.size < policy.min_group_size:
            continue

        if cluster.size <= policy.max_group_size:
            groups.append(list(cluster.points))
            continue

        by_lat = sorted(cluster.points, key=lambda p: p.latitude)
        for start in range(0, len(by_lat), policy.split_group_size):
            chunk = by_lat[start:start + policy.split_group_size]
            if len(chunk) >= policy.min_group_size:
                groups.append(chunk)

        logger.info("split cluster %s of %d riders", cluster.id, cluster.size)

    return [_make_cluster(i, g) for i, g in enumerate(groups)]


# -------------------------
# Internal helpers
# -------------------------

def _make_cluster(cluster_id: int, points: List[GeoPoint]) -> Cluster:
    return Cluster(
        id=cluster_id,
        points=points,
        centroid=centroid_of((p.latitude, p.longitude) for p in points),
    )
