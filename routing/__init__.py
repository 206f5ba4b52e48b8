#Marks routing as a package.
#Re-exports the public API (OSRMClient, RouteOptimizer, RouteCache, RetryPolicy)
#so other modules import from routing without knowing internal file names.
#No pooling business logic.

from .cache import RouteCache, route_key
from .osrm_client import OSRMClient, RateLimitedError, RoutingServiceError
from .policy import RetryPolicy, default_retry_policy
from .route_optimizer import RouteOptimizer, RoutingClient, greedy_nearest_neighbor

__all__ = [
    "OSRMClient",
    "RateLimitedError",
    "RoutingServiceError",
    "RouteCache",
    "route_key",
    "RetryPolicy",
    "default_retry_policy",
    "RouteOptimizer",
    "RoutingClient",
    "greedy_nearest_neighbor",
]
