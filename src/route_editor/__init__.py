"""Route editor core - waypoint store and route synchronization."""

from src.route_editor.models import Route, RoutePath, RouteState, Waypoint, format_marker
from src.route_editor.routing_client import RoutingClient, RoutingError
from src.route_editor.store import WaypointStore
from src.route_editor.synchronizer import RouteSynchronizer

__all__ = [
    "Route",
    "RoutePath",
    "RouteState",
    "Waypoint",
    "format_marker",
    "RoutingClient",
    "RoutingError",
    "WaypointStore",
    "RouteSynchronizer",
]
