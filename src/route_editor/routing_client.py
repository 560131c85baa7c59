"""
Client for the OSRM-compatible driving route service.

Builds `/route/v1/driving/{lng,lat;...}` requests from a waypoint sequence,
performs them with httpx and decodes the returned polyline geometry.
Every failure mode is reported as RoutingError.
"""

import logging
from typing import Any, Sequence

import httpx
import numpy as np
import polyline

from src.route_editor.models import Route, RoutePath, Waypoint

logger = logging.getLogger(__name__)

DEFAULT_ROUTING_URL = "http://127.0.0.1:5000"
DEFAULT_TIMEOUT_SECONDS = 10.0
ROUTE_PATH_TEMPLATE = "/route/v1/driving/{waypoints}"
ROUTE_QUERY_PARAMS = {"steps": "true", "overview": "full"}
GEOMETRY_PRECISION = 5  # decimal digits of the encoded polyline


class RoutingError(RuntimeError):
    """Raised when the backend cannot produce a route for the waypoints."""


def format_coordinate(value: float) -> str:
    """Shortest decimal form that round-trips, never in exponent notation."""
    return np.format_float_positional(value, unique=True, trim="-")


def format_waypoints(waypoints: Sequence[Waypoint]) -> str:
    """
    Build the waypoint segment of a route request URL.

    Args:
        waypoints: Waypoints in visiting order (at least two)

    Returns:
        Semicolon-separated "lng,lat" pairs, longitude first, e.g.
        "-35.708949,-9.649848;-35.7,-9.64"

    Raises:
        ValueError: If fewer than two waypoints are given
    """
    if len(waypoints) < 2:
        raise ValueError(f"A route needs at least 2 waypoints, got {len(waypoints)}")
    return ";".join(
        f"{format_coordinate(point.lng)},{format_coordinate(point.lat)}"
        for point in waypoints
    )


def build_route_path(waypoints: Sequence[Waypoint]) -> str:
    """URL path of the driving route request for the waypoints."""
    return ROUTE_PATH_TEMPLATE.format(waypoints=format_waypoints(waypoints))


def decode_geometry(geometry: Any) -> RoutePath:
    """
    Decode a precision-5 encoded polyline into (lat, lng) pairs.

    Raises:
        RoutingError: If the geometry is not a string, cannot be decoded,
            decodes to nothing, or contains out-of-range coordinates
    """
    if not isinstance(geometry, str):
        raise RoutingError(f"Route geometry is not an encoded polyline: {type(geometry).__name__}")

    try:
        coordinates = polyline.decode(geometry, GEOMETRY_PRECISION)
    except (IndexError, ValueError, TypeError) as e:
        raise RoutingError(f"Malformed route geometry: {e}") from e

    if not coordinates:
        raise RoutingError("Route geometry is empty")

    path: RoutePath = []
    for lat, lng in coordinates:
        if not (-90 <= lat <= 90 and -180 <= lng <= 180):
            raise RoutingError(f"Route geometry has out-of-range coordinate ({lat}, {lng})")
        path.append((float(lat), float(lng)))
    return path


def parse_route_response(payload: Any) -> Route:
    """
    Extract the first route from a decoded JSON response body.

    Raises:
        RoutingError: If the backend reported an error or the body does not
            contain a usable route
    """
    if not isinstance(payload, dict):
        raise RoutingError("Routing response is not a JSON object")

    code = payload.get("code")
    if code is not None and code != "Ok":
        message = payload.get("message") or "no message"
        raise RoutingError(f"Routing backend returned {code}: {message}")

    routes = payload.get("routes")
    if not isinstance(routes, list) or not routes:
        raise RoutingError("Routing response contains no routes")

    first = routes[0]
    if not isinstance(first, dict) or "geometry" not in first:
        raise RoutingError("Routing response route has no geometry")

    return Route(
        path=decode_geometry(first["geometry"]),
        distance=_optional_number(first.get("distance")),
        duration=_optional_number(first.get("duration")),
    )


def _optional_number(value: Any) -> float | None:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return None


class RoutingClient:
    """
    Async client for the driving route service.

    Args:
        base_url: Scheme and host of the routing service
            (e.g., "http://127.0.0.1:5000")
        timeout: Request timeout in seconds
        http_client: Pre-configured httpx.AsyncClient to use instead of
            creating one (tests pass one backed by httpx.MockTransport).
            A client passed in is not closed by aclose().

    Example:
        async with RoutingClient("http://127.0.0.1:5000") as client:
            route = await client.fetch_route(store.waypoints)
    """

    def __init__(
        self,
        base_url: str = DEFAULT_ROUTING_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "RoutingClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._http.aclose()

    def route_url(self, waypoints: Sequence[Waypoint]) -> str:
        """Full request URL (without query) for the waypoints."""
        return f"{self.base_url}{build_route_path(waypoints)}"

    async def fetch_route(self, waypoints: Sequence[Waypoint]) -> Route:
        """
        Request the driving route through the waypoints in visiting order.

        Args:
            waypoints: At least two waypoints

        Returns:
            Route with the decoded path and the reported distance/duration

        Raises:
            ValueError: If fewer than two waypoints are given
            RoutingError: On network failure, non-2xx status or an
                unusable response body
        """
        url = self.route_url(waypoints)
        logger.debug(f"Requesting route: {url}")

        try:
            response = await self._http.get(url, params=ROUTE_QUERY_PARAMS)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RoutingError(f"Routing backend returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise RoutingError(f"Routing backend unreachable: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise RoutingError("Routing response is not valid JSON") from e

        route = parse_route_response(payload)
        logger.info(
            f"Route through {len(waypoints)} waypoints: {len(route.path)} points, "
            f"distance={route.distance}, duration={route.duration}"
        )
        return route
