"""Value types shared by the waypoint store, routing client and front ends."""

from dataclasses import dataclass, field
from enum import Enum

# (lat, lng) pairs in visiting order, as decoded from the backend geometry
RoutePath = list[tuple[float, float]]


@dataclass(frozen=True)
class Waypoint:
    """
    A user-placed coordinate the route must pass through.

    Two waypoints are the same waypoint only if both coordinates are
    exactly equal; there is no separate identifier.
    """

    lat: float
    lng: float

    def __post_init__(self) -> None:
        if not -90 <= self.lat <= 90:
            raise ValueError(f"Latitude must be between -90 and 90, got {self.lat}")
        if not -180 <= self.lng <= 180:
            raise ValueError(f"Longitude must be between -180 and 180, got {self.lng}")

    @classmethod
    def parse(cls, text: str) -> "Waypoint":
        """
        Parse a waypoint from its "lat,lng" text form.

        Args:
            text: Latitude and longitude separated by a comma
                (e.g., "-9.649848,-35.708949")

        Returns:
            The parsed Waypoint

        Raises:
            ValueError: If the text is not two numbers or is out of range
        """
        parts = text.split(",")
        if len(parts) != 2:
            raise ValueError(f"Expected 'lat,lng', got {text!r}")
        try:
            lat, lng = float(parts[0]), float(parts[1])
        except ValueError as e:
            raise ValueError(f"Invalid coordinate in {text!r}") from e
        return cls(lat=lat, lng=lng)

    def as_tuple(self) -> tuple[float, float]:
        return (self.lat, self.lng)


def format_marker(waypoint: Waypoint) -> str:
    """Marker list display form, six decimals like the map's marker box."""
    return f"{waypoint.lat:.6f}, {waypoint.lng:.6f}"


@dataclass
class Route:
    """Route returned by the backend for one waypoint sequence."""

    path: RoutePath = field(default_factory=list)
    distance: float | None = None  # metres
    duration: float | None = None  # seconds


class RouteState(Enum):
    """Lifecycle of the published route path."""

    EMPTY = "empty"
    PENDING = "pending"
    POPULATED = "populated"
