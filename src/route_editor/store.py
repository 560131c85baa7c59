"""Authoritative ordered waypoint sequence with change notifications."""

import logging
from typing import Callable, Iterator

from src.route_editor.models import Waypoint

logger = logging.getLogger(__name__)

WaypointListener = Callable[[tuple[Waypoint, ...]], None]


class WaypointStore:
    """
    Ordered sequence of waypoints; list order is the route visiting order.

    The store is the only mutator of the sequence. Readers get immutable
    snapshots, and every effective mutation produces a new snapshot which is
    pushed synchronously to all subscribed listeners.

    Example:
        store = WaypointStore()
        unsubscribe = store.subscribe(lambda points: print(len(points)))
        store.append(Waypoint(-9.649848, -35.708949))
    """

    def __init__(self, waypoints: list[Waypoint] | None = None) -> None:
        self._waypoints: tuple[Waypoint, ...] = tuple(waypoints or ())
        self._listeners: list[WaypointListener] = []
        self._version = 0

    @property
    def waypoints(self) -> tuple[Waypoint, ...]:
        """Current snapshot of the sequence."""
        return self._waypoints

    @property
    def version(self) -> int:
        """Number of effective mutations applied so far."""
        return self._version

    def __len__(self) -> int:
        return len(self._waypoints)

    def __iter__(self) -> Iterator[Waypoint]:
        return iter(self._waypoints)

    def subscribe(self, listener: WaypointListener) -> Callable[[], None]:
        """
        Register a listener called with each new snapshot.

        Returns:
            A callable that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def append(self, point: Waypoint) -> None:
        """Add a waypoint at the end of the sequence."""
        self._commit(self._waypoints + (point,))
        logger.debug(f"Appended waypoint {len(self._waypoints)}: {point}")

    def replace_by_value(self, old_value: Waypoint, new_value: Waypoint) -> int:
        """
        Replace every waypoint equal to old_value with new_value, in place.

        Positions are preserved. When two waypoints share the exact same
        coordinate, all of them are moved.

        Args:
            old_value: Prior value of the moved waypoint
            new_value: Value to store at each matching position

        Returns:
            Number of positions replaced. Zero means nothing matched and the
            sequence (and its snapshot) is left untouched.
        """
        replaced = 0
        updated: list[Waypoint] = []
        for waypoint in self._waypoints:
            if waypoint == old_value:
                updated.append(new_value)
                replaced += 1
            else:
                updated.append(waypoint)

        if replaced == 0:
            logger.debug(f"No waypoint matches {old_value}, nothing replaced")
            return 0

        if replaced > 1:
            logger.warning(f"{replaced} waypoints share {old_value}; moving all of them")

        self._commit(tuple(updated))
        return replaced

    def remove_at(self, index: int) -> Waypoint:
        """
        Remove the waypoint at a position.

        Raises:
            IndexError: If index is out of range
        """
        if not 0 <= index < len(self._waypoints):
            raise IndexError(f"No waypoint at position {index}")

        removed = self._waypoints[index]
        self._commit(self._waypoints[:index] + self._waypoints[index + 1:])
        logger.debug(f"Removed waypoint {index}: {removed}")
        return removed

    def _commit(self, waypoints: tuple[Waypoint, ...]) -> None:
        self._waypoints = waypoints
        self._version += 1
        for listener in list(self._listeners):
            listener(waypoints)
