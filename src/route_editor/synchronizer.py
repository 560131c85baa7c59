"""Keeps the published route path in sync with the waypoint store."""

import asyncio
import logging
from typing import Awaitable, Callable, Protocol, Sequence

from src.route_editor.models import Route, RoutePath, RouteState, Waypoint
from src.route_editor.routing_client import RoutingError
from src.route_editor.store import WaypointStore

logger = logging.getLogger(__name__)

MIN_ROUTE_WAYPOINTS = 2

RouteListener = Callable[[Route], None]
StatusCallback = Callable[[str], Awaitable[None]]


class RouteFetcher(Protocol):
    async def fetch_route(self, waypoints: Sequence[Waypoint]) -> Route: ...


class RouteSynchronizer:
    """
    Derive the route path from the waypoint store via the routing backend.

    Subscribes to the store on construction. Each change leaving at least
    two waypoints issues a request tagged with an increasing generation
    number; when it completes, its outcome is applied only if no newer
    request has been issued since. Older outcomes are dropped, so the
    published path always belongs to the most recently issued request.

    Failures leave the path at its last good value. They are logged and, if
    a status_callback is given, reported through it as "Route unavailable".

    Args:
        store: Waypoint store to observe
        client: Anything with an async fetch_route(waypoints) -> Route
        status_callback: Optional async function for user-facing status

    Example:
        store = WaypointStore()
        sync = RouteSynchronizer(store, RoutingClient())
        store.append(Waypoint(-9.649848, -35.708949))
        store.append(Waypoint(-9.64, -35.70))
        await sync.wait_idle()
        print(sync.route_path)
    """

    def __init__(
        self,
        store: WaypointStore,
        client: RouteFetcher,
        status_callback: StatusCallback | None = None,
    ) -> None:
        self.store = store
        self.client = client
        self.status_callback = status_callback

        self._route = Route()
        self._state = RouteState.EMPTY
        self._settled_state = RouteState.EMPTY  # state to fall back to on failure
        self._latest_generation = 0
        self._pending: set[asyncio.Task] = set()
        self._listeners: list[RouteListener] = []
        self.last_error: str | None = None

        self._unsubscribe = store.subscribe(self._on_waypoints_changed)

    @property
    def route(self) -> Route:
        return self._route

    @property
    def route_path(self) -> RoutePath:
        """Currently published path; stale while a request is in flight."""
        return self._route.path

    @property
    def state(self) -> RouteState:
        return self._state

    @property
    def latest_generation(self) -> int:
        return self._latest_generation

    @property
    def in_flight(self) -> int:
        """Number of requests that have not completed yet."""
        return len(self._pending)

    def subscribe(self, listener: RouteListener) -> Callable[[], None]:
        """Register a listener called with every applied Route."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        """Stop observing the store. In-flight requests still complete."""
        self._unsubscribe()

    async def refresh(self) -> None:
        """Recompute the route for the current waypoints and wait for it."""
        task = self._issue(self.store.waypoints)
        if task is not None:
            await task

    async def wait_idle(self) -> None:
        """Wait until every issued request has completed."""
        while self._pending:
            await asyncio.gather(*self._pending)

    def _on_waypoints_changed(self, waypoints: tuple[Waypoint, ...]) -> None:
        self._issue(waypoints)

    def _issue(self, waypoints: tuple[Waypoint, ...]) -> asyncio.Task | None:
        if len(waypoints) < MIN_ROUTE_WAYPOINTS:
            logger.debug(f"{len(waypoints)} waypoint(s), keeping current route")
            return None

        # Raises before any state changes when there is no running loop
        loop = asyncio.get_running_loop()

        self._latest_generation += 1
        generation = self._latest_generation
        if self._state is not RouteState.PENDING:
            self._settled_state = self._state
        self._state = RouteState.PENDING

        logger.debug(f"Issuing route request #{generation} for {len(waypoints)} waypoints")
        task = loop.create_task(self._compute(generation, waypoints))
        self._pending.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Route request task failed", exc_info=task.exception())

    async def _compute(self, generation: int, waypoints: tuple[Waypoint, ...]) -> None:
        try:
            route = await self.client.fetch_route(waypoints)
        except RoutingError as e:
            reason = str(e)
        except Exception as e:
            logger.exception(f"Route request #{generation} raised unexpectedly")
            reason = f"unexpected error: {e!r}"
        else:
            if generation != self._latest_generation:
                logger.debug(
                    f"Dropping stale route request #{generation} "
                    f"(latest is #{self._latest_generation})"
                )
                return
            self._apply_route(generation, route)
            return

        if generation != self._latest_generation:
            logger.debug(f"Dropping failure of stale route request #{generation}: {reason}")
            return
        await self._apply_failure(generation, reason)

    def _apply_route(self, generation: int, route: Route) -> None:
        self._route = route
        self._state = RouteState.POPULATED
        self._settled_state = RouteState.POPULATED
        self.last_error = None
        logger.info(f"Route #{generation} applied ({len(route.path)} points)")
        for listener in list(self._listeners):
            listener(route)

    async def _apply_failure(self, generation: int, reason: str) -> None:
        self._state = self._settled_state
        self.last_error = reason
        logger.warning(f"Route request #{generation} failed: {reason}")
        if self.status_callback is None:
            return
        try:
            await self.status_callback(f"Route unavailable: {reason}")
        except Exception:
            logger.exception("Could not deliver route status update")
