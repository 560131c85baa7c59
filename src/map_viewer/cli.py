"""Command-line interface for the route map viewer."""

import argparse
import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

from src.logging_config import setup_logging
from src.map_viewer.viewer import create_figure, export_html, show_figure
from src.route_editor.models import Waypoint
from src.route_editor.routing_client import (
    DEFAULT_ROUTING_URL,
    DEFAULT_TIMEOUT_SECONDS,
    RoutingClient,
)
from src.route_editor.store import WaypointStore
from src.route_editor.synchronizer import RouteSynchronizer

logger = logging.getLogger(__name__)


async def compute_route(
    waypoints: list[Waypoint],
    routing_url: str,
    timeout: float,
) -> RouteSynchronizer:
    """
    Route the waypoints once and return the settled synchronizer.

    A routing failure is reported on stderr; the synchronizer then keeps an
    empty route and the markers can still be rendered.
    """
    async def report_status(msg: str) -> None:
        print(msg, file=sys.stderr)

    store = WaypointStore(waypoints)
    async with RoutingClient(routing_url, timeout=timeout) as client:
        synchronizer = RouteSynchronizer(store, client, status_callback=report_status)
        await synchronizer.refresh()
        synchronizer.close()
    return synchronizer


def main() -> None:
    """Main entry point for route viewer CLI."""
    parser = argparse.ArgumentParser(
        description="Route Map Viewer - Route waypoints through a driving backend and show the result",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Route two waypoints and open the map in the browser
  uv run python -m src.map_viewer -- -9.649848,-35.708949 -9.64,-35.70

  # Use another routing backend and export to HTML
  uv run python -m src.map_viewer --routing-url http://router.project-osrm.org \\
      --export route.html -- -9.649848,-35.708949 -9.64,-35.70

Waypoints are LAT,LNG pairs in visiting order. Put them after "--" when the
first one starts with a minus sign.
        """,
    )

    parser.add_argument(
        "waypoints",
        type=str,
        nargs="+",
        metavar="LAT,LNG",
        help="Waypoints in visiting order",
    )
    parser.add_argument(
        "--routing-url",
        type=str,
        default=None,
        help=f"Routing backend base URL (default: $ROUTING_BASE_URL or {DEFAULT_ROUTING_URL})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help=f"Request timeout in seconds (default: $ROUTING_TIMEOUT_SECONDS or {DEFAULT_TIMEOUT_SECONDS:g})",
    )
    parser.add_argument(
        "--export",
        type=str,
        metavar="FILE",
        help="Export to HTML file instead of opening browser",
    )
    parser.add_argument(
        "--show-labels",
        action="store_true",
        help="Show the marker number next to each waypoint",
    )
    parser.add_argument(
        "--title",
        type=str,
        default=None,
        help="Custom title for the visualization",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    load_dotenv()
    setup_logging()
    if args.verbose:
        logging.getLogger("src.route_editor").setLevel(logging.DEBUG)
        logging.getLogger("src.map_viewer").setLevel(logging.DEBUG)

    try:
        waypoints = [Waypoint.parse(text) for text in args.waypoints]
        routing_url = args.routing_url or os.getenv("ROUTING_BASE_URL", DEFAULT_ROUTING_URL)
        timeout = args.timeout if args.timeout is not None else float(
            os.getenv("ROUTING_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if len(waypoints) < 2:
        logger.warning("Only one waypoint given, no route will be computed")

    logger.info(f"Routing {len(waypoints)} waypoints via {routing_url}")
    synchronizer = asyncio.run(compute_route(waypoints, routing_url, timeout))

    title = args.title or f"Route through {len(waypoints)} waypoints"
    route = synchronizer.route
    if route.distance is not None and route.duration is not None:
        title += f" ({route.distance / 1000:.1f} km, {route.duration / 60:.0f} min)"

    fig = create_figure(
        waypoints,
        synchronizer.route_path,
        title=title,
        show_labels=args.show_labels,
    )

    if args.export:
        logger.info(f"Exporting to {args.export}")
        export_html(fig, args.export)
        print(f"Exported to {args.export}")
    else:
        logger.info("Opening in browser")
        show_figure(fig)


if __name__ == "__main__":
    main()
