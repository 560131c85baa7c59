"""Plotly-based map rendering of waypoints and the computed route."""

from typing import Sequence

import numpy as np
import plotly.graph_objects as go

from src.route_editor.models import RoutePath, Waypoint, format_marker

DEFAULT_CENTER = (-9.649848, -35.708949)
DEFAULT_ZOOM = 13
MAP_STYLE = "open-street-map"
ROUTE_COLOR = "blue"
MARKER_COLOR = "rgb(65, 105, 225)"  # Royal blue


def compute_center(
    waypoints: Sequence[Waypoint],
    route_path: RoutePath,
) -> tuple[float, float]:
    """
    Map centre as the mean of every plotted coordinate.

    Falls back to DEFAULT_CENTER when there is nothing to plot.
    """
    coordinates = [point.as_tuple() for point in waypoints] + list(route_path)
    if not coordinates:
        return DEFAULT_CENTER

    lat, lng = np.asarray(coordinates, dtype=float).mean(axis=0)
    return (float(lat), float(lng))


def create_figure(
    waypoints: Sequence[Waypoint],
    route_path: RoutePath | None = None,
    title: str = "Route Editor",
    show_labels: bool = False,
) -> go.Figure:
    """
    Create an interactive map figure with markers and the route line.

    Args:
        waypoints: Waypoints in visiting order
        route_path: Decoded (lat, lng) route geometry; nothing is drawn
            when empty
        title: Figure title
        show_labels: Whether to show the marker number next to each marker

    Returns:
        Plotly Figure object ready for display
    """
    route_path = route_path or []
    fig = go.Figure()

    # Route first so markers are drawn on top of it
    if route_path:
        _add_route_to_figure(fig, route_path)

    if waypoints:
        _add_waypoints_to_figure(fig, waypoints, show_labels=show_labels)

    center_lat, center_lng = compute_center(waypoints, route_path)
    fig.update_layout(
        title=title,
        map=dict(
            style=MAP_STYLE,
            center=dict(lat=center_lat, lon=center_lng),
            zoom=DEFAULT_ZOOM,
        ),
        showlegend=True,
        legend=dict(yanchor="top", y=0.99, xanchor="left", x=0.01),
        margin=dict(l=0, r=0, t=60, b=0),
    )

    return fig


def _add_waypoints_to_figure(
    fig: go.Figure,
    waypoints: Sequence[Waypoint],
    show_labels: bool,
) -> None:
    """Add waypoint markers with hover information."""
    labels = [str(number) for number in range(1, len(waypoints) + 1)]
    hover_texts = [
        f"<b>Marker {number}</b><br>{format_marker(point)}"
        for number, point in zip(labels, waypoints)
    ]

    fig.add_trace(
        go.Scattermap(
            lat=[point.lat for point in waypoints],
            lon=[point.lng for point in waypoints],
            mode="markers+text" if show_labels else "markers",
            marker=dict(size=12, color=MARKER_COLOR),
            text=labels if show_labels else None,
            textposition="top center",
            hovertext=hover_texts,
            hoverinfo="text",
            name="Waypoints",
        )
    )


def _add_route_to_figure(fig: go.Figure, route_path: RoutePath) -> None:
    """Add the route as a connected line."""
    fig.add_trace(
        go.Scattermap(
            lat=[lat for lat, _ in route_path],
            lon=[lng for _, lng in route_path],
            mode="lines",
            line=dict(color=ROUTE_COLOR, width=4),
            hoverinfo="skip",
            name="Route",
        )
    )


def show_figure(fig: go.Figure) -> None:
    """Display figure in browser."""
    fig.show()


def export_html(fig: go.Figure, output_path: str) -> None:
    """Export figure as standalone HTML file."""
    fig.write_html(output_path, include_plotlyjs=True, full_html=True)


def figure_to_html(fig: go.Figure) -> str:
    """Standalone HTML document for sending the map somewhere else."""
    return fig.to_html(include_plotlyjs=True, full_html=True)
