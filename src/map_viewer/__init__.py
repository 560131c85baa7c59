"""Route Map Viewer - Interactive visualization of waypoints and driving routes."""

from src.map_viewer.viewer import create_figure, export_html, figure_to_html, show_figure

__all__ = [
    "create_figure",
    "export_html",
    "figure_to_html",
    "show_figure",
]
