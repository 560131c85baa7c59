#!/usr/bin/env python
# pylint: disable=unused-argument

"""
Telegram Bot for editing driving routes.

Each chat edits its own route: shared locations become waypoints, markers
can be moved or removed by number, and /route returns the computed route
as an interactive HTML map.
"""

import io
import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv
from telegram import Update
from telegram.error import NetworkError
from telegram.ext import Application, CommandHandler, ContextTypes, MessageHandler, filters

from src.logging_config import setup_logging
from src.map_viewer.viewer import create_figure, figure_to_html
from src.route_editor.models import RouteState, Waypoint, format_marker
from src.route_editor.routing_client import (
    DEFAULT_ROUTING_URL,
    DEFAULT_TIMEOUT_SECONDS,
    RoutingClient,
)
from src.route_editor.store import WaypointStore
from src.route_editor.synchronizer import RouteSynchronizer

logger = logging.getLogger(__name__)

ROUTING_CLIENT_KEY = "routing_client"
EDITOR_KEY = "route_editor"
ROUTE_DOCUMENT_NAME = "route.html"

HELP_TEXT = (
    "Route Editor Bot\n\n"
    "Editing:\n"
    "Share a location - Add a marker at the end of the route\n"
    "/move N LAT,LNG - Move marker N to a new position\n"
    "/remove N - Remove marker N\n"
    "/list - Show all markers\n\n"
    "Route:\n"
    "/route - Show the current route as a map\n\n"
    "Other:\n"
    "/start - Start the bot\n"
    "/help - Show this help message"
)


@dataclass
class ChatRouteEditor:
    """Waypoints and route of one chat."""

    store: WaypointStore
    synchronizer: RouteSynchronizer


def get_editor(context: ContextTypes.DEFAULT_TYPE, chat_id: int) -> ChatRouteEditor:
    """Return the chat's route editor, creating it on first use."""
    editor = context.chat_data.get(EDITOR_KEY)
    if editor is not None:
        return editor

    client = context.bot_data.get(ROUTING_CLIENT_KEY)
    if client is None:
        raise RuntimeError("Routing client not initialized")

    bot = context.bot

    async def send_status(msg: str) -> None:
        await bot.send_message(chat_id=chat_id, text=msg)

    store = WaypointStore()
    editor = ChatRouteEditor(store, RouteSynchronizer(store, client, status_callback=send_status))
    context.chat_data[EDITOR_KEY] = editor
    logger.info(f"Created route editor for chat {chat_id}")
    return editor


def parse_marker_number(text: str, count: int) -> int:
    """
    Convert a 1-based marker number to a list index.

    Raises:
        ValueError: If text is not a number between 1 and count
    """
    try:
        number = int(text)
    except ValueError as e:
        raise ValueError(f"'{text}' is not a marker number") from e
    if not 1 <= number <= count:
        raise ValueError(f"Marker {number} does not exist (there are {count})")
    return number - 1


def format_marker_list(waypoints: tuple[Waypoint, ...]) -> str:
    if not waypoints:
        return "No markers yet. Share a location to add one."
    lines = ["Route markers:"]
    for number, point in enumerate(waypoints, start=1):
        lines.append(f"{number}. {format_marker(point)}")
    return "\n".join(lines)


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Send a message when the command /start is issued."""
    user = update.effective_user
    if not update.message or not user:
        return
    await update.message.reply_html(
        rf"Hi {user.mention_html()}! Share locations to build a driving route."
    )


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Send a message when the command /help is issued."""
    if not update.message:
        return
    await update.message.reply_text(HELP_TEXT)


async def add_location(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Append a shared location as the next waypoint."""
    if not update.message or not update.message.location or not update.effective_chat:
        return

    location = update.message.location
    waypoint = Waypoint(lat=location.latitude, lng=location.longitude)
    editor = get_editor(context, update.effective_chat.id)
    editor.store.append(waypoint)

    count = len(editor.store)
    logger.info(f"Chat {update.effective_chat.id} added marker {count}: {waypoint}")
    msg = f"Added marker {count}: {format_marker(waypoint)}"
    if count >= 2:
        msg += "\nComputing route... use /route to see it."
    await update.message.reply_text(msg)


async def move_marker(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Move a marker: /move N LAT,LNG (or /move N LAT LNG)."""
    if not update.message or not update.effective_chat:
        return

    editor = get_editor(context, update.effective_chat.id)
    args = context.args or []
    if len(args) not in (2, 3):
        await update.message.reply_text("Usage: /move N LAT,LNG")
        return

    try:
        index = parse_marker_number(args[0], len(editor.store))
        new_value = Waypoint.parse(",".join(args[1:]))
    except ValueError as e:
        await update.message.reply_text(f"Cannot move marker: {e}")
        return

    prior = editor.store.waypoints[index]
    replaced = editor.store.replace_by_value(prior, new_value)
    logger.info(f"Chat {update.effective_chat.id} moved {prior} -> {new_value} ({replaced} marker(s))")

    msg = f"Moved marker {index + 1} to {format_marker(new_value)}"
    if replaced > 1:
        msg += f"\n{replaced - 1} other marker(s) at the same position moved too."
    await update.message.reply_text(msg)


async def remove_marker(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Remove a marker: /remove N."""
    if not update.message or not update.effective_chat:
        return

    editor = get_editor(context, update.effective_chat.id)
    args = context.args or []
    if len(args) != 1:
        await update.message.reply_text("Usage: /remove N")
        return

    try:
        index = parse_marker_number(args[0], len(editor.store))
    except ValueError as e:
        await update.message.reply_text(f"Cannot remove marker: {e}")
        return

    removed = editor.store.remove_at(index)
    logger.info(f"Chat {update.effective_chat.id} removed marker {index + 1}: {removed}")
    await update.message.reply_text(f"Removed marker {index + 1}: {format_marker(removed)}")


async def list_markers(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Show all markers in visiting order."""
    if not update.message or not update.effective_chat:
        return

    editor = get_editor(context, update.effective_chat.id)
    await update.message.reply_text(format_marker_list(editor.store.waypoints))


async def show_route(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Wait for pending route requests and send the route as an HTML map."""
    if not update.message or not update.effective_chat:
        return

    editor = get_editor(context, update.effective_chat.id)
    if len(editor.store) < 2:
        await update.message.reply_text("Add at least 2 markers to get a route.")
        return

    await editor.synchronizer.wait_idle()
    synchronizer = editor.synchronizer

    if synchronizer.state is not RouteState.POPULATED:
        reason = synchronizer.last_error or "no route computed yet"
        await update.message.reply_text(f"Route unavailable: {reason}")
        return

    route = synchronizer.route
    lines = [f"Route through {len(editor.store)} markers"]
    if route.distance is not None:
        lines.append(f"Distance: {route.distance / 1000:.1f} km")
    if route.duration is not None:
        lines.append(f"Duration: {route.duration / 60:.0f} min")
    if synchronizer.last_error:
        lines.append(f"Showing last good route ({synchronizer.last_error})")

    fig = create_figure(editor.store.waypoints, synchronizer.route_path, title=lines[0])
    document = io.BytesIO(figure_to_html(fig).encode("utf-8"))
    await update.message.reply_document(
        document=document,
        filename=ROUTE_DOCUMENT_NAME,
        caption="\n".join(lines),
    )


async def unknown_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Inform the user that the command was not found."""
    if not update.message:
        return
    await update.message.reply_text("Sorry, I didn't understand that command.\n\n" + HELP_TEXT)


async def post_init(application: Application) -> None:
    """Create the routing client shared by all chats."""
    routing_url = os.getenv("ROUTING_BASE_URL", DEFAULT_ROUTING_URL)
    timeout = float(os.getenv("ROUTING_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))
    application.bot_data[ROUTING_CLIENT_KEY] = RoutingClient(routing_url, timeout=timeout)
    logger.info(f"Routing backend: {routing_url} (timeout {timeout:g}s)")


async def post_shutdown(application: Application) -> None:
    """Close the routing client when the bot shuts down."""
    client = application.bot_data.get(ROUTING_CLIENT_KEY)
    if client is not None:
        await client.aclose()
        application.bot_data[ROUTING_CLIENT_KEY] = None
    logger.info("Shutdown complete")


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle errors - log network errors concisely, others with full traceback."""
    if isinstance(context.error, NetworkError):
        logger.warning(f"Network error (will retry): {context.error}")
    else:
        logger.exception("Unhandled exception:", exc_info=context.error)


def main() -> None:
    """Start the bot."""
    load_dotenv()
    setup_logging()
    token = os.getenv("TELEGRAM_BOT_TOKEN")
    if not token:
        raise ValueError("TELEGRAM_BOT_TOKEN not found in environment variables")

    application = (
        Application.builder()
        .token(token)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )

    # Editing
    application.add_handler(MessageHandler(filters.LOCATION, add_location))
    application.add_handler(CommandHandler("move", move_marker))
    application.add_handler(CommandHandler("remove", remove_marker))
    application.add_handler(CommandHandler("list", list_markers))

    # Route
    application.add_handler(CommandHandler("route", show_route))

    # General commands
    application.add_handler(CommandHandler("start", start))
    application.add_handler(CommandHandler("help", help_command))

    # handle unknown commands
    application.add_handler(MessageHandler(filters.COMMAND, unknown_command))

    application.add_error_handler(error_handler)

    logger.info("Starting route editor bot...")
    application.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
