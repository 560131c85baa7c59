"""
Shared pytest fixtures for route editor tests.

Fixtures here are available to all test files.

Notes for new developers:
- @pytest.fixture marks a function as a fixture
- Fixtures can depend on other fixtures (dependency injection)
- The routing backend is never contacted: HTTP tests go through
  httpx.MockTransport, synchronizer tests use a scripted fake client
"""

import asyncio
from typing import Callable

import httpx
import polyline
import pytest
from unittest.mock import AsyncMock, MagicMock

from src.route_editor.models import Route, Waypoint
from src.route_editor.routing_client import RoutingClient, RoutingError

BASE_URL = "http://router.test"


@pytest.fixture
def mock_status_callback() -> AsyncMock:
    """
    Create a mock async callback for status updates.

    Example:
        async def test_failure(mock_status_callback):
            ...
            first_msg = mock_status_callback.call_args_list[0][0][0]
            assert "Route unavailable" in first_msg
    """
    return AsyncMock()


@pytest.fixture
def sample_waypoints() -> list[Waypoint]:
    """Two waypoints around the default map centre."""
    return [
        Waypoint(-9.649848, -35.708949),
        Waypoint(-9.64, -35.70),
    ]


@pytest.fixture
def route_body() -> Callable[..., dict]:
    """Build an OSRM-style response body for a list of (lat, lng) pairs."""

    def build(path: list[tuple[float, float]], distance: float = 1234.5, duration: float = 321.0) -> dict:
        return {
            "code": "Ok",
            "routes": [
                {
                    "geometry": polyline.encode(path, 5),
                    "distance": distance,
                    "duration": duration,
                }
            ],
        }

    return build


@pytest.fixture
def make_routing_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], RoutingClient]:
    """
    Create a RoutingClient whose HTTP traffic goes to a handler function.

    Example:
        def handler(request):
            return httpx.Response(200, json=body)
        client = make_routing_client(handler)
    """

    def make(handler: Callable[[httpx.Request], httpx.Response]) -> RoutingClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return RoutingClient(BASE_URL, http_client=http_client)

    return make


class ScriptedFetcher:
    """
    Fake routing client whose responses are released by the test.

    Each fetch_route call records its waypoints and waits until the test
    resolves or fails that call by its 0-based call number.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[Waypoint, ...]] = []
        self._gates: list[asyncio.Future] = []

    async def fetch_route(self, waypoints) -> Route:
        self.calls.append(tuple(waypoints))
        gate = asyncio.get_running_loop().create_future()
        self._gates.append(gate)
        outcome = await gate
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def resolve(self, call: int, path: list[tuple[float, float]]) -> None:
        self._gates[call].set_result(Route(path=path))

    def fail(self, call: int, reason: str = "backend down") -> None:
        self._gates[call].set_result(RoutingError(reason))

    def crash(self, call: int, error: Exception) -> None:
        """Make a call raise something other than RoutingError."""
        self._gates[call].set_result(error)


@pytest.fixture
def scripted_fetcher() -> ScriptedFetcher:
    return ScriptedFetcher()


@pytest.fixture
def mock_telegram_update():
    """
    Create a mock Telegram Update object.

    Simulates an incoming update from chat 12345 with reply capabilities.
    """
    update = MagicMock()
    update.effective_user.mention_html.return_value = "<b>TestUser</b>"
    update.effective_user.id = 12345
    update.effective_chat.id = 12345
    update.message.reply_text = AsyncMock()
    update.message.reply_html = AsyncMock()
    update.message.reply_document = AsyncMock()
    update.message.text = "test message"
    return update


@pytest.fixture
def mock_telegram_context():
    """
    Create a mock Telegram Context object.

    chat_data and bot_data are real dicts so handlers can store state;
    bot.send_message is async.
    """
    context = MagicMock()
    context.chat_data = {}
    context.bot_data = {}
    context.args = []
    context.bot.send_message = AsyncMock()
    return context
