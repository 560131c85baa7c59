"""
Tests for the routing backend client.

The backend is replaced with httpx.MockTransport, so every request the
client makes is inspected without touching the network.
"""

import httpx
import polyline
import pytest

from src.route_editor.models import Waypoint
from src.route_editor.routing_client import (
    RoutingClient,
    RoutingError,
    build_route_path,
    decode_geometry,
    format_coordinate,
    format_waypoints,
    parse_route_response,
)


class TestFormatWaypoints:
    """Tests for the waypoint segment of the request URL."""

    def test_longitude_first_semicolon_separated(self, sample_waypoints):
        """Pairs are lng,lat in input order joined by semicolons."""
        assert format_waypoints(sample_waypoints) == "-35.708949,-9.649848;-35.7,-9.64"

    def test_keeps_visiting_order(self):
        """No reordering is performed."""
        points = [Waypoint(3.0, 30.0), Waypoint(1.0, 10.0), Waypoint(2.0, 20.0)]
        assert format_waypoints(points) == "30,3;10,1;20,2"

    @pytest.mark.parametrize("count", [0, 1])
    def test_needs_two_waypoints(self, count):
        """Fewer than two waypoints is a programming error."""
        with pytest.raises(ValueError):
            format_waypoints([Waypoint(1.0, 1.0)] * count)

    def test_small_values_never_use_exponent(self):
        """Tiny coordinates are written positionally."""
        assert format_coordinate(0.00001) == "0.00001"
        assert format_coordinate(-35.708949) == "-35.708949"

    def test_route_path(self, sample_waypoints):
        assert build_route_path(sample_waypoints) == (
            "/route/v1/driving/-35.708949,-9.649848;-35.7,-9.64"
        )


class TestDecodeGeometry:
    """Tests for polyline geometry decoding."""

    def test_round_trip(self):
        """Decoding yields the encoded (lat, lng) pairs exactly."""
        encoded = polyline.encode([(1.0, 2.0), (1.1, 2.1)], 5)
        assert decode_geometry(encoded) == [(1.0, 2.0), (1.1, 2.1)]

    def test_truncated_geometry_raises(self):
        """A cut-off encoding is a routing failure."""
        with pytest.raises(RoutingError):
            decode_geometry("_")

    def test_empty_geometry_raises(self):
        """An empty path cannot be drawn."""
        with pytest.raises(RoutingError):
            decode_geometry("")

    def test_out_of_range_raises(self):
        """Decoded coordinates must be valid latitudes/longitudes."""
        encoded = polyline.encode([(95.0, 0.0), (1.0, 1.0)], 5)
        with pytest.raises(RoutingError):
            decode_geometry(encoded)

    def test_non_string_raises(self):
        """GeoJSON-style geometry is not accepted."""
        with pytest.raises(RoutingError):
            decode_geometry({"type": "LineString", "coordinates": []})


class TestParseRouteResponse:
    """Tests for response body validation."""

    def test_first_route_used(self, route_body):
        """Only routes[0] is read, including distance and duration."""
        body = route_body([(1.0, 2.0), (1.1, 2.1)], distance=1500, duration=90)
        body["routes"].append({"geometry": polyline.encode([(5.0, 5.0), (6.0, 6.0)], 5)})

        route = parse_route_response(body)

        assert route.path == [(1.0, 2.0), (1.1, 2.1)]
        assert route.distance == 1500.0
        assert route.duration == 90.0

    def test_missing_summary_is_none(self):
        """distance/duration are optional."""
        body = {"routes": [{"geometry": polyline.encode([(1.0, 2.0), (1.1, 2.1)], 5)}]}
        route = parse_route_response(body)
        assert route.distance is None
        assert route.duration is None

    @pytest.mark.parametrize(
        "body",
        [
            [],
            {},
            {"routes": []},
            {"routes": "nope"},
            {"routes": [{}]},
            {"code": "NoRoute", "message": "Impossible route between points"},
        ],
    )
    def test_unusable_body_raises(self, body):
        """Every unusable body is reported as RoutingError."""
        with pytest.raises(RoutingError):
            parse_route_response(body)

    def test_backend_error_code_in_message(self):
        body = {"code": "NoSegment", "message": "Could not find a matching segment"}
        with pytest.raises(RoutingError, match="NoSegment"):
            parse_route_response(body)


class TestRoutingClient:
    """Tests for RoutingClient.fetch_route() over a mock transport."""

    @pytest.mark.asyncio
    async def test_request_url_and_query(self, make_routing_client, route_body, sample_waypoints):
        """GET /route/v1/driving/{lng,lat;...}?steps=true&overview=full."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=route_body([(1.0, 2.0), (1.1, 2.1)]))

        client = make_routing_client(handler)
        await client.fetch_route(sample_waypoints)

        assert len(requests) == 1
        request = requests[0]
        assert request.method == "GET"
        assert request.url.host == "router.test"
        assert request.url.path == "/route/v1/driving/-35.708949,-9.649848;-35.7,-9.64"
        assert request.url.params["steps"] == "true"
        assert request.url.params["overview"] == "full"

    @pytest.mark.asyncio
    async def test_success_returns_decoded_path(self, make_routing_client, route_body, sample_waypoints):
        """The encoded geometry is decoded into the route path."""
        client = make_routing_client(
            lambda request: httpx.Response(200, json=route_body([(1.0, 2.0), (1.1, 2.1)]))
        )

        route = await client.fetch_route(sample_waypoints)

        assert route.path == [(1.0, 2.0), (1.1, 2.1)]
        assert route.distance == 1234.5

    @pytest.mark.asyncio
    async def test_http_error_status(self, make_routing_client, sample_waypoints):
        """Non-2xx status is a routing failure."""
        client = make_routing_client(
            lambda request: httpx.Response(400, json={"code": "InvalidQuery"})
        )
        with pytest.raises(RoutingError, match="HTTP 400"):
            await client.fetch_route(sample_waypoints)

    @pytest.mark.asyncio
    async def test_network_error(self, make_routing_client, sample_waypoints):
        """Transport failures are wrapped and chained."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_routing_client(handler)
        with pytest.raises(RoutingError) as exc_info:
            await client.fetch_route(sample_waypoints)
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_non_json_body(self, make_routing_client, sample_waypoints):
        """An HTML error page instead of JSON is a routing failure."""
        client = make_routing_client(
            lambda request: httpx.Response(200, text="<html>gateway</html>")
        )
        with pytest.raises(RoutingError, match="JSON"):
            await client.fetch_route(sample_waypoints)

    @pytest.mark.asyncio
    async def test_empty_routes(self, make_routing_client, sample_waypoints):
        client = make_routing_client(
            lambda request: httpx.Response(200, json={"code": "Ok", "routes": []})
        )
        with pytest.raises(RoutingError):
            await client.fetch_route(sample_waypoints)

    @pytest.mark.asyncio
    async def test_too_few_waypoints_never_sent(self, make_routing_client):
        """Validation happens before any request is made."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(500)

        client = make_routing_client(handler)
        with pytest.raises(ValueError):
            await client.fetch_route([Waypoint(1.0, 1.0)])
        assert requests == []

    def test_base_url_trailing_slash_stripped(self, sample_waypoints):
        client = RoutingClient("http://localhost:5000/", http_client=httpx.AsyncClient())
        assert client.route_url(sample_waypoints).startswith(
            "http://localhost:5000/route/v1/driving/"
        )

    @pytest.mark.asyncio
    async def test_owned_client_closed(self):
        """aclose() closes the client the instance created itself."""
        async with RoutingClient("http://localhost:5000") as client:
            pass
        assert client._http.is_closed

    @pytest.mark.asyncio
    async def test_injected_client_left_open(self):
        """An injected httpx client belongs to the caller."""
        http_client = httpx.AsyncClient()
        client = RoutingClient("http://localhost:5000", http_client=http_client)
        await client.aclose()
        assert not http_client.is_closed
        await http_client.aclose()
