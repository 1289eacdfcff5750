import asyncio
import json

import httpx
import pytest

from facility_finder.errors import OpenRouteError
from facility_finder.openroute import OpenRouteClient

BASE_URL = "https://ors.test"


def _client(handler, **kwargs):
    transport = httpx.MockTransport(handler)
    return OpenRouteClient(
        "secret",
        base_url=BASE_URL,
        client=httpx.AsyncClient(transport=transport),
        **kwargs,
    )


async def _call(client, method, *args):
    async with client:
        return await getattr(client, method)(*args)


def test_driving_matrix_builds_single_batched_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"distances": [[1.25, 3.5, None]], "durations": [[120.0, 330.0, None]]},
        )

    client = _client(handler)
    origin = (4.8156, 7.0498)
    destinations = [(4.82, 7.01), (4.79, 7.06), (4.9, 6.9)]

    metrics = asyncio.run(_call(client, "driving_matrix", origin, destinations))

    assert seen["url"] == f"{BASE_URL}/v2/matrix/driving-car"
    assert seen["auth"] == "Bearer secret"
    assert seen["body"]["locations"] == [[7.0498, 4.8156], [7.01, 4.82], [7.06, 4.79], [6.9, 4.9]]
    assert seen["body"]["sources"] == [0]
    assert seen["body"]["destinations"] == [1, 2, 3]
    assert seen["body"]["metrics"] == ["distance", "duration"]
    assert seen["body"]["units"] == "km"

    assert sorted(metrics) == [0, 1, 2]
    assert metrics[0].distance_km == 1.25
    assert metrics[0].minutes == 2
    assert metrics[1].distance_km == 3.5
    assert metrics[2].distance_km is None
    assert metrics[2].minutes is None


def test_driving_matrix_without_destinations_makes_no_request():
    def handler(request):
        raise AssertionError("no request expected")

    assert asyncio.run(_call(_client(handler), "driving_matrix", (0.0, 0.0), [])) == {}


def test_driving_matrix_rejects_length_mismatch():
    def handler(request):
        return httpx.Response(200, json={"distances": [[1.0]], "durations": [[60.0]]})

    with pytest.raises(OpenRouteError):
        asyncio.run(_call(_client(handler), "driving_matrix", (0.0, 0.0), [(1.0, 1.0), (2.0, 2.0)]))


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"error": "internal"}),
        httpx.Response(429, json={"error": "quota"}),
        httpx.Response(200, json={"unexpected": True}),
        httpx.Response(200, content=b"not json"),
        httpx.Response(200, json={"distances": [None], "durations": [None]}),
        httpx.Response(200, json={"distances": [5.0], "durations": [60.0]}),
    ],
)
def test_driving_matrix_failures_raise_openroute_error(response):
    with pytest.raises(OpenRouteError):
        asyncio.run(_call(_client(lambda request: response), "driving_matrix", (0.0, 0.0), [(1.0, 1.0)]))


def test_network_error_raises_openroute_error():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(OpenRouteError):
        asyncio.run(_call(_client(handler), "directions", (0.0, 0.0), (1.0, 1.0)))


def test_geocode_returns_lat_lon_of_first_feature():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        return httpx.Response(
            200,
            json={
                "features": [
                    {"geometry": {"coordinates": [7.0134, 4.8242]}},
                    {"geometry": {"coordinates": [3.3792, 6.5244]}},
                ]
            },
        )

    result = asyncio.run(_call(_client(handler), "geocode", "Rumuola"))

    assert result == (4.8242, 7.0134)
    assert seen["params"]["text"] == "Rumuola"
    assert seen["params"]["api_key"] == "secret"
    assert "boundary.country" not in seen["params"]
    assert "boundary.rect.min_lon" not in seen["params"]


def test_geocode_applies_configured_region():
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"features": []})

    client = _client(
        handler,
        geocode_country="NGA",
        geocode_bbox=(6.3818359, 4.1265755, 7.1784024, 5.2756201),
    )
    result = asyncio.run(_call(client, "geocode", "Trans Amadi"))

    assert result is None
    assert seen["params"]["boundary.country"] == "NGA"
    assert float(seen["params"]["boundary.rect.min_lon"]) == pytest.approx(6.3818359)
    assert float(seen["params"]["boundary.rect.max_lat"]) == pytest.approx(5.2756201)


def test_directions_passes_payload_through():
    payload = {"routes": [{"summary": {"distance": 1234.5}, "geometry": "_p~iF~ps|U"}]}
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=payload)

    client = _client(handler, profile="driving-hgv")
    result = asyncio.run(_call(client, "directions", (4.8, 7.0), (4.9, 7.1)))

    assert result == payload
    assert seen["url"] == f"{BASE_URL}/v2/directions/driving-hgv"
    assert seen["body"] == {"coordinates": [[7.0, 4.8], [7.1, 4.9]]}


@pytest.mark.parametrize(
    "payload",
    [
        [{"geometry": {"coordinates": [7.0, 4.8]}}],
        {"features": {"geometry": {"coordinates": [7.0, 4.8]}}},
    ],
)
def test_geocode_malformed_payload_raises_openroute_error(payload):
    def handler(request):
        return httpx.Response(200, json=payload)

    with pytest.raises(OpenRouteError):
        asyncio.run(_call(_client(handler), "geocode", "Rumuola"))
