from __future__ import annotations

import httpx
import pytest

from neurodrive.core import metrics
from neurodrive.core.config import InvokerSettings
from neurodrive.tools.invoker import ToolInvoker, embedded_error
from tests.helpers.stubs import TOOLS_BASE_URL, ScriptedToolServer


@pytest.fixture()
def invoker_settings() -> InvokerSettings:
    return InvokerSettings(base_url=TOOLS_BASE_URL, api_key="anon-key", timeout_seconds=0.5)


@pytest.fixture()
def observed(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, str]]:
    calls: list[tuple[str, str]] = []

    def fake_observe(*, tool: str, outcome: str, latency: float) -> None:
        calls.append((tool, outcome))

    monkeypatch.setattr(metrics, "observe_tool_invocation", fake_observe)
    return calls


def test_resolve_url_joins_relative_endpoints(invoker_settings: InvokerSettings) -> None:
    invoker = ToolInvoker(invoker_settings, http_client=httpx.AsyncClient())
    assert invoker.resolve_url("flight-search") == "http://tools.test/functions/v1/flight-search"
    assert invoker.resolve_url("https://api.example.com/search") == "https://api.example.com/search"


@pytest.mark.asyncio
async def test_success_returns_raw_body_and_sends_auth(
    invoker_settings: InvokerSettings, observed: list[tuple[str, str]]
) -> None:
    seen_headers: dict[str, str] = {}

    def reply(request: httpx.Request) -> httpx.Response:
        seen_headers.update(request.headers)
        return httpx.Response(200, json={"flights": [{"id": 1}], "source": "amadeus"})

    server = ScriptedToolServer({"flight-search": reply})
    async with server.client() as client:
        invoker = ToolInvoker(invoker_settings, http_client=client)
        outcome = await invoker.invoke("amadeus_flights", "flight-search", {"origin": "SFO"})

    assert outcome.success is True
    assert outcome.data == {"flights": [{"id": 1}], "source": "amadeus"}
    assert outcome.error is None
    assert outcome.status_code == 200
    assert seen_headers["authorization"] == "Bearer anon-key"
    assert server.bodies == [{"origin": "SFO"}]
    assert observed == [("amadeus_flights", "success")]


@pytest.mark.asyncio
async def test_non_success_status_is_failure(invoker_settings: InvokerSettings, observed: list[tuple[str, str]]) -> None:
    server = ScriptedToolServer({"flight-search": 500})
    async with server.client() as client:
        outcome = await ToolInvoker(invoker_settings, http_client=client).invoke("amadeus_flights", "flight-search", {})

    assert outcome.success is False
    assert outcome.status_code == 500
    assert outcome.error == "HTTP 500: status 500"
    assert observed == [("amadeus_flights", "failure")]


@pytest.mark.asyncio
async def test_transport_errors_never_raise(invoker_settings: InvokerSettings, observed: list[tuple[str, str]]) -> None:
    server = ScriptedToolServer({"flight-search": httpx.ConnectError("connection refused")})
    async with server.client() as client:
        outcome = await ToolInvoker(invoker_settings, http_client=client).invoke("amadeus_flights", "flight-search", {})

    assert outcome.success is False
    assert outcome.error == "connection refused"
    assert outcome.status_code is None


@pytest.mark.asyncio
async def test_timeout_is_reported(invoker_settings: InvokerSettings, observed: list[tuple[str, str]]) -> None:
    server = ScriptedToolServer({"flight-search": httpx.ReadTimeout("read timed out")})
    async with server.client() as client:
        outcome = await ToolInvoker(invoker_settings, http_client=client).invoke("amadeus_flights", "flight-search", {})

    assert outcome.success is False
    assert outcome.error == "Timed out after 0.5s"


@pytest.mark.asyncio
async def test_embedded_error_with_empty_payload_is_failure(
    invoker_settings: InvokerSettings, observed: list[tuple[str, str]]
) -> None:
    body = {"error": "Amadeus credentials missing", "flights": []}
    server = ScriptedToolServer({"flight-search": body})
    async with server.client() as client:
        outcome = await ToolInvoker(invoker_settings, http_client=client).invoke(
            "amadeus_flights", "flight-search", {}, result_key="flights"
        )

    assert outcome.success is False
    assert outcome.error == "Amadeus credentials missing"
    assert outcome.data == body
    assert observed == [("amadeus_flights", "embedded_error")]


@pytest.mark.asyncio
async def test_invalid_json_is_failure(invoker_settings: InvokerSettings, observed: list[tuple[str, str]]) -> None:
    server = ScriptedToolServer({"flight-search": lambda request: httpx.Response(200, text="<html>")})
    async with server.client() as client:
        outcome = await ToolInvoker(invoker_settings, http_client=client).invoke("amadeus_flights", "flight-search", {})

    assert outcome.success is False
    assert outcome.error == "Invalid JSON response"


@pytest.mark.parametrize(
    ("body", "result_key", "expected"),
    [
        ({"error": "boom"}, None, "boom"),
        ({"error": "boom", "flights": []}, "flights", "boom"),
        ({"error": "partial", "flights": [{"id": 1}]}, "flights", None),
        ({"error": "boom", "flights": [], "source": "amadeus"}, "flights", "boom"),
        ({"error": "boom", "source": "amadeus"}, None, None),
        ({"error": {"message": "nested"}, "items": None}, None, "nested"),
        ({"error": "", "flights": []}, "flights", None),
        ([{"error": "list bodies are payloads"}], None, None),
    ],
)
def test_embedded_error_detection(body, result_key, expected) -> None:
    assert embedded_error(body, result_key=result_key) == expected
