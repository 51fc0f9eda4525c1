import asyncio

import httpx
import pytest

from ahamai.errors import AllMethodsFailed, ProviderError
from ahamai.fallback import get_json, http_client, run_methods


def test_run_methods_returns_first_success():
    calls = []

    async def broken():
        calls.append("broken")
        raise ProviderError("a", "down")

    async def working():
        calls.append("working")
        return 42

    async def never():
        calls.append("never")
        return 0

    assert asyncio.run(run_methods("demo", [broken, working, never])) == 42
    assert calls == ["broken", "working"]


def test_run_methods_collects_every_error():
    async def fail_a():
        raise ProviderError("a", "down")

    async def fail_b():
        raise ValueError("bad payload")

    with pytest.raises(AllMethodsFailed) as exc:
        asyncio.run(run_methods("quote XYZ", [fail_a, fail_b]))

    assert str(exc.value) == "All methods failed for quote XYZ"
    assert [type(e) for e in exc.value.errors] == [ProviderError, ValueError]


def test_run_methods_with_no_methods_fails():
    with pytest.raises(AllMethodsFailed):
        asyncio.run(run_methods("nothing", []))


def test_get_json_maps_status_errors(with_client):
    def handler(request):
        return httpx.Response(429, json={"error": "rate limited"})

    with pytest.raises(ProviderError) as exc:
        with_client(lambda c: get_json(c, "https://api.example.com/x", "example"), handler)

    assert exc.value.status_code == 429
    assert str(exc.value) == "example: failed: 429"


def test_get_json_rejects_non_json(with_client):
    def handler(request):
        return httpx.Response(200, text="<html>oops</html>")

    with pytest.raises(ProviderError, match="bad JSON payload"):
        with_client(lambda c: get_json(c, "https://api.example.com/x", "example"), handler)


def test_get_json_wraps_transport_errors(with_client):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderError, match="request failed"):
        with_client(lambda c: get_json(c, "https://api.example.com/x", "example"), handler)


def test_get_json_passes_params(with_client):
    seen = {}

    def handler(request):
        seen["q"] = request.url.params.get("q")
        return httpx.Response(200, json={"ok": True})

    assert with_client(lambda c: get_json(c, "https://api.example.com/x", "example", params={"q": "btc"}), handler) == {"ok": True}
    assert seen["q"] == "btc"


def test_http_client_uses_configured_timeout(monkeypatch):
    monkeypatch.setenv("AHAMAI_HTTP_TIMEOUT", "3.5")

    async def _check():
        async with http_client() as client:
            return client.timeout.read

    assert asyncio.run(_check()) == 3.5
