import asyncio
import json

import httpx
import pytest

from ahamai import database, llm
from ahamai.errors import LLMError


def sse(*chunks):
    lines = [f"data: {c if isinstance(c, str) else json.dumps(c)}\n\n" for c in chunks]
    return httpx.Response(200, content="".join(lines).encode(), headers={"Content-Type": "text/event-stream"})


def delta(text):
    return {"choices": [{"delta": {"content": text}}]}


def run_with_llm(fn, handler):
    async def _go():
        async with llm.llm_client(transport=httpx.MockTransport(handler)) as client:
            return await fn(client)

    return asyncio.run(_go())


def collect_stream(messages, model, handler):
    async def _collect(client):
        return [d async for d in llm.stream_chat_completion(client, messages, model)]

    return run_with_llm(_collect, handler)


def test_parse_model_id():
    assert llm.parse_model_id("openai-compatible:gpt-4o") == ("openai-compatible", "gpt-4o")
    assert llm.parse_model_id("gpt-4o-mini") == ("openai-compatible", "gpt-4o-mini")
    assert llm.parse_model_id("groq:llama:3") == ("groq", "llama:3")


def test_reasoning_models_use_the_tool_call_model():
    assert llm.is_reasoning_model("openai-compatible:deepseek-reasoner")
    assert llm.is_reasoning_model("o1-preview")
    assert not llm.is_reasoning_model("gpt-4o")
    assert not llm.is_reasoning_model(None)
    assert llm.get_tool_call_model("openai-compatible:deepseek-reasoner") == llm.TOOL_CALL_MODEL


def test_resolve_model_precedence(monkeypatch):
    assert llm.resolve_model() == "openai-compatible:gpt-4o"

    monkeypatch.setenv("AHAMAI_DEFAULT_MODEL", "openai-compatible:gpt-4o-mini")
    assert llm.resolve_model() == "openai-compatible:gpt-4o-mini"

    database.set_app_setting("default_model", "openai-compatible:longcat-flash")
    assert llm.resolve_model() == "openai-compatible:longcat-flash"

    assert llm.resolve_model("openai-compatible:gpt-4.1") == "openai-compatible:gpt-4.1"


def test_resolve_model_rejects_disabled_provider():
    with pytest.raises(LLMError, match="Provider not enabled: anthropic"):
        llm.resolve_model("anthropic:claude")


def test_llm_client_settings(monkeypatch):
    monkeypatch.setenv("AHAMAI_API_BASE_URL", "https://llm.test/v1/")
    monkeypatch.setenv("AHAMAI_API_KEY", "sk-test")
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": "hi"}}]})

    tools = [{"type": "function", "function": {"name": "stock"}}]
    message = run_with_llm(
        lambda c: llm.chat_completion(c, [{"role": "user", "content": "hey"}], "openai-compatible:gpt-4o", tools=tools),
        handler,
    )

    assert message == {"role": "assistant", "content": "hi"}
    assert seen["url"] == "https://llm.test/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"] == {
        "model": "gpt-4o",
        "messages": [{"role": "user", "content": "hey"}],
        "stream": False,
        "tools": tools,
        "tool_choice": "auto",
    }


def test_chat_completion_without_tools_omits_tool_choice():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

    run_with_llm(lambda c: llm.chat_completion(c, [], "gpt-4o"), handler)
    assert "tools" not in seen["body"]
    assert "tool_choice" not in seen["body"]


@pytest.mark.parametrize("response, message", [
    (httpx.Response(500, text="upstream exploded"), "Completion failed: 500 upstream exploded"),
    (httpx.Response(200, json={"choices": []}), "Malformed completion response"),
    (httpx.Response(200, text="not json"), "Malformed completion response"),
])
def test_chat_completion_errors(response, message):
    with pytest.raises(LLMError, match=message):
        run_with_llm(lambda c: llm.chat_completion(c, [], "gpt-4o"), lambda r: response)


def test_chat_completion_transport_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(LLMError, match="Completion request failed"):
        run_with_llm(lambda c: llm.chat_completion(c, [], "gpt-4o"), handler)


def test_stream_yields_deltas_until_done():
    def handler(request):
        assert json.loads(request.content)["stream"] is True
        return sse(
            {"choices": [{"delta": {"role": "assistant"}}]},
            delta("Hel"),
            "{broken",
            delta("lo"),
            "[DONE]",
            delta("ignored"),
        )

    assert collect_stream([], "gpt-4o", handler) == ["Hel", "lo"]


def test_stream_error_status():
    with pytest.raises(LLMError, match="Completion failed: 401"):
        collect_stream([], "gpt-4o", lambda r: httpx.Response(401, text="bad key"))
