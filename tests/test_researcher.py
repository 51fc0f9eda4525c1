import asyncio
import json
import threading
from datetime import datetime, timezone

import httpx

from ahamai import database, researcher


class FakeLLM:
    """Scripted OpenAI-compatible endpoint: queued tool-round replies, then a streamed answer."""

    def __init__(self, replies, stream=("Done",), fail=False):
        self.replies = list(replies)
        self.stream = list(stream)
        self.fail = fail
        self.requests = []

    def __call__(self, request):
        body = json.loads(request.content)
        self.requests.append(body)
        if self.fail:
            return httpx.Response(503, text="overloaded")
        if body["stream"]:
            frames = "".join(
                f"data: {json.dumps({'choices': [{'delta': {'content': part}}]})}\n\n" for part in self.stream
            )
            return httpx.Response(200, content=(frames + "data: [DONE]\n\n").encode())
        return httpx.Response(200, json={"choices": [{"message": self.replies.pop(0)}]})


def tool_call(name, arguments, call_id="call_1"):
    raw = arguments if isinstance(arguments, str) else json.dumps(arguments)
    return {"id": call_id, "type": "function", "function": {"name": name, "arguments": raw}}


def run_research(fake, message="hello", **kwargs):
    async def _go():
        llm_client = httpx.AsyncClient(base_url="https://llm.test/v1", transport=httpx.MockTransport(fake))
        tool_client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500)))
        async with llm_client, tool_client:
            return [e async for e in researcher.research(llm_client, tool_client, "sess-1", message, **kwargs)]

    return asyncio.run(_go())


DIAGRAM_ARGS = {"type": "sequence", "title": "Login", "content": "User -> App: login"}


def test_direct_answer_without_tools():
    fake = FakeLLM([{"role": "assistant", "content": "Hi! How can I help?"}])

    events = run_research(fake, message="  hello  ")

    assert events == [
        {"content": "Hi! How can I help?", "stop": False},
        {"content": "", "stop": True},
    ]
    # only the tool-selection round; no second streamed call
    assert len(fake.requests) == 1
    first = fake.requests[0]
    assert first["messages"][0]["role"] == "system"
    assert first["messages"][-1] == {"role": "user", "content": "hello"}
    assert first["tool_choice"] == "auto"
    assert len(first["tools"]) == 12

    history = database.get_chat_history("sess-1")
    assert [(m["role"], m["content"]) for m in history] == [("user", "hello"), ("assistant", "Hi! How can I help?")]


def test_tool_round_then_streamed_answer():
    fake = FakeLLM([{"role": "assistant", "content": None, "tool_calls": [tool_call("diagram", DIAGRAM_ARGS)]}],
                   stream=["Here is ", "your diagram."])

    events = run_research(fake, user_id="u1")

    assert events[0]["tool"] == "diagram"
    assert events[0]["stop"] is False
    assert events[0]["result"]["status"] == "success"
    assert events[0]["result"]["plantUMLCode"].startswith("@startuml")
    assert events[1:] == [
        {"content": "Here is ", "stop": False},
        {"content": "your diagram.", "stop": False},
        {"content": "", "stop": True},
    ]

    final = fake.requests[-1]
    assert final["stream"] is True
    assert "tools" not in final
    assistant, tool_msg = final["messages"][-2:]
    assert assistant["tool_calls"][0]["id"] == "call_1"
    assert tool_msg["role"] == "tool"
    assert tool_msg["tool_call_id"] == "call_1"
    assert json.loads(tool_msg["content"])["type"] == "diagram"

    assert database.get_tool_usage("u1") == {"diagram": 1}
    assert database.get_chat_history("sess-1")[-1]["content"] == "Here is your diagram."


def test_search_mode_allows_several_rounds_and_caps_calls():
    calls = [tool_call("diagram", DIAGRAM_ARGS, f"call_{i}") for i in range(5)]
    fake = FakeLLM([
        {"content": "", "tool_calls": calls},
        {"content": "", "tool_calls": [tool_call("diagram", DIAGRAM_ARGS, "call_9")]},
        {"content": "enough"},
    ])

    events = run_research(fake, search_mode=True)

    tool_events = [e for e in events if "tool" in e]
    assert len(tool_events) == researcher.MAX_TOOL_CALLS + 1
    # three selection rounds, then the streamed answer
    assert [r["stream"] for r in fake.requests] == [False, False, False, True]


def test_single_round_outside_search_mode():
    fake = FakeLLM([{"content": "", "tool_calls": [tool_call("diagram", DIAGRAM_ARGS)]}])

    run_research(fake)

    assert [r["stream"] for r in fake.requests] == [False, True]


def test_bad_tool_calls_become_error_results():
    fake = FakeLLM([{"content": "", "tool_calls": [
        tool_call("diagram", "{not json", "a"),
        tool_call("teleport", {}, "b"),
        tool_call("stock", {"period": "1mo"}, "c"),
    ]}])

    events = run_research(fake)

    results = [e["result"] for e in events if "tool" in e]
    assert [r["status"] for r in results] == ["error", "error", "error"]
    assert results[1]["error"] == "Unknown tool: teleport"
    assert results[2]["error"].startswith("Invalid arguments for stock")
    assert events[-1] == {"content": "", "stop": True}


def test_reasoning_model_picks_tools_with_the_tool_call_model():
    fake = FakeLLM([{"content": "", "tool_calls": [tool_call("diagram", DIAGRAM_ARGS)]}])

    run_research(fake, model="openai-compatible:deepseek-reasoner")

    assert fake.requests[0]["model"] == "gpt-4o"
    assert fake.requests[1]["model"] == "deepseek-reasoner"


def test_llm_failure_ends_stream_with_error():
    events = run_research(FakeLLM([], fail=True))

    assert len(events) == 1
    assert events[0]["stop"] is True
    assert events[0]["content"].startswith("\n[System Error: Completion failed: 503")
    assert database.get_chat_history("sess-1")[-1]["role"] == "assistant"


def test_history_and_custom_prompt():
    database.add_message("sess-1", "user", "earlier question")
    database.add_message("sess-1", "assistant", "earlier answer")

    messages = researcher.build_messages("sess-1", "follow up", custom_prompt="Be brief.")

    assert messages[0]["content"].startswith("Be brief.\n\nCurrent date and time: ")
    assert messages[1:] == [
        {"role": "user", "content": "earlier question"},
        {"role": "assistant", "content": "earlier answer"},
        {"role": "user", "content": "follow up"},
    ]


def test_system_prompt_includes_date():
    now = datetime(2024, 5, 20, 9, 30, tzinfo=timezone.utc)
    assert researcher.system_prompt(now=now).endswith("Current date and time: Monday, 20 May 2024 09:30 UTC")
    assert researcher.max_steps(True) == 5
    assert researcher.max_steps(False) == 1


def test_long_sessions_keep_the_latest_history():
    for i in range(50):
        database.add_message("sess-1", "user" if i % 2 == 0 else "assistant", f"msg {i}")

    messages = researcher.build_messages("sess-1", "new question")

    history = [m["content"] for m in messages[1:-1]]
    assert len(history) == researcher.HISTORY_LIMIT
    assert history[0] == "msg 10"
    assert history[-1] == "msg 49"
    assert messages[-1] == {"role": "user", "content": "new question"}


def test_database_reads_run_off_the_event_loop(monkeypatch):
    threads = {}
    build_messages = researcher.build_messages
    resolve_model = researcher.llm.resolve_model

    def recording_build(*args):
        threads["history"] = threading.current_thread()
        return build_messages(*args)

    def recording_resolve(*args):
        threads["model"] = threading.current_thread()
        return resolve_model(*args)

    monkeypatch.setattr(researcher, "build_messages", recording_build)
    monkeypatch.setattr(researcher.llm, "resolve_model", recording_resolve)

    run_research(FakeLLM([{"content": "hi"}]))

    assert threads["history"] is not threading.main_thread()
    assert threads["model"] is not threading.main_thread()
