# ahamai/researcher.py
import asyncio
import json
import logging
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from . import database, llm
from .errors import AhamAIError, LLMError
from .tools import ToolContext, execute_tool, get_tool_definitions

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful AI assistant with access to various tools for analysis, visualization, "
    "and user insights. Use the available tools to provide comprehensive responses."
)

MAX_TOOL_CALLS = 3
HISTORY_LIMIT = 40


def max_steps(search_mode: bool) -> int:
    return 5 if search_mode else 1


def system_prompt(custom: Optional[str] = None, now: Optional[datetime] = None) -> str:
    now = now or datetime.now().astimezone()
    base = custom or SYSTEM_PROMPT
    return f"{base}\n\nCurrent date and time: {now.strftime('%A, %d %B %Y %H:%M %Z').strip()}"


def build_messages(session_id: str, user_msg: str, custom_prompt: Optional[str] = None) -> List[Dict[str, Any]]:
    """System prompt, stored history of the session, then the new user message."""
    history = database.get_chat_history(session_id, limit=HISTORY_LIMIT)
    messages: List[Dict[str, Any]] = [{"role": "system", "content": system_prompt(custom_prompt)}]
    messages.extend({"role": m["role"], "content": m["content"]} for m in history)
    messages.append({"role": "user", "content": user_msg})
    return messages


async def run_tool_call(call: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    fn = call.get("function") or {}
    name = fn.get("name", "")
    try:
        arguments = json.loads(fn.get("arguments") or "{}")
        return await execute_tool(name, arguments, ctx)
    except (json.JSONDecodeError, AhamAIError) as e:
        logger.info("Tool call %s rejected: %s", name, e)
        return {"type": name, "status": "error", "error": str(e)}


async def research(
    llm_client: httpx.AsyncClient,
    tool_client: httpx.AsyncClient,
    session_id: str,
    message: str,
    user_id: str = "local",
    model: Optional[str] = None,
    search_mode: bool = False,
    custom_prompt: Optional[str] = None,
) -> AsyncIterator[Dict[str, Any]]:
    """
    Yields chat events:
      {"tool": name, "result": card, "stop": False}  once per executed tool call
      {"content": text, "stop": False}               answer text
      {"content": "", "stop": True}                  end of reply
    A failing completion ends the stream with the error text and stop=True.
    """
    user_msg = message.strip()
    messages = await asyncio.to_thread(build_messages, session_id, user_msg, custom_prompt)
    await asyncio.to_thread(database.add_message, session_id, "user", user_msg, len(user_msg) // 3,
                            user_id, user_msg[:60] or None)

    ctx = ToolContext(client=tool_client, user_id=user_id, session_id=session_id)
    parts: List[str] = []
    try:
        answer_model = await asyncio.to_thread(llm.resolve_model, model)
        tool_model = llm.get_tool_call_model(answer_model) if llm.is_reasoning_model(answer_model) else answer_model
        definitions = get_tool_definitions()
        used_tools = False

        for step in range(max_steps(search_mode)):
            reply = await llm.chat_completion(llm_client, messages, tool_model, tools=definitions)
            calls = (reply.get("tool_calls") or [])[:MAX_TOOL_CALLS]
            if not calls:
                if reply.get("content") and not used_tools:
                    parts.append(reply["content"])
                    yield {"content": reply["content"], "stop": False}
                break

            used_tools = True
            logger.info("Step %d: running %d tool call(s)", step + 1, len(calls))
            messages.append({"role": "assistant", "content": reply.get("content") or "", "tool_calls": calls})
            results = await asyncio.gather(*(run_tool_call(call, ctx) for call in calls))
            for call, result in zip(calls, results):
                yield {"tool": call.get("function", {}).get("name"), "result": result, "stop": False}
                messages.append({
                    "role": "tool",
                    "tool_call_id": call.get("id", ""),
                    "content": json.dumps(result, default=str),
                })

        if not parts:
            async for delta in llm.stream_chat_completion(llm_client, messages, answer_model):
                parts.append(delta)
                yield {"content": delta, "stop": False}
    except LLMError as e:
        logger.warning("Chat completion failed: %s", e)
        err_msg = f"\n[System Error: {e}]"
        parts.append(err_msg)
        await asyncio.to_thread(_save_reply, session_id, parts, user_id)
        yield {"content": err_msg, "stop": True}
        return

    await asyncio.to_thread(_save_reply, session_id, parts, user_id)
    yield {"content": "", "stop": True}


def _save_reply(session_id: str, parts: List[str], user_id: str) -> None:
    full_text = "".join(parts)
    if full_text:
        database.add_message(session_id, "assistant", full_text, len(full_text) // 3, user_id)
