# ahamai/llm.py
"""
Thin client for the OpenAI-compatible completion proxy.

Model ids are written `provider:model` (e.g. `openai-compatible:gpt-4o`);
only the `openai-compatible` provider is wired up.
"""

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import httpx

from . import config, database
from .errors import LLMError

logger = logging.getLogger(__name__)

ENABLED_PROVIDERS = {"openai-compatible"}
TOOL_CALL_MODEL = "openai-compatible:gpt-4o"
REASONING_MARKERS = ("deepseek", "reasoner", "o1", "o3")
LLM_TIMEOUT = 120.0


def parse_model_id(model: str) -> Tuple[str, str]:
    provider, sep, name = model.partition(":")
    if not sep:
        return "openai-compatible", model
    return provider, name


def is_provider_enabled(provider: str) -> bool:
    return provider in ENABLED_PROVIDERS


def is_reasoning_model(model: Any) -> bool:
    if not isinstance(model, str):
        return False
    return any(marker in model for marker in REASONING_MARKERS)


def get_tool_call_model(model: Optional[str] = None) -> str:
    return TOOL_CALL_MODEL


def resolve_model(model: Optional[str] = None) -> str:
    """Explicit model, else the stored default, else AHAMAI_DEFAULT_MODEL."""
    chosen = model or database.get_app_setting("default_model") or config.default_model()
    provider, _ = parse_model_id(chosen)
    if not is_provider_enabled(provider):
        raise LLMError(f"Provider not enabled: {provider}")
    return chosen


def llm_client(transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    headers = {"Content-Type": "application/json"}
    key = config.api_key()
    if key:
        headers["Authorization"] = f"Bearer {key}"
    return httpx.AsyncClient(base_url=config.api_base_url(), headers=headers,
                             timeout=LLM_TIMEOUT, transport=transport)


def _payload(messages: List[Dict[str, Any]], model: str, tools: Optional[List[Dict[str, Any]]],
             stream: bool) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"model": parse_model_id(model)[1], "messages": messages, "stream": stream}
    if tools:
        payload["tools"] = tools
        payload["tool_choice"] = "auto"
    return payload


async def chat_completion(client: httpx.AsyncClient, messages: List[Dict[str, Any]], model: str,
                          tools: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """One non-streaming completion; returns the assistant message (content and/or tool_calls)."""
    try:
        r = await client.post("/chat/completions", json=_payload(messages, model, tools, stream=False))
    except httpx.HTTPError as e:
        raise LLMError(f"Completion request failed: {e}") from e
    if r.status_code != 200:
        raise LLMError(f"Completion failed: {r.status_code} {r.text[:200]}")

    try:
        return r.json()["choices"][0]["message"]
    except (ValueError, KeyError, IndexError) as e:
        raise LLMError("Malformed completion response") from e


async def stream_chat_completion(client: httpx.AsyncClient, messages: List[Dict[str, Any]],
                                 model: str) -> AsyncIterator[str]:
    """Yields content deltas from a streamed completion until `[DONE]`."""
    try:
        async with client.stream("POST", "/chat/completions",
                                 json=_payload(messages, model, None, stream=True)) as resp:
            if resp.status_code != 200:
                body = await resp.aread()
                raise LLMError(f"Completion failed: {resp.status_code} {body[:200].decode(errors='replace')}")
            async for line in resp.aiter_lines():
                if not line.startswith("data:"):
                    continue
                data = line[5:].strip()
                if data == "[DONE]":
                    break
                try:
                    chunk = json.loads(data)
                except json.JSONDecodeError:
                    logger.debug("Skipping malformed stream chunk: %s", data[:80])
                    continue
                choices = chunk.get("choices") or [{}]
                content = (choices[0].get("delta") or {}).get("content")
                if content:
                    yield content
    except httpx.HTTPError as e:
        raise LLMError(f"Streaming request failed: {e}") from e
