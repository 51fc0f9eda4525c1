# ahamai/tools/base.py
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Type

import httpx
from pydantic import BaseModel


@dataclass
class ToolContext:
    """Per-call state handed to every tool: the shared HTTP client and the acting user."""
    client: httpx.AsyncClient
    user_id: str = "local"
    session_id: Optional[str] = None


@dataclass
class Tool:
    name: str
    description: str
    args_model: Type[BaseModel]
    execute: Callable[[Any, ToolContext], Awaitable[Dict[str, Any]]]

    def definition(self) -> Dict[str, Any]:
        """OpenAI function-calling schema for this tool."""
        schema = self.args_model.model_json_schema()
        schema.pop("title", None)
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": schema,
            },
        }


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def error_message(e: BaseException) -> str:
    return str(e) or type(e).__name__
