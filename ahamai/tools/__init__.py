# ahamai/tools/__init__.py
import asyncio
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .. import database
from ..errors import InvalidToolArguments, UnknownTool
from . import crypto, diagram, document, flight, image, ocr, presentation, screenshot, stock, user_knowledge
from .base import Tool, ToolContext

logger = logging.getLogger(__name__)

TOOLS: Dict[str, Tool] = {
    t.name: t
    for t in (
        stock.TOOL,
        crypto.TOOL,
        flight.TOOL,
        diagram.TOOL,
        presentation.TOOL,
        document.TOOL,
        screenshot.TOOL,
        ocr.SCREENSHOT_ANALYSIS_TOOL,
        ocr.SIMPLE_ANALYSIS_TOOL,
        user_knowledge.TOOL,
        image.GENERATE_TOOL,
        image.EDIT_TOOL,
    )
}


def get_tool(name: str) -> Tool:
    tool = TOOLS.get(name)
    if tool is None:
        raise UnknownTool(f"Unknown tool: {name}")
    return tool


def get_tool_definitions(names: Optional[List[str]] = None) -> List[Dict[str, Any]]:
    """
    OpenAI function-calling definitions for the registered tools
    (or only `names`, in that order).
    """
    selected = [get_tool(n) for n in names] if names else list(TOOLS.values())
    return [t.definition() for t in selected]


async def execute_tool(name: str, arguments: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    tool = get_tool(name)
    try:
        args = tool.args_model.model_validate(arguments or {})
    except ValidationError as e:
        raise InvalidToolArguments(f"Invalid arguments for {name}: {e}") from e

    logger.info("Running tool %s for user %s", name, ctx.user_id)
    result = await tool.execute(args, ctx)
    await asyncio.to_thread(database.record_tool_usage, ctx.user_id, name)
    return result


__all__ = ["TOOLS", "Tool", "ToolContext", "execute_tool", "get_tool", "get_tool_definitions"]
