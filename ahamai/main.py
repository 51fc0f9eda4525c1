# ahamai/main.py
import asyncio
import json
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from . import __version__, config, database, llm, researcher
from .errors import InvalidToolArguments, LLMError, UnknownTool
from .fallback import http_client
from .tools import ToolContext, execute_tool, get_tool_definitions
from .tools.user_knowledge import build_report

logger = logging.getLogger(__name__)

app = FastAPI(title="AhamAI", version=__version__)


@app.on_event("startup")
async def _startup():
    config.load_secrets()
    config.configure_logging()
    logger.info("Initializing database at %s", config.db_path())
    database.init_db()


# ------------------------------
# Pydantic Models
# ------------------------------
class ChatRequest(BaseModel):
    message: str
    session_id: str
    user_id: str = "local"
    model: Optional[str] = None
    search_mode: bool = False
    system_prompt: Optional[str] = None


class ToolRequest(BaseModel):
    arguments: Dict[str, Any] = Field(default_factory=dict)
    user_id: str = "local"
    session_id: Optional[str] = None


class DefaultModelRequest(BaseModel):
    model: str


# ------------------------------
# Routes
# ------------------------------
@app.get("/health")
async def health():
    try:
        model = llm.resolve_model()
    except LLMError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"status": "ok", "version": __version__, "model": model}


@app.get("/tools")
async def list_tools():
    return {"tools": get_tool_definitions()}


@app.post("/tools/{name}")
async def run_tool(name: str, req: ToolRequest):
    async with http_client() as client:
        ctx = ToolContext(client=client, user_id=req.user_id, session_id=req.session_id)
        try:
            return await execute_tool(name, req.arguments, ctx)
        except UnknownTool as e:
            raise HTTPException(status_code=404, detail=str(e))
        except InvalidToolArguments as e:
            raise HTTPException(status_code=422, detail=str(e))


@app.put("/settings/default-model")
async def set_default_model(req: DefaultModelRequest):
    provider, _ = llm.parse_model_id(req.model)
    if not llm.is_provider_enabled(provider):
        raise HTTPException(status_code=400, detail=f"Provider not enabled: {provider}")
    database.set_app_setting("default_model", req.model)
    return {"model": req.model}


@app.get("/analytics/{user_id}")
async def user_analytics(user_id: str, time_range: str = "all"):
    if time_range not in ("7d", "30d", "90d", "all"):
        raise HTTPException(status_code=422, detail=f"Invalid time_range: {time_range}")
    report = await asyncio.to_thread(build_report, user_id, time_range)
    if not report["success"]:
        raise HTTPException(status_code=404, detail=report["error"])
    return report


@app.post("/chat")
async def chat_endpoint(req: ChatRequest):
    if not req.message.strip():
        raise HTTPException(status_code=400, detail="Empty message")
    try:
        llm.resolve_model(req.model)
    except LLMError as e:
        raise HTTPException(status_code=502, detail=str(e))

    async def event_stream():
        async with llm.llm_client() as llm_client, http_client() as tool_client:
            async for event in researcher.research(
                llm_client,
                tool_client,
                session_id=req.session_id,
                message=req.message,
                user_id=req.user_id,
                model=req.model,
                search_mode=req.search_mode,
                custom_prompt=req.system_prompt,
            ):
                yield f"data: {json.dumps(event, default=str)}\n\n"

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
