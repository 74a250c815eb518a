"""HTTP API: FastAPI app wired to a CrewEngine.

The engine lives on ``app.state.engine``; the lifespan builds it from config
unless one was installed beforehand (tests do this).  Live events are served
as Server-Sent Events on ``GET /api/events``.
"""

from __future__ import annotations

import asyncio
import hmac
import json
import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Literal, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from crew_council.application.broadcaster import Subscription
from crew_council.application.engine import CrewEngine
from crew_council.config import LOG_EXCERPT_CHARS, SSE_KEEPALIVE_S, load_config
from crew_council.domain import InvalidEngine, NotFound
from crew_council.infrastructure.telemetry import setup_telemetry
from crew_council.infrastructure.wiring import build_engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    if getattr(app.state, "engine", None) is None:
        config = load_config()
        setup_telemetry(config)
        app.state.engine = build_engine(config)
    yield
    await app.state.engine.aclose()


app = FastAPI(title="crew-council", lifespan=_lifespan)


@app.middleware("http")
async def _auth_middleware(request: Request, call_next):
    """Optional bearer-token authentication.

    Active only when ``CREW_API_KEY`` is set; then every endpoint except
    ``GET /health`` needs ``Authorization: Bearer <key>``.  Constant-time
    comparison.
    """
    api_key = os.environ.get("CREW_API_KEY", "").strip()
    if api_key and request.url.path != "/health":
        auth_header = request.headers.get("Authorization", "")
        token = auth_header[len("Bearer "):] if auth_header.startswith("Bearer ") else ""
        if not token or not hmac.compare_digest(token.encode(), api_key.encode()):
            return JSONResponse(
                status_code=401,
                content={"error": "Unauthorized", "detail": "Authorization: Bearer <key> header required"},
                headers={"WWW-Authenticate": "Bearer"},
            )
    return await call_next(request)


def _engine(request: Request) -> CrewEngine:
    return request.app.state.engine


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class TaskRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    mode: Optional[Literal["single", "council"]] = None


class EngineRequest(BaseModel):
    engine: str = Field(..., min_length=1)


class SpecialtiesRequest(BaseModel):
    primary: str
    secondaries: List[str] = Field(default_factory=list)


class KnowledgeRequest(BaseModel):
    """Plain-text knowledge; document parsing happens before this call."""
    model_config = ConfigDict(populate_by_name=True)

    display_name: str = Field(..., alias="displayName", min_length=1)
    source_path: str = Field(..., alias="sourcePath", min_length=1)
    content: str


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/health")
def health():
    return {"ok": True}


@app.get("/api/agents")
def list_agents(request: Request):
    return {"agents": [a.to_dict() for a in _engine(request).list_agents()]}


@app.post("/api/agents/{name}/engine")
async def update_engine(name: str, body: EngineRequest, request: Request):
    try:
        agent = await _engine(request).update_engine(name, body.engine)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidEngine as e:
        raise HTTPException(status_code=422, detail=str(e))
    return agent.to_dict()


@app.post("/api/agents/{name}/specialties")
async def update_specialties(name: str, body: SpecialtiesRequest, request: Request):
    try:
        agent = await _engine(request).update_specialties(name, body.primary, body.secondaries)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return agent.to_dict()


@app.post("/api/agents/{name}/knowledge")
async def attach_knowledge(name: str, body: KnowledgeRequest, request: Request):
    try:
        agent = await _engine(request).attach_knowledge(
            name, body.display_name, body.source_path, body.content
        )
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return agent.to_dict()


@app.post("/api/tasks", status_code=202)
async def create_task(body: TaskRequest, request: Request):
    if not body.prompt.strip():
        raise HTTPException(status_code=400, detail="Prompt is required")
    logger.info("POST /api/tasks prompt=%r mode=%s", body.prompt[:LOG_EXCERPT_CHARS], body.mode)
    task = _engine(request).create_task(body.prompt, body.mode)
    return task.to_dict()


@app.get("/api/tasks")
def list_tasks(request: Request):
    return {"tasks": [t.to_dict() for t in _engine(request).list_tasks()]}


@app.get("/api/tasks/{task_id}")
def get_task(task_id: str, request: Request):
    try:
        return _engine(request).get_task(task_id).to_dict()
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


# ---------------------------------------------------------------------------
# Server-Sent Events
# ---------------------------------------------------------------------------

def format_sse(kind: str, data: object) -> str:
    payload = json.dumps(data, ensure_ascii=False)
    return f"event: {kind}\ndata: {payload}\n\n"


async def _sse_event_generator(
    engine: CrewEngine,
    sub: Subscription,
    keepalive_s: float = SSE_KEEPALIVE_S,
) -> AsyncIterator[str]:
    """Yield events from one subscription until the client goes away."""
    try:
        while True:
            try:
                event = await asyncio.wait_for(sub.get(), timeout=keepalive_s)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            yield format_sse(event.kind, event.data)
    finally:
        engine.unsubscribe(sub)


@app.get("/api/events")
async def events(request: Request):
    """Stream lifecycle events as Server-Sent Events (text/event-stream).

    The first two events are the ``agents`` and ``tasks`` snapshots; after
    that come ``agent-updated``, ``task-updated``, ``council-contribution``
    and ``log`` events as they happen::

        event: task-updated
        data: {"id": "task_...", "status": "running", ...}
    """
    engine = _engine(request)
    sub = engine.subscribe()
    return StreamingResponse(
        _sse_event_generator(engine, sub),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )
