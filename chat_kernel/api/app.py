"""
Chat Kernel API — FastAPI endpoints.

Exposes the conversational pipeline via a REST API for:
- Chat turns (server-sent events or a single JSON reply)
- Pending confirmation inspection and cancellation
- Conversation context inspection and reset
- Tool catalogue and undo availability
- Audit log queries and chain verification
- Pipeline configuration

Serve it with the `serve` extra installed:

    uvicorn chat_kernel.api.app:app
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from chat_kernel.audit.store import AuditLog
from chat_kernel.models.config import PipelineConfig
from chat_kernel.models.events import to_sse
from chat_kernel.models.request import ChatRequest
from chat_kernel.orchestrator.pipeline import build_orchestrator
from chat_kernel.tools.registry import ToolRegistry
from chat_kernel.workspace.seed import seed_demo_workspace
from chat_kernel.workspace.store import WorkspaceStore


class PipelineConfigUpdate(BaseModel):
    confirmation_ttl_seconds: Optional[int] = None
    sweep_interval_seconds: Optional[int] = None
    sweep_schedule: Optional[str] = None
    high_confidence_threshold: Optional[float] = None
    medium_confidence_threshold: Optional[float] = None
    clarify_low_confidence: Optional[bool] = None
    match_similarity_floor: Optional[float] = None
    max_disambiguation_matches: Optional[int] = None
    recent_entities_limit: Optional[int] = None
    event_buffer_size: Optional[int] = None
    pacing_delay_seconds: Optional[float] = None
    rate_limits_enabled: Optional[bool] = None
    log_level: Optional[str] = None


# --- Application Factory ---

def create_app(
    workspace: Optional[WorkspaceStore] = None,
    audit_log: Optional[AuditLog] = None,
    config: Optional[PipelineConfig] = None,
    registry: Optional[ToolRegistry] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    config = config or PipelineConfig()
    ws = workspace or WorkspaceStore()
    al = audit_log or AuditLog()
    orchestrator = build_orchestrator(ws, al, config, registry)
    confirmations = orchestrator.confirmations
    contexts = orchestrator.contexts
    executor = orchestrator.executor

    logging.getLogger("chat_kernel").setLevel(config.log_level.upper())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        stop_event = asyncio.Event()
        sweeper = asyncio.create_task(confirmations.run_sweeper_async(stop_event))
        try:
            yield
        finally:
            stop_event.set()
            await sweeper

    app = FastAPI(
        title="Chat Kernel API",
        description="Conversational command pipeline",
        version="0.1.0-alpha",
        lifespan=lifespan,
    )

    # Store components on app state for access in endpoints
    app.state.config = config
    app.state.workspace = ws
    app.state.audit_log = al
    app.state.orchestrator = orchestrator

    # === CHAT ===

    @app.post("/chat")
    async def chat(req: ChatRequest):
        """Run one turn. stream=true answers with server-sent events."""
        if not req.stream:
            reply = await orchestrator.respond(req)
            return reply.to_wire()

        async def event_stream():
            async for event in orchestrator.stream_turn(req):
                yield to_sse(event)

        return StreamingResponse(
            event_stream(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    # === CONFIRMATIONS ===

    @app.get("/confirmations/pending")
    def list_pending_confirmations():
        """Unexpired confirmations awaiting a yes or no."""
        return [c.to_wire() for c in confirmations.list_pending()]

    @app.get("/confirmations/{confirmation_id}")
    def get_confirmation(confirmation_id: str):
        confirmation = confirmations.get(confirmation_id)
        if confirmation is None:
            raise HTTPException(404, "Confirmation not found")
        return confirmation.to_wire()

    @app.post("/confirmations/{confirmation_id}/cancel")
    def cancel_confirmation(confirmation_id: str):
        """Withdraw a pending confirmation. Idempotent."""
        outcome = confirmations.cancel(confirmation_id)
        return outcome.to_wire()

    @app.get("/pending-actions")
    def get_pending_actions():
        """Legacy pending-action map keyed by id."""
        return confirmations.pending_actions()

    # === CONTEXT ===

    @app.get("/context/{conversation_id}")
    def get_context(conversation_id: str):
        return contexts.get(conversation_id).to_wire()

    @app.delete("/context/{conversation_id}")
    def reset_context(conversation_id: str):
        if not contexts.reset(conversation_id):
            raise HTTPException(404, "Conversation not found")
        return {"reset": conversation_id}

    # === TOOLS & UNDO ===

    @app.get("/tools")
    def list_tools():
        return [d.to_wire() for d in executor.registry.definitions()]

    @app.get("/undo")
    def get_undo():
        return {
            "undoAvailable": executor.undo_available,
            "undoDescription": executor.undo_description,
        }

    # === AUDIT ===

    @app.get("/audit")
    def get_audit(limit: int = 50):
        """The most recent audit entries, oldest of them first."""
        return [e.model_dump(mode="json") for e in al.query_recent(limit)]

    @app.get("/audit/verify")
    def verify_audit():
        return {"valid": al.verify_chain_integrity(), "entries": al.count()}

    # === CONFIG ===

    @app.get("/pipeline/config")
    def get_config():
        return config.model_dump()

    @app.put("/pipeline/config")
    def update_config(req: PipelineConfigUpdate):
        """Apply changes to the shared config; components read it live."""
        changes = req.model_dump(exclude_unset=True)
        try:
            updated = PipelineConfig(**{**config.model_dump(), **changes})
        except ValueError as e:
            raise HTTPException(422, str(e))
        for field_name in changes:
            setattr(config, field_name, getattr(updated, field_name))

        orchestrator.router.resolver.similarity_floor = config.match_similarity_floor
        executor.rate_limiter.enabled = config.rate_limits_enabled
        contexts.recent_limit = config.recent_entities_limit
        logging.getLogger("chat_kernel").setLevel(config.log_level.upper())
        return config.model_dump()

    return app


# Default application instance
app = create_app(workspace=seed_demo_workspace())
