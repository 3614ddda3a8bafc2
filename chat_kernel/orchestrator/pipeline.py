"""
Streaming Orchestrator — drives one user turn from message to terminal event.

received -> confirmation-check -> routing
         -> {clarifying | disambiguating | confirming | executing}
         -> responding -> done        (plus terminal cancelled / error)

Behavioral Contract:
- Event order per turn: at most one thinking, then at most one each of
  text, blocks, context, then exactly one of done / error, always last
- A confirm/cancel phrase with a pending confirmation in context goes
  straight to the Confirmation Manager; routing is skipped
- Clarification and disambiguation never execute anything
- A plan needing confirmation is parked, never executed in the same turn
- Any unexpected failure becomes a single error event; never error + done
- A cancelled turn emits nothing further and is never retried
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel

from chat_kernel.audit.store import AuditLog
from chat_kernel.confirmation.manager import ConfirmationCooldownError, ConfirmationManager
from chat_kernel.context.store import ContextStore, derive_update
from chat_kernel.models.config import PipelineConfig
from chat_kernel.models.context import AccumulatedContext
from chat_kernel.models.events import (
    TERMINAL_EVENT_TYPES,
    TERMINAL_TURN_STATES,
    BlocksEvent,
    ContextEvent,
    DoneEvent,
    ErrorEvent,
    StreamEvent,
    TextEvent,
    ThinkingEvent,
    TurnState,
)
from chat_kernel.models.plan import ClarificationNeeded, ExecutionPlan, IntentCategory, MatchCandidate
from chat_kernel.models.request import ChatReply, ChatRequest
from chat_kernel.models.response import ChatResponse
from chat_kernel.models.tools import ToolResult
from chat_kernel.response.builder import ResponseBuilder
from chat_kernel.router.intent_router import CONFIRMED_MARKER, IntentRouter
from chat_kernel.router.signals import PhraseClassifier, RegexPhraseClassifier, SignalKind
from chat_kernel.tools.catalog import build_default_registry
from chat_kernel.tools.executor import ToolExecutor
from chat_kernel.tools.rate_limiter import RateLimiter
from chat_kernel.tools.registry import ToolRegistry
from chat_kernel.workspace.store import WorkspaceStore

logger = logging.getLogger(__name__)

DEFAULT_CONVERSATION = "default"
INTERNAL_ERROR_MESSAGE = "Something went wrong while processing your request."
NOTHING_TO_CONFIRM = "There's nothing waiting for confirmation right now."
NOTHING_TO_CANCEL = "There's nothing to cancel right now."

_EVENT_RANK = {
    "thinking": 0,
    "text": 1,
    "blocks": 2,
    "context": 3,
    "done": 4,
    "error": 4,
}


class EventOrderError(RuntimeError):
    """Raised when a stage tries to emit an event out of protocol order."""
    pass


class TurnOutcome(BaseModel):
    """What a finished turn produced, for the non-streaming reply."""

    response: Optional[ChatResponse] = None
    context: Optional[Dict[str, Any]] = None
    clarification: Optional[ClarificationNeeded] = None
    selection_options: Optional[List[MatchCandidate]] = None
    pending_action: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class TurnChannel:
    """Emitter guard: each event kind at most once, in rank order, terminal last."""

    def __init__(self, sink: Callable[[StreamEvent], Awaitable[None]]):
        self._sink = sink
        self._last_rank = -1
        self.closed = False
        self.emitted: List[str] = []

    async def emit(self, event: StreamEvent) -> None:
        if self.closed:
            raise EventOrderError(f"Turn already terminated; cannot emit {event.type}")
        rank = _EVENT_RANK[event.type]
        if rank <= self._last_rank:
            raise EventOrderError(
                f"Cannot emit {event.type} after {self.emitted[-1]}"
            )
        self._last_rank = rank
        if event.type in TERMINAL_EVENT_TYPES:
            self.closed = True
        self.emitted.append(event.type)
        await self._sink(event)


class Turn:
    """One in-flight turn: a bounded event queue fed by a producer task."""

    def __init__(self, request: ChatRequest, buffer_size: int = 16):
        self.id = uuid4().hex[:12]
        self.request = request
        self.conversation_id = request.conversation_id or DEFAULT_CONVERSATION
        self.state = TurnState.RECEIVED
        self.outcome = TurnOutcome()
        self.task: Optional[asyncio.Task] = None
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=buffer_size)

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_TURN_STATES

    async def publish(self, event: StreamEvent) -> None:
        if self.state == TurnState.CANCELLED:
            return
        if event.type == "done":
            self.state = TurnState.DONE
        elif event.type == "error":
            self.state = TurnState.ERROR
        await self._queue.put(event)

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Yield events until the terminal one, or until the turn is cancelled."""
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event
            if event.type in TERMINAL_EVENT_TYPES:
                return

    def cancel(self) -> bool:
        """Stop the turn. Returns False if it had already finished."""
        if self.finished:
            return False
        self.state = TurnState.CANCELLED
        if self.task is not None and not self.task.done():
            self.task.cancel()
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)
        logger.info("Turn %s cancelled", self.id)
        return True


class StreamingOrchestrator:
    """Sequences router, confirmation manager, executor and response builder per turn."""

    def __init__(
        self,
        router: IntentRouter,
        executor: ToolExecutor,
        confirmations: ConfirmationManager,
        contexts: ContextStore,
        builder: Optional[ResponseBuilder] = None,
        signals: Optional[PhraseClassifier] = None,
        config: Optional[PipelineConfig] = None,
    ):
        self.router = router
        self.executor = executor
        self.confirmations = confirmations
        self.contexts = contexts
        self.builder = builder or ResponseBuilder()
        self.signals = signals or RegexPhraseClassifier()
        self.config = config or PipelineConfig()

    # --- entry points ---

    def start_turn(self, request: ChatRequest) -> Turn:
        """Begin processing in the background. Must be called from a running event loop."""
        turn = Turn(request, self.config.event_buffer_size)
        turn.task = asyncio.create_task(self._run(turn))
        logger.info("Turn %s started for conversation %s", turn.id, turn.conversation_id)
        return turn

    async def stream_turn(self, request: ChatRequest) -> AsyncIterator[StreamEvent]:
        """Async iterator of events. Closing it early cancels the turn."""
        turn = self.start_turn(request)
        try:
            async for event in turn.events():
                yield event
        finally:
            if not turn.finished:
                turn.cancel()

    async def respond(self, request: ChatRequest) -> ChatReply:
        """Non-streaming fallback: run the same turn and collapse it into one reply."""
        turn = self.start_turn(request)
        async for _ in turn.events():
            pass
        outcome = turn.outcome

        if outcome.error is not None:
            return ChatReply(error=outcome.error)
        content = outcome.response.content if outcome.response else None
        if outcome.clarification is not None:
            return ChatReply(
                content=content, needs_clarification=True,
                clarification=outcome.clarification,
            )
        if outcome.selection_options is not None:
            return ChatReply(
                content=content, needs_selection=True,
                selection_options=outcome.selection_options,
            )
        if outcome.pending_action is not None:
            return ChatReply(
                content=content, needs_confirmation=True,
                pending_action=outcome.pending_action,
            )
        response = outcome.response or ChatResponse(content="")
        return ChatReply(
            content=response.content,
            blocks=response.blocks,
            cards=response.cards,
            context=outcome.context,
            undo_available=response.undo_available,
            undo_description=response.undo_description,
        )

    # --- turn processing ---

    async def _run(self, turn: Turn) -> None:
        channel = TurnChannel(turn.publish)
        try:
            await self._process(turn, channel)
            if not channel.closed:
                raise EventOrderError("Turn ended without a terminal event")
            logger.info("Turn %s finished (%s)", turn.id, turn.state.value)
        except asyncio.CancelledError:
            turn.state = TurnState.CANCELLED
            raise
        except Exception:
            logger.exception("Turn %s failed", turn.id)
            turn.outcome = TurnOutcome(error=INTERNAL_ERROR_MESSAGE)
            if not channel.closed and turn.state != TurnState.CANCELLED:
                await channel.emit(ErrorEvent(
                    message=INTERNAL_ERROR_MESSAGE, code="internal_error"
                ))

    async def _process(self, turn: Turn, channel: TurnChannel) -> None:
        request = turn.request
        await channel.emit(ThinkingEvent(status="Understanding your request..."))

        context = self.contexts.get(turn.conversation_id)
        if request.context is not None:
            context = self.contexts.apply(turn.conversation_id, request.context.as_update())

        turn.state = TurnState.CONFIRMATION_CHECK
        signal = self.signals.detect(request.message)
        if signal.detected:
            pending_id = signal.confirmation_id or self._ambient_pending_id(request, context)
            if pending_id:
                await self._resolve_confirmation(turn, channel, signal.kind, pending_id)
                return

        turn.state = TurnState.ROUTING
        classification = await asyncio.to_thread(
            self.router.classify, request.message, context
        )
        plan = classification.plan

        if plan.clarification_needed is not None:
            turn.state = TurnState.CLARIFYING
            response = self.builder.build_clarification_prompt(plan.clarification_needed)
            turn.outcome = TurnOutcome(response=response, clarification=plan.clarification_needed)
            await channel.emit(TextEvent(content=response.content))
            await self._finish(channel)
            return

        if plan.multi_match is not None:
            turn.state = TurnState.DISAMBIGUATING
            response = self.builder.build_disambiguation(plan.multi_match)
            turn.outcome = TurnOutcome(
                response=response, selection_options=plan.multi_match.matches
            )
            await channel.emit(TextEvent(content=response.content))
            await channel.emit(BlocksEvent(items=response.blocks))
            await self._finish(channel)
            return

        if plan.intent in (IntentCategory.CONFIRM, IntentCategory.CANCEL):
            text = NOTHING_TO_CONFIRM if plan.intent == IntentCategory.CONFIRM else NOTHING_TO_CANCEL
            response = self.builder.build_message(text)
            turn.outcome = TurnOutcome(response=response)
            await channel.emit(TextEvent(content=text))
            await self._finish(channel)
            return

        if plan.intent == IntentCategory.UNDO:
            turn.state = TurnState.EXECUTING
            result = await asyncio.to_thread(self.executor.undo_last)
            await self._respond_with_result(turn, channel, plan, result)
            return

        if plan.requires_confirmation and not plan.is_pre_confirmed:
            await self._park_for_confirmation(
                turn, channel, plan, classification.confirmation_message
            )
            return

        turn.state = TurnState.EXECUTING
        result = await asyncio.to_thread(self.executor.execute, plan)
        await self._respond_with_result(turn, channel, plan, result)

    def _ambient_pending_id(
        self, request: ChatRequest, context: AccumulatedContext
    ) -> Optional[str]:
        if request.context is not None:
            pending_id = request.context.pending_id()
            if pending_id:
                return pending_id
        return context.pending_confirmation_id

    async def _resolve_confirmation(
        self,
        turn: Turn,
        channel: TurnChannel,
        kind: SignalKind,
        confirmation_id: str,
    ) -> None:
        cleared = AccumulatedContext(pending_confirmation_id=None)

        if kind == SignalKind.CANCEL:
            outcome = await asyncio.to_thread(self.confirmations.cancel, confirmation_id)
            context = self.contexts.apply(turn.conversation_id, cleared)
            await self._respond_with_message(turn, channel, outcome.message, context)
            return

        outcome = await asyncio.to_thread(self.confirmations.confirm, confirmation_id)
        context = self.contexts.apply(turn.conversation_id, cleared)
        if not outcome.should_execute:
            await self._respond_with_message(turn, channel, outcome.message, context)
            return

        stored = outcome.confirmation.plan
        plan = stored.model_copy(update={
            "arguments": {**stored.arguments, CONFIRMED_MARKER: True},
            "requires_confirmation": False,
        })
        turn.state = TurnState.EXECUTING
        result = await asyncio.to_thread(self.executor.execute, plan)
        await self._respond_with_result(turn, channel, plan, result)

    async def _park_for_confirmation(
        self,
        turn: Turn,
        channel: TurnChannel,
        plan: ExecutionPlan,
        message: Optional[str],
    ) -> None:
        turn.state = TurnState.CONFIRMING
        try:
            confirmation = await asyncio.to_thread(
                self.confirmations.create,
                plan, message or "Are you sure?", plan.affected_entity,
            )
        except ConfirmationCooldownError as e:
            response = self.builder.build_message(str(e))
            turn.outcome = TurnOutcome(response=response)
            await channel.emit(TextEvent(content=response.content))
            await self._finish(channel)
            return

        response = self.builder.build_confirmation_prompt(confirmation)
        pending_action = confirmation.as_pending_action()
        context = self.contexts.apply(
            turn.conversation_id,
            AccumulatedContext(pending_confirmation_id=confirmation.id),
        )
        turn.outcome = TurnOutcome(
            response=response, context=context.to_wire(), pending_action=pending_action
        )
        await channel.emit(TextEvent(content=response.content))
        await channel.emit(BlocksEvent(items=response.blocks))
        await channel.emit(ContextEvent(update=context.to_wire(), pending_action=pending_action))
        await self._finish(channel)

    async def _respond_with_message(
        self,
        turn: Turn,
        channel: TurnChannel,
        text: str,
        context: AccumulatedContext,
    ) -> None:
        turn.state = TurnState.RESPONDING
        response = self.builder.build_message(text)
        turn.outcome = TurnOutcome(response=response, context=context.to_wire())
        await channel.emit(TextEvent(content=text))
        await channel.emit(ContextEvent(update=context.to_wire()))
        await self._finish(channel)

    async def _respond_with_result(
        self,
        turn: Turn,
        channel: TurnChannel,
        plan: ExecutionPlan,
        result: ToolResult,
    ) -> None:
        turn.state = TurnState.RESPONDING
        response = self.builder.build_response(result, self.executor.undo_description)
        context = self.contexts.apply(turn.conversation_id, derive_update(plan, result))
        turn.outcome = TurnOutcome(response=response, context=context.to_wire())

        await channel.emit(TextEvent(content=response.content))
        if response.blocks:
            await channel.emit(BlocksEvent(items=response.blocks))
        await channel.emit(ContextEvent(update=context.to_wire()))
        await self._finish(channel)

    async def _finish(self, channel: TurnChannel) -> None:
        if self.config.pacing_delay_seconds > 0:
            await asyncio.sleep(self.config.pacing_delay_seconds)
        await channel.emit(DoneEvent())


def build_orchestrator(
    workspace: Optional[WorkspaceStore] = None,
    audit_log: Optional[AuditLog] = None,
    config: Optional[PipelineConfig] = None,
    registry: Optional[ToolRegistry] = None,
) -> StreamingOrchestrator:
    """Wire every pipeline component around one workspace and audit log."""
    workspace = workspace or WorkspaceStore()
    audit_log = audit_log or AuditLog()
    config = config or PipelineConfig()
    registry = registry or build_default_registry()

    rate_limiter = RateLimiter(enabled=config.rate_limits_enabled)
    return StreamingOrchestrator(
        router=IntentRouter(registry, workspace, config=config),
        executor=ToolExecutor(registry, workspace, audit_log, rate_limiter),
        confirmations=ConfirmationManager(audit_log, config, registry),
        contexts=ContextStore(config.recent_entities_limit),
        config=config,
    )
