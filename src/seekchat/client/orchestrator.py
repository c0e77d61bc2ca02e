from __future__ import annotations

import asyncio
import logging

from common import llm
from common.cancel import CancelToken
from common.events import (
    AssistantDeltaEvent,
    AssistantMessageEvent,
    ErrorEvent,
    EventEmitter,
    StreamFailedEvent,
    TurnStateEvent,
)
from seekchat.client.backend import ChatBackend
from seekchat.client.context import ChatContext, TurnResult, TurnState
from seekchat.client.directory import SessionDirectory
from seekchat.config import ClientConfig
from seekchat.errors import ChatError, TurnInProgressError
from seekchat.store.schema import Attachment, Message, Role

logger = logging.getLogger(__name__)

SAVE_FAILED_BEFORE_STREAM = "ERROR: message could not be saved, request aborted"
SAVE_FAILED_AFTER_STREAM = "ERROR: response shown but not saved"
SESSION_CREATE_FAILED = "ERROR: could not create a session"
CONTEXT_LOAD_FAILED = "ERROR: could not load system prompt or attachments"


def build_outbound_messages(
    transcript: list[Message],
    system_prompt: str = "",
    attachments: list[Attachment] | None = None,
) -> list[dict]:
    """Messages sent to the model for one turn.

    Optional system prompt first, then the transcript in order, then one
    system message with every attachment's content joined by newlines.
    """
    outbound: list[dict] = []
    if system_prompt:
        outbound.append({"role": Role.SYSTEM.value, "content": system_prompt})
    outbound.extend(message.to_api() for message in transcript)
    joined = "\n".join(item.content for item in attachments or [])
    if joined:
        outbound.append({"role": Role.SYSTEM.value, "content": joined})
    return outbound


class TurnOrchestrator:
    def __init__(
        self,
        backend: ChatBackend,
        config: ClientConfig | None = None,
        directory: SessionDirectory | None = None,
        emitter: EventEmitter | None = None,
    ):
        self.backend = backend
        self.config = config or ClientConfig()
        self.emitter = emitter or EventEmitter()
        self.directory = directory or SessionDirectory(backend, emitter=self.emitter)

    def _set_state(self, ctx: ChatContext, state: TurnState) -> None:
        ctx.state = state
        self.emitter.emit(TurnStateEvent(session_id=ctx.session_id, state=state.value))

    def _notice(self, ctx: ChatContext, text: str, source: str) -> None:
        ctx.notices.append(Message(role=Role.SYSTEM, content=text))
        self.emitter.emit(ErrorEvent(message=text, source=source))

    def cancel(self, ctx: ChatContext) -> bool:
        """Request cancellation of the turn running on `ctx`."""
        token = ctx.cancel_token
        if token is None:
            return False
        token.cancel()
        logger.info(f"Cancellation requested for session {ctx.session_id}")
        return True

    async def submit(self, ctx: ChatContext, prompt: str) -> TurnResult | None:
        prompt = prompt or ""
        if not prompt.strip() and not ctx.attachments:
            return None
        if ctx.busy:
            raise TurnInProgressError("a response is already streaming for this session")

        ctx.cancel_token = CancelToken()
        self._set_state(ctx, TurnState.AWAITING_STREAM_START)
        try:
            result = await self._run_turn(ctx, prompt, ctx.cancel_token)
            self._set_state(ctx, result.state)
            return result
        finally:
            ctx.live = ""
            ctx.cancel_token = None
            self._set_state(ctx, TurnState.IDLE)

    async def _run_turn(self, ctx: ChatContext, prompt: str, token: CancelToken) -> TurnResult:
        if not ctx.has_session:
            try:
                record = await self.directory.create_session()
            except ChatError as e:
                logger.error(f"Session creation failed: {e}")
                self._notice(ctx, f"{SESSION_CREATE_FAILED}: {e}", source="store")
                return TurnResult(state=TurnState.FAILED, saved=False, error=str(e))
            ctx.adopt(record, ctx.attachments)

        ctx.messages.append(Message(role=Role.USER, content=prompt))
        try:
            await self.backend.save_chat(ctx.session_id, ctx.name, ctx.messages)
        except ChatError as e:
            logger.error(f"Pre-turn save failed for session {ctx.session_id}: {e}")
            self._notice(ctx, f"{SAVE_FAILED_BEFORE_STREAM}: {e}", source="store")
            return TurnResult(state=TurnState.FAILED, saved=False, error=str(e))

        if token.cancelled:
            return TurnResult(state=TurnState.CANCELLED)

        try:
            system_prompt = await self.backend.load_system_prompt()
            attachments = await self.backend.load_files(ctx.session_id)
        except ChatError as e:
            logger.error(f"Loading turn context failed for session {ctx.session_id}: {e}")
            self._notice(ctx, f"{CONTEXT_LOAD_FAILED}: {e}", source="store")
            return TurnResult(state=TurnState.FAILED, saved=True, error=str(e))
        ctx.attachments = attachments
        outbound = build_outbound_messages(ctx.messages, system_prompt, attachments)

        self._set_state(ctx, TurnState.STREAMING)
        try:
            content = await token.run(self._consume(ctx, outbound, token))
        except asyncio.CancelledError:
            if not token.cancelled:
                raise
            logger.info(f"Stream cancelled for session {ctx.session_id}")
            return TurnResult(state=TurnState.CANCELLED)
        except Exception as e:
            logger.warning(f"Stream failed for session {ctx.session_id}: {e}")
            return await self._finish_failed(ctx, e)

        if token.cancelled:
            return TurnResult(state=TurnState.CANCELLED)
        return await self._finish_completed(ctx, content)

    async def _consume(self, ctx: ChatContext, outbound: list[dict], token: CancelToken) -> str:
        accumulated = ""
        stream = llm.stream_text(
            model=ctx.model,
            messages=outbound,
            **self.config.completion_kwargs(),
        )
        try:
            async for fragment in stream:
                if token.cancelled:
                    break
                accumulated += fragment
                ctx.live = accumulated
                self.emitter.emit(AssistantDeltaEvent(text=fragment, partial=accumulated))
        finally:
            await stream.aclose()
        return accumulated

    async def _persist(self, ctx: ChatContext) -> bool:
        try:
            await self.backend.save_chat(ctx.session_id, ctx.name, ctx.messages)
        except ChatError as e:
            logger.error(f"Post-turn save failed for session {ctx.session_id}: {e}")
            self._notice(ctx, f"{SAVE_FAILED_AFTER_STREAM}: {e}", source="store")
            return False
        return True

    async def _finish_completed(self, ctx: ChatContext, content: str) -> TurnResult:
        ctx.messages.append(Message(role=Role.ASSISTANT, content=content))
        ctx.live = ""
        self.emitter.emit(AssistantMessageEvent(content=content))
        saved = await self._persist(ctx)
        return TurnResult(state=TurnState.COMPLETED, content=content, saved=saved)

    async def _finish_failed(self, ctx: ChatContext, error: Exception) -> TurnResult:
        synthetic = self.config.stream_error_message
        ctx.messages.append(Message(role=Role.ASSISTANT, content=synthetic))
        ctx.live = ""
        self.emitter.emit(StreamFailedEvent(content=synthetic, error=str(error)))
        saved = await self._persist(ctx)
        return TurnResult(state=TurnState.FAILED, content=synthetic, saved=saved, error=str(error))
