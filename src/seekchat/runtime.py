import asyncio
import logging
import signal

from common.events import (
    AssistantDeltaEvent,
    AssistantMessageEvent,
    ErrorEvent,
    Event,
    EventEmitter,
    SessionCreatedEvent,
    StreamFailedEvent,
    TurnStateEvent,
)
from seekchat.client.backend import ChatBackend
from seekchat.client.context import ChatContext, TurnResult, TurnState
from seekchat.client.directory import SessionDirectory
from seekchat.client.orchestrator import TurnOrchestrator
from seekchat.config import ClientConfig
from seekchat.store.schema import SessionRecord

logger = logging.getLogger(__name__)


class ChatRuntime:
    """Terminal-side state: the session listing and the active ChatContext."""

    def __init__(self, backend: ChatBackend, config: ClientConfig | None = None):
        self.backend = backend
        self.config = config or ClientConfig()
        self.emitter = EventEmitter(self._on_event)
        self.directory = SessionDirectory(backend, emitter=self.emitter)
        self.orchestrator = TurnOrchestrator(
            backend, config=self.config, directory=self.directory, emitter=self.emitter
        )
        self.ctx = ChatContext(model=self.config.model)
        self.sessions: list[SessionRecord] = []

    def _on_event(self, event: Event) -> None:
        if isinstance(event, AssistantDeltaEvent):
            print(event.text, end="", flush=True)
        elif isinstance(event, AssistantMessageEvent):
            print()
        elif isinstance(event, StreamFailedEvent):
            print(f"\n{event.content}")
        elif isinstance(event, SessionCreatedEvent):
            if all(s.id != event.session_id for s in self.sessions):
                self.sessions.insert(0, SessionRecord(id=event.session_id, name=event.name))
        elif isinstance(event, ErrorEvent):
            print(f"\n❌ {event.message}")
        elif isinstance(event, TurnStateEvent):
            if event.state == TurnState.STREAMING.value:
                print("\n🤖 Assistant:", end=" ", flush=True)
            elif event.state == TurnState.CANCELLED.value:
                print("\n⚠️  Stream cancelled")

    async def refresh_sessions(self) -> list[SessionRecord]:
        self.sessions = await self.directory.list_sessions()
        return self.sessions

    async def new_session(self, name: str | None = None) -> SessionRecord:
        record = await self.directory.create_session(name)
        self.ctx.adopt(record)
        return record

    async def switch(self, session_id: str) -> ChatContext:
        ctx = await self.directory.open_session(session_id, model=self.ctx.model)
        self.ctx = ctx
        return ctx

    async def delete(self, session_id: str) -> None:
        await self.directory.delete_session(session_id)
        self.sessions = [s for s in self.sessions if s.id != session_id]
        if self.ctx.session_id == session_id:
            self.ctx.reset()

    async def ensure_session(self) -> ChatContext:
        if not self.ctx.has_session:
            await self.new_session()
        return self.ctx

    def cancel(self) -> bool:
        return self.orchestrator.cancel(self.ctx)

    async def send(self, prompt: str) -> TurnResult | None:
        loop = asyncio.get_running_loop()
        handler_installed = False
        try:
            loop.add_signal_handler(signal.SIGINT, self.cancel)
            handler_installed = True
        except (NotImplementedError, RuntimeError, ValueError):
            logger.debug("SIGINT handler unavailable; Ctrl-C will not cancel streams")
        try:
            return await self.orchestrator.submit(self.ctx, prompt)
        finally:
            if handler_installed:
                loop.remove_signal_handler(signal.SIGINT)
