import logging

from common.events import EventEmitter, SessionCreatedEvent
from common.ids import default_session_name, generate_id
from seekchat.client.backend import ChatBackend
from seekchat.client.context import ChatContext
from seekchat.errors import ConflictError, NotFoundError
from seekchat.store.schema import SessionRecord

logger = logging.getLogger(__name__)

CREATE_ATTEMPTS = 3


class SessionDirectory:
    def __init__(self, backend: ChatBackend, emitter: EventEmitter | None = None):
        self.backend = backend
        self.emitter = emitter or EventEmitter()

    async def list_sessions(self) -> list[SessionRecord]:
        records = await self.backend.load_chats()
        return sorted(records, key=SessionRecord.sort_key, reverse=True)

    async def create_session(self, name: str | None = None) -> SessionRecord:
        name = name or default_session_name()
        last_error: ConflictError | None = None
        for _ in range(CREATE_ATTEMPTS):
            session_id = generate_id()
            try:
                record = await self.backend.create_chat(session_id, name)
            except ConflictError as e:
                logger.warning(f"Session id {session_id} already taken, retrying")
                last_error = e
                continue
            self.emitter.emit(SessionCreatedEvent(session_id=record.id, name=record.name))
            return record
        raise last_error

    async def delete_session(self, session_id: str) -> None:
        await self.backend.delete_chat(session_id)
        logger.info(f"Deleted session {session_id}")

    async def open_session(self, session_id: str, model: str) -> ChatContext:
        records = {record.id: record for record in await self.backend.load_chats()}
        record = records.get(session_id)
        if record is None:
            raise NotFoundError(f"Session {session_id} not found")
        messages = await self.backend.load_chat(session_id)
        attachments = await self.backend.load_files(session_id)
        ctx = ChatContext(model=model)
        ctx.adopt(record.model_copy(update={"messages": messages}), attachments)
        return ctx
