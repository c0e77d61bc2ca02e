from pathlib import Path

from seekchat.errors import NotFoundError
from seekchat.store import AttachmentStore, PromptStore, SessionStore
from seekchat.store.schema import Attachment, Message, SessionRecord


class LocalBackend:
    """ChatBackend served straight from the stores, without the HTTP server."""

    def __init__(self, data_dir: str | Path):
        self.sessions = SessionStore(data_dir)
        self.attachments = AttachmentStore(data_dir)
        self.prompt = PromptStore(data_dir)

    async def create_chat(self, chat_id: str, name: str) -> SessionRecord:
        return self.sessions.create(chat_id, name)

    async def save_chat(self, chat_id: str, name: str, messages: list[Message]) -> None:
        self.sessions.save(chat_id, name=name, messages=messages)

    async def load_chat(self, chat_id: str) -> list[Message]:
        return self.sessions.load(chat_id)

    async def load_chats(self) -> list[SessionRecord]:
        return self.sessions.list_all()

    async def delete_chat(self, chat_id: str) -> None:
        self.sessions.delete(chat_id)

    async def save_files(self, chat_id: str, files: list[Attachment]) -> None:
        self.attachments.save_all(chat_id, files)

    async def load_files(self, chat_id: str) -> list[Attachment]:
        return self.attachments.load_all(chat_id)

    async def delete_file(self, chat_id: str, name: str) -> None:
        if not self.attachments.delete_one(chat_id, name):
            raise NotFoundError(f"File {name} not found in chat {chat_id}")

    async def load_system_prompt(self) -> str:
        return self.prompt.load()

    async def save_system_prompt(self, text: str) -> None:
        self.prompt.save(text)

    async def aclose(self) -> None:
        return None
