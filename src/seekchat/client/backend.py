from typing import Protocol, runtime_checkable

from seekchat.store.schema import Attachment, Message, SessionRecord


@runtime_checkable
class ChatBackend(Protocol):
    """Persistence operations the client needs, over HTTP or in-process."""

    async def create_chat(self, chat_id: str, name: str) -> SessionRecord: ...

    async def save_chat(self, chat_id: str, name: str, messages: list[Message]) -> None: ...

    async def load_chat(self, chat_id: str) -> list[Message]: ...

    async def load_chats(self) -> list[SessionRecord]: ...

    async def delete_chat(self, chat_id: str) -> None: ...

    async def save_files(self, chat_id: str, files: list[Attachment]) -> None: ...

    async def load_files(self, chat_id: str) -> list[Attachment]: ...

    async def delete_file(self, chat_id: str, name: str) -> None: ...

    async def load_system_prompt(self) -> str: ...

    async def save_system_prompt(self, text: str) -> None: ...

    async def aclose(self) -> None: ...
