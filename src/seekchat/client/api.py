import logging
from urllib.parse import quote

import httpx

from seekchat.errors import (
    ChatError,
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from seekchat.store.schema import (
    Attachment,
    Message,
    SessionRecord,
    coerce_attachments,
    coerce_messages,
)

logger = logging.getLogger(__name__)


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return response.text


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    detail = _detail(response)
    code = response.status_code
    if code == 404:
        raise NotFoundError(detail)
    if code == 409:
        raise ConflictError(detail)
    if code in (400, 422):
        raise ValidationError(detail)
    if code >= 500:
        raise StorageError(f"Server error {code}: {detail}")
    raise ChatError(f"Unexpected status {code}: {detail}")


def _segment(value: str) -> str:
    return quote(value, safe="")


class StoreClient:
    """ChatBackend talking to the persistence server over HTTP."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    async def __aenter__(self) -> "StoreClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise StorageError(f"Persistence server unreachable: {e}") from e
        _raise_for_status(response)
        return response

    async def create_chat(self, chat_id: str, name: str) -> SessionRecord:
        response = await self._request(
            "POST", "/create-chat", json={"chatId": chat_id, "name": name}
        )
        return SessionRecord.model_validate(response.json())

    async def save_chat(self, chat_id: str, name: str, messages: list[Message]) -> None:
        payload = {
            "chatId": chat_id,
            "name": name,
            "messages": [m.model_dump(mode="json") for m in coerce_messages(messages)],
        }
        await self._request("POST", "/save-chat", json=payload)

    async def load_chat(self, chat_id: str) -> list[Message]:
        response = await self._request("GET", f"/load-chat/{_segment(chat_id)}")
        return coerce_messages(response.json())

    async def load_chats(self) -> list[SessionRecord]:
        response = await self._request("GET", "/load-chats")
        return [SessionRecord.model_validate(item) for item in response.json()]

    async def delete_chat(self, chat_id: str) -> None:
        await self._request("DELETE", f"/delete-chat/{_segment(chat_id)}")

    async def save_files(self, chat_id: str, files: list[Attachment]) -> None:
        payload = {"files": [f.model_dump() for f in coerce_attachments(files)]}
        await self._request("POST", f"/save-files/{_segment(chat_id)}", json=payload)

    async def load_files(self, chat_id: str) -> list[Attachment]:
        response = await self._request("GET", f"/load-files/{_segment(chat_id)}")
        return coerce_attachments(response.json())

    async def delete_file(self, chat_id: str, name: str) -> None:
        await self._request(
            "DELETE", f"/delete-file/{_segment(chat_id)}/{_segment(name)}"
        )

    async def load_system_prompt(self) -> str:
        response = await self._request("GET", "/load-system-prompt")
        return str(response.json().get("systemPrompt") or "")

    async def save_system_prompt(self, text: str) -> None:
        await self._request("POST", "/save-system-prompt", json={"systemPrompt": text})
