import logging
import shutil
from pathlib import Path

from common.jsonio import atomic_write_json, load_json
from seekchat.errors import ConflictError, StorageError, ValidationError
from seekchat.store.schema import (
    Message,
    SessionRecord,
    check_key,
    coerce_messages,
    created_from_id,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

CHAT_FILE = "chat.json"


def chats_root(data_dir: str | Path) -> Path:
    return Path(data_dir) / "chats"


class SessionStore:
    """One JSON record per session under `<data_dir>/chats/<id>/chat.json`."""

    def __init__(self, data_dir: str | Path):
        self.root = chats_root(data_dir)
        self.root.mkdir(parents=True, exist_ok=True)

    def _session_dir(self, session_id: str) -> Path:
        return self.root / check_key(session_id, "session id")

    def _chat_path(self, session_id: str) -> Path:
        return self._session_dir(session_id) / CHAT_FILE

    def _read(self, session_id: str) -> SessionRecord | None:
        path = self._chat_path(session_id)
        try:
            data = load_json(path)
        except OSError as e:
            raise StorageError(f"Failed to read session {session_id}: {e}") from e
        if not data:
            return None
        try:
            return SessionRecord.model_validate(data)
        except Exception as e:
            logger.warning(f"Ignoring unreadable session record {path}: {e}")
            return None

    def _write(self, record: SessionRecord) -> None:
        try:
            atomic_write_json(self._chat_path(record.id), record.model_dump(mode="json"))
        except OSError as e:
            raise StorageError(f"Failed to write session {record.id}: {e}") from e

    def exists(self, session_id: str) -> bool:
        return self._chat_path(session_id).exists()

    def create(self, session_id: str, name: str) -> SessionRecord:
        if not name or not name.strip():
            raise ValidationError("name must not be empty")
        if self.exists(session_id):
            raise ConflictError(f"Session {session_id} already exists")
        record = SessionRecord(
            id=session_id, name=name, messages=[], created_at=utc_now_iso()
        )
        self._write(record)
        logger.info(f"Created session {session_id} ({name})")
        return record

    def save(
        self,
        session_id: str,
        name: str | None = None,
        messages: list[Message] | list[dict] | None = None,
    ) -> SessionRecord:
        """Upsert a session.

        A missing or empty `name` keeps the stored name, `messages=None` keeps
        the stored transcript. Anything else replaces the stored value.
        """
        existing = self._read(session_id)
        if existing is None and not name:
            raise ValidationError(f"name is required to create session {session_id}")

        created_at = None
        if existing is not None:
            created_at = existing.created_at or created_from_id(session_id)

        record = SessionRecord(
            id=session_id,
            name=name or existing.name,
            messages=(
                coerce_messages(messages)
                if messages is not None
                else list(existing.messages if existing else [])
            ),
            created_at=created_at or utc_now_iso(),
        )
        self._write(record)
        logger.debug(f"Saved session {session_id}: {len(record.messages)} messages")
        return record

    def get(self, session_id: str) -> SessionRecord | None:
        return self._read(session_id)

    def load(self, session_id: str) -> list[Message]:
        record = self._read(session_id)
        if record is None:
            return []
        return list(record.messages)

    def list_all(self) -> list[SessionRecord]:
        records: list[SessionRecord] = []
        try:
            entries = sorted(p for p in self.root.iterdir() if p.is_dir())
        except OSError as e:
            raise StorageError(f"Failed to list sessions: {e}") from e
        for entry in entries:
            try:
                record = self._read(entry.name)
            except ValidationError:
                continue
            if record is not None:
                records.append(record)
        return records

    def delete(self, session_id: str) -> None:
        session_dir = self._session_dir(session_id)
        if not session_dir.exists():
            return
        try:
            shutil.rmtree(session_dir)
        except OSError as e:
            raise StorageError(f"Failed to delete session {session_id}: {e}") from e
        logger.info(f"Deleted session {session_id}")
