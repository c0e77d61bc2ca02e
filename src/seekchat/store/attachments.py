import logging
from pathlib import Path

from common.jsonio import atomic_write_json, load_json
from seekchat.errors import StorageError
from seekchat.store.schema import Attachment, check_key, coerce_attachments
from seekchat.store.sessions import chats_root

logger = logging.getLogger(__name__)

ATTACHMENTS_FILE = "attachments.json"


def dedupe_by_name(files: list[Attachment]) -> list[Attachment]:
    """Collapse repeated names: the last content wins, the first position is kept."""
    by_name: dict[str, Attachment] = {}
    for item in files:
        by_name[item.name] = item
    return list(by_name.values())


class AttachmentStore:
    """Attachment set of a session, one record at `<data_dir>/chats/<id>/attachments.json`."""

    def __init__(self, data_dir: str | Path):
        self.root = chats_root(data_dir)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, session_id: str) -> Path:
        return self.root / check_key(session_id, "session id") / ATTACHMENTS_FILE

    def _write(self, session_id: str, files: list[Attachment]) -> None:
        payload = [item.model_dump() for item in files]
        try:
            atomic_write_json(self._path(session_id), payload)
        except OSError as e:
            raise StorageError(f"Failed to write attachments for {session_id}: {e}") from e

    def save_all(self, session_id: str, files) -> list[Attachment]:
        stored = dedupe_by_name(coerce_attachments(files))
        self._write(session_id, stored)
        logger.debug(f"Saved {len(stored)} attachments for session {session_id}")
        return stored

    def load_all(self, session_id: str) -> list[Attachment]:
        path = self._path(session_id)
        try:
            data = load_json(path)
        except OSError as e:
            raise StorageError(f"Failed to read attachments for {session_id}: {e}") from e
        if not data:
            return []
        try:
            return coerce_attachments(data)
        except Exception as e:
            logger.warning(f"Ignoring unreadable attachment record {path}: {e}")
            return []

    def delete_one(self, session_id: str, name: str) -> bool:
        check_key(name, "attachment name")
        current = self.load_all(session_id)
        remaining = [item for item in current if item.name != name]
        if len(remaining) == len(current):
            return False
        self._write(session_id, remaining)
        logger.debug(f"Deleted attachment {name} from session {session_id}")
        return True
