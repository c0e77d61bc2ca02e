import logging
from pathlib import Path

from common.jsonio import atomic_write_text
from seekchat.errors import StorageError

logger = logging.getLogger(__name__)

PROMPT_FILE = "system_prompt.txt"


class PromptStore:
    def __init__(self, data_dir: str | Path):
        self.path = Path(data_dir) / PROMPT_FILE
        if not self.path.exists():
            self.save("")
            logger.info(f"Created {self.path}")

    def load(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""
        except OSError as e:
            raise StorageError(f"Failed to read system prompt: {e}") from e

    def save(self, text: str) -> None:
        try:
            atomic_write_text(self.path, text or "")
        except OSError as e:
            raise StorageError(f"Failed to write system prompt: {e}") from e

    def clear(self) -> None:
        self.save("")
