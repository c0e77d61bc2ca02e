from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from seekchat.errors import ValidationError

_RESERVED_NAMES = {".", ".."}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def check_key(value: str, what: str = "key") -> str:
    """Reject anything that is not a single, safe path component."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{what} must be a non-empty string")
    if value in _RESERVED_NAMES or "/" in value or "\\" in value or "\x00" in value:
        raise ValidationError(f"invalid {what}: {value!r}")
    return value


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(BaseModel):
    role: Role
    content: str

    def to_api(self) -> dict:
        return {"role": self.role.value, "content": self.content}


class Attachment(BaseModel):
    name: str
    content: str

    @field_validator("name")
    @classmethod
    def _safe_name(cls, value: str) -> str:
        try:
            return check_key(value, "attachment name")
        except ValidationError as e:
            raise ValueError(str(e)) from e


class SessionRecord(BaseModel):
    id: str
    name: str
    messages: list[Message] = Field(default_factory=list)
    created_at: str | None = None

    def sort_key(self) -> tuple[str, int, str]:
        created = self.created_at or created_from_id(self.id) or ""
        numeric = int(self.id) if self.id.isdigit() else -1
        return created, numeric, self.id


def created_from_id(session_id: str) -> str | None:
    if not session_id.isdigit():
        return None
    try:
        ts = datetime.fromtimestamp(int(session_id) / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
    return ts.isoformat()


def coerce_messages(messages) -> list[Message]:
    out: list[Message] = []
    for raw in messages or []:
        if isinstance(raw, Message):
            out.append(raw)
            continue
        try:
            out.append(Message.model_validate(raw))
        except Exception as e:
            raise ValidationError(f"invalid message: {e}") from e
    return out


def coerce_attachments(files) -> list[Attachment]:
    out: list[Attachment] = []
    for raw in files or []:
        if isinstance(raw, Attachment):
            out.append(raw)
            continue
        try:
            out.append(Attachment.model_validate(raw))
        except Exception as e:
            raise ValidationError(f"invalid attachment: {e}") from e
    return out
