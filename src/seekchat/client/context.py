from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from common.cancel import CancelToken
from seekchat.store.schema import Attachment, Message, SessionRecord


class TurnState(str, Enum):
    IDLE = "idle"
    AWAITING_STREAM_START = "awaiting_stream_start"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class ChatContext:
    """Working copy of one session as the client sees it.

    `messages` may run one user turn ahead of the store while a turn is in
    flight; `live` holds the partial assistant answer; `notices` collects
    client-only error lines that are shown but never persisted.
    """

    model: str
    session_id: str | None = None
    name: str | None = None
    messages: list[Message] = field(default_factory=list)
    attachments: list[Attachment] = field(default_factory=list)
    notices: list[Message] = field(default_factory=list)
    live: str = ""
    state: TurnState = TurnState.IDLE
    cancel_token: CancelToken | None = None

    @property
    def has_session(self) -> bool:
        return self.session_id is not None

    @property
    def busy(self) -> bool:
        return self.state != TurnState.IDLE

    def adopt(self, record: SessionRecord, attachments: list[Attachment] | None = None) -> None:
        self.session_id = record.id
        self.name = record.name
        self.messages = list(record.messages)
        self.attachments = list(attachments or [])
        self.notices = []
        self.live = ""

    def reset(self) -> None:
        self.session_id = None
        self.name = None
        self.messages = []
        self.attachments = []
        self.notices = []
        self.live = ""


@dataclass(frozen=True, slots=True)
class TurnResult:
    state: TurnState
    content: str = ""
    saved: bool = True
    error: str | None = None
