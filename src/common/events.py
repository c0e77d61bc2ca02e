from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, TypeAlias


@dataclass(frozen=True, slots=True)
class TurnStateEvent:
    session_id: str | None
    state: str


@dataclass(frozen=True, slots=True)
class AssistantDeltaEvent:
    text: str
    partial: str = ""


@dataclass(frozen=True, slots=True)
class AssistantMessageEvent:
    content: str


@dataclass(frozen=True, slots=True)
class StreamFailedEvent:
    content: str
    error: str


@dataclass(frozen=True, slots=True)
class SessionCreatedEvent:
    session_id: str
    name: str


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    message: str
    source: str | None = None


Event: TypeAlias = (
    TurnStateEvent
    | AssistantDeltaEvent
    | AssistantMessageEvent
    | StreamFailedEvent
    | SessionCreatedEvent
    | ErrorEvent
)
EventCallback: TypeAlias = Callable[[Event], None] | None


class EventEmitter:
    def __init__(self, callback: EventCallback = None):
        self._callback = callback

    def emit(self, event: Event) -> None:
        if self._callback is not None:
            self._callback(event)
