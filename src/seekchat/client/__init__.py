from seekchat.client.api import StoreClient
from seekchat.client.backend import ChatBackend
from seekchat.client.context import ChatContext, TurnResult, TurnState
from seekchat.client.directory import SessionDirectory
from seekchat.client.local import LocalBackend
from seekchat.client.orchestrator import TurnOrchestrator, build_outbound_messages

__all__ = [
    "ChatBackend",
    "ChatContext",
    "LocalBackend",
    "SessionDirectory",
    "StoreClient",
    "TurnOrchestrator",
    "TurnResult",
    "TurnState",
    "build_outbound_messages",
]
