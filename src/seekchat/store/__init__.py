from seekchat.store.attachments import AttachmentStore
from seekchat.store.prompt import PromptStore
from seekchat.store.schema import Attachment, Message, Role, SessionRecord
from seekchat.store.sessions import SessionStore

__all__ = [
    "Attachment",
    "AttachmentStore",
    "Message",
    "PromptStore",
    "Role",
    "SessionRecord",
    "SessionStore",
]
