import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from seekchat.server.schemas import (
    CreateChatRequest,
    SaveChatRequest,
    SaveFilesRequest,
    StatusResponse,
    SystemPromptBody,
)
from seekchat.store import AttachmentStore, PromptStore, SessionStore
from seekchat.store.schema import Attachment, Message, SessionRecord

logger = logging.getLogger(__name__)

router = APIRouter()


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_attachment_store(request: Request) -> AttachmentStore:
    return request.app.state.attachment_store


def get_prompt_store(request: Request) -> PromptStore:
    return request.app.state.prompt_store


@router.post("/create-chat", response_model=SessionRecord, status_code=status.HTTP_201_CREATED)
def create_chat(body: CreateChatRequest, store: SessionStore = Depends(get_session_store)):
    """Create an empty session; 409 if the id is taken."""
    return store.create(body.chatId, body.name)


@router.post("/save-chat", response_model=StatusResponse)
def save_chat(body: SaveChatRequest, store: SessionStore = Depends(get_session_store)):
    store.save(body.chatId, name=body.name, messages=body.messages)
    return StatusResponse(message="Chat saved successfully")


@router.get("/load-chat/{chat_id}", response_model=list[Message])
def load_chat(chat_id: str, store: SessionStore = Depends(get_session_store)):
    """Messages of a session, or an empty list for an unknown id."""
    return store.load(chat_id)


@router.get("/load-chats", response_model=list[SessionRecord])
def load_chats(store: SessionStore = Depends(get_session_store)):
    return store.list_all()


@router.delete("/delete-chat/{chat_id}", response_model=StatusResponse)
def delete_chat(chat_id: str, store: SessionStore = Depends(get_session_store)):
    store.delete(chat_id)
    return StatusResponse(message="Chat deleted successfully")


@router.post("/save-files/{chat_id}", response_model=StatusResponse)
def save_files(
    chat_id: str,
    body: SaveFilesRequest,
    store: AttachmentStore = Depends(get_attachment_store),
):
    saved = store.save_all(chat_id, body.files)
    logger.info(f"Saved {len(saved)} files for chat {chat_id}")
    return StatusResponse(message="Files saved successfully")


@router.get("/load-files/{chat_id}", response_model=list[Attachment])
def load_files(chat_id: str, store: AttachmentStore = Depends(get_attachment_store)):
    return store.load_all(chat_id)


@router.delete("/delete-file/{chat_id}/{file_name}", response_model=StatusResponse)
def delete_file(
    chat_id: str,
    file_name: str,
    store: AttachmentStore = Depends(get_attachment_store),
):
    if not store.delete_one(chat_id, file_name):
        raise HTTPException(status_code=404, detail="File not found")
    return StatusResponse(message="File deleted successfully")


@router.get("/load-system-prompt", response_model=SystemPromptBody)
def load_system_prompt(store: PromptStore = Depends(get_prompt_store)):
    return SystemPromptBody(systemPrompt=store.load())


@router.post("/save-system-prompt", response_model=StatusResponse)
def save_system_prompt(body: SystemPromptBody, store: PromptStore = Depends(get_prompt_store)):
    store.save(body.systemPrompt)
    logger.info("System prompt saved")
    return StatusResponse(message="System prompt saved successfully")
