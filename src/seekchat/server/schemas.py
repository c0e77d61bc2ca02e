from pydantic import BaseModel, Field

from seekchat.store.schema import Attachment, Message


class CreateChatRequest(BaseModel):
    chatId: str = Field(min_length=1)
    name: str = Field(min_length=1)


class SaveChatRequest(BaseModel):
    chatId: str = Field(min_length=1)
    name: str = Field(min_length=1)
    messages: list[Message]


class SaveFilesRequest(BaseModel):
    files: list[Attachment]


class SystemPromptBody(BaseModel):
    systemPrompt: str = ""


class StatusResponse(BaseModel):
    message: str
