from typing import Literal

from pydantic import BaseModel, Field


class GenerateRequest(BaseModel):
    prompt: str = Field(min_length=1)
    conversation_id: str | None = None
    message_id: str | None = None
    model: str | None = None


class ConversationCreate(BaseModel):
    title: str | None = None


class ConversationUpdate(BaseModel):
    title: str = Field(min_length=1)


class MessageCreate(BaseModel):
    conversation_id: str
    role: Literal["user", "assistant"]
    content: str = ""
    experiment_id: str | None = None


class MessageUpdate(BaseModel):
    content: str | None = None
    experiment_id: str | None = None
    html_content: str | None = None
    css_content: str | None = None
    js_content: str | None = None
    title: str | None = None


class ConversationOut(BaseModel):
    id: str
    title: str
    created_at: str
    updated_at: str


class MessageOut(BaseModel):
    id: str
    conversation_id: str
    role: str
    content: str
    experiment_id: str | None
    html_content: str | None
    css_content: str | None
    js_content: str | None
    title: str | None
    is_conversation_root: bool
    created_at: str
    updated_at: str


class ExperimentOut(BaseModel):
    experiment_id: str
    title: str | None
    html_content: str | None
