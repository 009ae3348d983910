from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .capabilities.interfaces import ChatMessage

Role = Literal["user", "assistant"]


# -------------------------
# HTTP request / responses
# -------------------------

class WireMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str

    def to_domain(self) -> ChatMessage:
        return ChatMessage(role=self.role, content=self.content)


class ChatRequest(BaseModel):
    """Body of POST /v1/chat-with-models.

    ``model`` stays a plain string here; it is checked against the provider
    enum by the dispatcher so an unknown value gets the same error shape as
    every other fail-fast condition.
    """

    model_config = ConfigDict(populate_by_name=True)

    messages: List[WireMessage]
    model: str
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")

    def domain_messages(self) -> list[ChatMessage]:
        return [m.to_domain() for m in self.messages]


class ErrorBody(BaseModel):
    error: str


class HealthBody(BaseModel):
    status: Literal["ok"] = "ok"
    service: str = "trichat"
    time_utc: str


class ProviderItem(BaseModel):
    name: str
    model: str
    auth: str
    status: Literal["up", "down"]


class ProvidersBody(BaseModel):
    items: List[ProviderItem]
