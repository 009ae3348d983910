from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Literal, Optional, Protocol, Sequence, Union


class ProviderId(str, Enum):
    """The closed set of upstream providers a turn is fanned out to."""

    DOUBAO = "doubao"
    DEEPSEEK = "deepseek"
    WENXIN = "wenxin"


@dataclass(frozen=True)
class ChatMessage:
    """A single conversation turn. Providers receive these in chronological order."""

    role: Literal["user", "assistant"]
    content: str

    def to_wire(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


# -------------------------
# Stream events
# -------------------------

@dataclass(frozen=True)
class TokenFragment:
    text: str


@dataclass(frozen=True)
class End:
    pass


@dataclass(frozen=True)
class Error:
    message: str


StreamEvent = Union[TokenFragment, End, Error]


def is_terminal(event: StreamEvent) -> bool:
    return isinstance(event, (End, Error))


# -------------------------
# Collaborator contracts
# -------------------------

class UpstreamStream(Protocol):
    """An open upstream response whose body has not been read yet."""

    provider: ProviderId
    status_code: int

    def aiter_bytes(self) -> AsyncIterator[bytes]:
        ...

    async def aclose(self) -> None:
        ...


class ChatAdapter(Protocol):
    """Provider adapter: canonical messages -> provider request -> raw stream."""

    provider: ProviderId

    async def invoke(self, messages: Sequence[ChatMessage]) -> UpstreamStream:
        ...


class TranscriptSink(Protocol):
    """Conversation storage lives outside this service; this is all we need from it."""

    def create_conversation(self) -> str:
        ...

    def append(self, conversation_id: str, role: str, content: str, provider: Optional[ProviderId] = None) -> None:
        ...
