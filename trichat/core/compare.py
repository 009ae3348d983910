from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

import httpx

from ..capabilities.interfaces import ChatMessage, Error, ProviderId, TokenFragment, TranscriptSink
from ..common.errors import ApiError, TransportError, UpstreamError
from ..modules.relay import relay

logger = logging.getLogger("trichat.compare")

FAILURE_TEXT = "An error occurred, please try again later."
CHAT_PATH = "/v1/chat-with-models"


@dataclass
class PaneState:
    """Everything one provider's pane shows. Owned by exactly one call."""

    provider: ProviderId
    messages: list[ChatMessage] = field(default_factory=list)
    streaming_content: str = ""
    is_loading: bool = False


class ComparisonSession:
    """Sends each prompt to all three providers at once, one pane per provider.

    The three calls of a turn run as independent coroutines joined with
    ``asyncio.gather``. Each writes only to its own PaneState, so a slow or
    failing provider never changes what the other panes show.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        path: str = CHAT_PATH,
        sink: Optional[TranscriptSink] = None,
        on_update: Optional[Callable[[PaneState], None]] = None,
    ) -> None:
        self.client = client
        self.path = path
        self.sink = sink
        self.on_update = on_update
        self.conversation_id: Optional[str] = None
        self.panes: Dict[ProviderId, PaneState] = {pid: PaneState(provider=pid) for pid in ProviderId}

    @property
    def is_loading(self) -> bool:
        return any(p.is_loading for p in self.panes.values())

    def _notify(self, pane: PaneState) -> None:
        if self.on_update is not None:
            self.on_update(pane)

    def _record(self, role: str, content: str, provider: Optional[ProviderId] = None) -> None:
        if self.sink is None or not self.conversation_id:
            return
        try:
            self.sink.append(self.conversation_id, role, content, provider)
        except Exception:  # noqa: BLE001
            # transcript storage is best-effort; the panes already hold the text
            logger.exception("failed to store %s message", role)

    async def send(self, prompt: str) -> Dict[ProviderId, PaneState]:
        text = prompt.strip()
        if not text:
            return self.panes

        if self.sink is not None and self.conversation_id is None:
            self.conversation_id = self.sink.create_conversation()
        self._record("user", text)

        user_message = ChatMessage(role="user", content=text)
        calls = []
        for pane in self.panes.values():
            pane.messages.append(user_message)
            pane.is_loading = True
            self._notify(pane)
            # snapshot now: history must not change while the call is in flight
            calls.append(self._call(pane, list(pane.messages)))

        await asyncio.gather(*calls)
        return self.panes

    async def _call(self, pane: PaneState, history: list[ChatMessage]) -> None:
        provider = pane.provider.value
        body = {
            "messages": [m.to_wire() for m in history],
            "model": provider,
            "conversationId": self.conversation_id,
        }
        parts: list[str] = []
        try:
            async with self.client.stream("POST", self.path, json=body) as resp:
                if not resp.is_success:
                    detail = (await resp.aread()).decode("utf-8", errors="replace")
                    raise UpstreamError(resp.status_code, provider, detail)

                async for event in relay(resp.aiter_bytes(), label=provider):
                    if isinstance(event, TokenFragment):
                        parts.append(event.text)
                        pane.streaming_content = "".join(parts)
                        self._notify(pane)
                    elif isinstance(event, Error):
                        raise TransportError(event.message)
        except (ApiError, httpx.HTTPError) as exc:
            logger.warning("%s call failed: %s", provider, exc)
            self._finish(pane, FAILURE_TEXT)
            return

        full = "".join(parts)
        if full:
            self._record("assistant", full, pane.provider)
        self._finish(pane, full)

    def _finish(self, pane: PaneState, content: str) -> None:
        pane.messages.append(ChatMessage(role="assistant", content=content))
        pane.streaming_content = ""
        pane.is_loading = False
        self._notify(pane)

    def clear(self) -> None:
        for pid in ProviderId:
            self.panes[pid] = PaneState(provider=pid)
        self.conversation_id = None
