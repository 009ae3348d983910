from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

from ..capabilities.interfaces import ProviderId, TranscriptSink
from ..common.trace import new_id


@dataclass(frozen=True)
class TranscriptRow:
    conversation_id: str
    role: str
    content: str
    provider: Optional[ProviderId] = None


class InMemoryTranscript(TranscriptSink):
    """Process-local transcript store. Nothing survives a restart."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rows: dict[str, list[TranscriptRow]] = {}

    def create_conversation(self) -> str:
        cid = new_id()
        with self._lock:
            self._rows[cid] = []
        return cid

    def append(self, conversation_id: str, role: str, content: str, provider: Optional[ProviderId] = None) -> None:
        with self._lock:
            if conversation_id not in self._rows:
                raise KeyError(f"unknown conversation: {conversation_id}")
            self._rows[conversation_id].append(
                TranscriptRow(conversation_id=conversation_id, role=role, content=content, provider=provider)
            )

    def list_messages(self, conversation_id: str) -> list[TranscriptRow]:
        with self._lock:
            return list(self._rows.get(conversation_id, []))
