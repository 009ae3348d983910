from __future__ import annotations

import codecs
import json
import logging
from typing import AsyncIterable, AsyncIterator, Iterator, Optional

from ..capabilities.interfaces import End, Error, StreamEvent, TokenFragment
from ..common.errors import DecodeError, TransportError

logger = logging.getLogger("trichat.relay")

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class RecordSplitter:
    """Incremental bytes -> newline-delimited records.

    Owns the two pieces of state that must survive a chunk boundary:
    the UTF-8 decoder (holds an incomplete multi-byte sequence) and the
    unterminated tail of the last line.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._tail = ""

    def feed(self, chunk: bytes) -> Iterator[str]:
        text = self._tail + self._decoder.decode(chunk)
        *lines, self._tail = text.split("\n")
        for line in lines:
            record = line.rstrip("\r")
            if record.strip():
                yield record

    def flush(self) -> Iterator[str]:
        text = self._tail + self._decoder.decode(b"", final=True)
        self._tail = ""
        record = text.rstrip("\r")
        if record.strip():
            yield record


def extract_increment(payload: dict) -> str:
    """Pull the text delta out of one decoded record.

    Two shapes are known:
    - OpenAI style (doubao, deepseek): ``choices[0].delta.content``
    - Wenxin: top-level ``result``
    """
    choices = payload.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        delta = choices[0].get("delta")
        if isinstance(delta, dict):
            content = delta.get("content")
            if isinstance(content, str) and content:
                return content
    result = payload.get("result")
    if isinstance(result, str) and result:
        return result
    return ""


def decode_record(record: str) -> Optional[str]:
    """Return the text increment of a record, or None if it carries none.

    Raises DecodeError for a ``data:`` record whose payload is not a JSON object.
    """
    if not record.startswith(DATA_PREFIX):
        return None
    payload = record[len(DATA_PREFIX):].strip()
    if not payload or payload == DONE_SENTINEL:
        return None
    try:
        obj = json.loads(payload)
    except ValueError as exc:
        raise DecodeError(record, str(exc)) from exc
    if not isinstance(obj, dict):
        raise DecodeError(record, "payload is not an object")
    return extract_increment(obj) or None


async def relay(chunks: AsyncIterable[bytes], *, label: str = "") -> AsyncIterator[StreamEvent]:
    """Turn an upstream byte stream into TokenFragment* (End | Error).

    Fragments are yielded as soon as the record completing them arrives; the
    next chunk is only pulled when the consumer asks for the next event.
    ``[DONE]`` is skipped; only the stream closing produces End.
    """
    splitter = RecordSplitter()

    def _fragments(records: Iterator[str]) -> Iterator[TokenFragment]:
        for record in records:
            try:
                text = decode_record(record)
            except DecodeError as exc:
                logger.debug("%s skipping record: %s", label, exc)
                continue
            if text:
                yield TokenFragment(text)

    try:
        async for chunk in chunks:
            for fragment in _fragments(splitter.feed(chunk)):
                yield fragment
    except Exception as exc:  # noqa: BLE001
        err = TransportError(f"stream interrupted: {exc!s}" if str(exc) else "stream interrupted")
        logger.warning("%s %s (%s)", label, err.message, type(exc).__name__)
        yield Error(err.message)
        return

    for fragment in _fragments(splitter.flush()):
        yield fragment
    yield End()


async def collect(events: AsyncIterable[StreamEvent]) -> list[StreamEvent]:
    """Drain a relay into a list (for tests and the CLI)."""
    return [event async for event in events]
