from __future__ import annotations

import uuid


def new_id() -> str:
    return uuid.uuid4().hex


def new_trace_id() -> str:
    """Short id used to correlate the log lines of one dispatch."""
    return new_id()[:12]
