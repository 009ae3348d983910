from __future__ import annotations

import logging
import time
from typing import AsyncIterator, Optional, Sequence

import httpx

from ..capabilities.interfaces import ChatAdapter, ChatMessage, ProviderId, UpstreamStream
from ..common.errors import ConfigurationError, InvalidProviderError, TransportError
from ..common.trace import new_trace_id
from ..modules.upstream import build_adapters
from .config import AppConfig

logger = logging.getLogger("trichat.dispatch")


def parse_provider(raw: object) -> ProviderId:
    try:
        return ProviderId(raw)
    except ValueError:
        raise InvalidProviderError(f"Invalid model: {raw!r}") from None


class Dispatcher:
    """Dispatcher: one chat request -> one provider adapter -> raw upstream body.

    Every call is independent: no state is written after construction, so any
    number of dispatches (typically three per user turn) can run concurrently.
    Lifecycle of a call: not started -> upstream call issued -> relaying ->
    closed. There is no retry; any failure is terminal for that call.
    """

    def __init__(
        self,
        cfg: AppConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        adapters: Optional[dict[ProviderId, ChatAdapter]] = None,
    ) -> None:
        self.cfg = cfg
        self.adapters = adapters if adapters is not None else build_adapters(cfg, transport)

    def check_configured(self) -> None:
        missing = self.cfg.secrets.missing()
        if missing:
            raise ConfigurationError("API keys not configured", missing=missing)

    async def handle(self, provider: object, messages: Sequence[ChatMessage]) -> UpstreamStream:
        """Validate, then open the upstream stream for ``provider``.

        Raises InvalidProviderError / ConfigurationError before any network
        I/O; UpstreamError / CredentialError / TransportError from the call.
        """
        pid = parse_provider(provider)
        self.check_configured()
        adapter = self.adapters[pid]

        trace_id = new_trace_id()
        started = time.monotonic()
        logger.info("[%s] %s: dispatching %d message(s)", trace_id, pid.value, len(messages))
        try:
            upstream = await adapter.invoke(messages)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("[%s] %s: upstream unreachable: %s", trace_id, pid.value, exc)
            raise TransportError(f"{pid.value} upstream unreachable: {exc!s}") from exc
        logger.info(
            "[%s] %s: upstream HTTP %s after %.0f ms",
            trace_id,
            pid.value,
            upstream.status_code,
            (time.monotonic() - started) * 1000,
        )
        return upstream

    async def pipe(self, upstream: UpstreamStream) -> AsyncIterator[bytes]:
        """Forward raw upstream bytes; always releases the upstream connection.

        A mid-stream read failure is logged and re-raised so the outbound
        response is aborted rather than ending cleanly.
        """
        sent = 0
        try:
            async for chunk in upstream.aiter_bytes():
                sent += len(chunk)
                yield chunk
        except httpx.HTTPError as exc:
            logger.warning("%s: stream dropped after %d bytes: %s", upstream.provider.value, sent, exc)
            raise
        finally:
            await upstream.aclose()
        logger.info("%s: stream closed after %d bytes", upstream.provider.value, sent)
