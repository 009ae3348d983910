from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Sequence

import httpx

from ..capabilities.interfaces import ChatAdapter, ChatMessage, ProviderId
from ..common.errors import CredentialError, UpstreamError
from ..core.config import AppConfig, ProviderConfig, WenxinConfig

logger = logging.getLogger("trichat.upstream")


@dataclass
class OpenUpstream:
    """An upstream response with headers received and body still unread.

    Owns its client; ``aclose`` releases both.
    """

    provider: ProviderId
    status_code: int
    response: httpx.Response
    client: httpx.AsyncClient

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        async for chunk in self.response.aiter_bytes():
            yield chunk

    async def aclose(self) -> None:
        try:
            await self.response.aclose()
        finally:
            await self.client.aclose()


def _messages_payload(messages: Sequence[ChatMessage]) -> list[dict[str, str]]:
    return [m.to_wire() for m in messages]


async def open_stream(
    client: httpx.AsyncClient,
    provider: ProviderId,
    url: str,
    *,
    payload: dict,
    headers: Optional[dict[str, str]] = None,
    params: Optional[dict[str, str]] = None,
) -> OpenUpstream:
    """POST once and return as soon as the status line is in.

    Non-2xx is raised as UpstreamError after closing the response and the client.
    """
    try:
        request = client.build_request("POST", url, json=payload, headers=headers, params=params)
        resp = await client.send(request, stream=True)
    except BaseException:
        await client.aclose()
        raise

    if not resp.is_success:
        try:
            detail = (await resp.aread()).decode("utf-8", errors="replace")[:500]
        except httpx.HTTPError:
            detail = ""
        finally:
            await resp.aclose()
            await client.aclose()
        logger.warning("%s upstream returned HTTP %s", provider.value, resp.status_code)
        raise UpstreamError(resp.status_code, provider.value, detail)

    return OpenUpstream(provider=provider, status_code=resp.status_code, response=resp, client=client)


async def exchange_access_token(
    client: httpx.AsyncClient,
    token_url: str,
    api_key: str,
    secret_key: str,
) -> str:
    """获取文心一言的 access token（每次调用都重新换取，不缓存）。"""
    params = {
        "grant_type": "client_credentials",
        "client_id": api_key,
        "client_secret": secret_key,
    }
    try:
        resp = await client.get(token_url, params=params)
    except httpx.HTTPError as exc:
        raise CredentialError(f"access token exchange failed: {exc!s}") from exc

    try:
        data = resp.json()
    except ValueError as exc:
        raise CredentialError(f"access token exchange returned non-JSON (HTTP {resp.status_code})") from exc

    token = data.get("access_token") if isinstance(data, dict) else None
    if not isinstance(token, str) or not token:
        # the OAuth endpoint reports failures in-band
        reason = ""
        if isinstance(data, dict):
            reason = str(data.get("error_description") or data.get("error") or "")
        raise CredentialError("access token missing from exchange response" + (f": {reason}" if reason else ""))
    return token


class BearerChatAdapter(ChatAdapter):
    """OpenAI-compatible chat completions with a static bearer key (doubao, deepseek)."""

    def __init__(
        self,
        provider: ProviderId,
        cfg: ProviderConfig,
        api_key: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.provider = provider
        self.cfg = cfg
        self.api_key = api_key
        self.transport = transport

    async def invoke(self, messages: Sequence[ChatMessage]) -> OpenUpstream:
        client = httpx.AsyncClient(timeout=httpx.Timeout(self.cfg.timeout_s), transport=self.transport)
        payload = {
            "model": self.cfg.model,
            "messages": _messages_payload(messages),
            "stream": True,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        return await open_stream(client, self.provider, self.cfg.url, payload=payload, headers=headers)


class WenxinChatAdapter(ChatAdapter):
    """Wenxin: key+secret -> access token, token travels as ``?access_token=``."""

    provider = ProviderId.WENXIN

    def __init__(
        self,
        cfg: WenxinConfig,
        api_key: str,
        secret_key: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.cfg = cfg
        self.api_key = api_key
        self.secret_key = secret_key
        self.transport = transport

    async def invoke(self, messages: Sequence[ChatMessage]) -> OpenUpstream:
        client = httpx.AsyncClient(timeout=httpx.Timeout(self.cfg.timeout_s), transport=self.transport)
        try:
            token = await exchange_access_token(client, self.cfg.token_url, self.api_key, self.secret_key)
        except CredentialError:
            await client.aclose()
            raise

        # model is selected by the endpoint path; the body has no model field
        payload = {
            "messages": _messages_payload(messages),
            "stream": True,
        }
        return await open_stream(
            client,
            self.provider,
            self.cfg.url,
            payload=payload,
            headers={"Content-Type": "application/json"},
            params={"access_token": token},
        )


def build_adapters(
    cfg: AppConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict[ProviderId, ChatAdapter]:
    """One adapter per provider. Callers check ``cfg.secrets.missing()`` first."""
    s = cfg.secrets
    return {
        ProviderId.DOUBAO: BearerChatAdapter(ProviderId.DOUBAO, cfg.doubao, s.doubao_api_key or "", transport),
        ProviderId.DEEPSEEK: BearerChatAdapter(ProviderId.DEEPSEEK, cfg.deepseek, s.deepseek_api_key or "", transport),
        ProviderId.WENXIN: WenxinChatAdapter(cfg.wenxin, s.wenxin_api_key or "", s.wenxin_secret_key or "", transport),
    }
