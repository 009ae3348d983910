from __future__ import annotations

import json
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, StreamingResponse
from pydantic import ValidationError

from ..common.errors import BadRequestError
from ..core.orchestrator import Dispatcher
from ..core.registry import ProviderRegistry
from ..models import ChatRequest, HealthBody, ProviderItem, ProvidersBody

router = APIRouter()

PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


@router.get("/health")
def health_check():
    return HealthBody(time_utc=_utc_now_iso()).model_dump()


@router.get("/providers")
def providers(request: Request):
    registry: ProviderRegistry = request.app.state.registry
    items = [
        ProviderItem(name=s.name.value, model=s.model, auth=s.auth, status=s.status)
        for s in registry.snapshot()
    ]
    return ProvidersBody(items=items).model_dump()


@router.options("/chat-with-models")
def chat_preflight():
    # non-CORS OPTIONS (no Access-Control-Request-Method) lands here
    return PlainTextResponse("ok", headers=PREFLIGHT_HEADERS)


@router.post("/chat-with-models")
async def chat_with_models(request: Request):
    # body parsed by hand: every malformed request gets the {"error": ...} shape
    raw = await request.body()
    try:
        obj = json.loads(raw or b"null")
    except ValueError as exc:
        raise BadRequestError(f"invalid JSON body: {exc}") from exc
    if not isinstance(obj, dict):
        raise BadRequestError("request body must be a JSON object")
    try:
        body = ChatRequest.model_validate(obj)
    except ValidationError as exc:
        raise BadRequestError(f"invalid request: {exc.errors()[0].get('msg', 'validation failed')}") from exc

    dispatcher: Dispatcher = request.app.state.dispatcher
    upstream = await dispatcher.handle(body.model, body.domain_messages())
    return StreamingResponse(
        dispatcher.pipe(upstream),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
