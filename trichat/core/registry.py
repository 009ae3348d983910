from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Literal

from ..capabilities.interfaces import ProviderId
from .config import AppConfig

Status = Literal["up", "down"]
AuthScheme = Literal["bearer", "token_exchange"]

# secrets each provider needs before it can be called
REQUIRED_SECRETS: Dict[ProviderId, tuple[str, ...]] = {
    ProviderId.DOUBAO: ("doubao_api_key",),
    ProviderId.DEEPSEEK: ("deepseek_api_key",),
    ProviderId.WENXIN: ("wenxin_api_key", "wenxin_secret_key"),
}


@dataclass(frozen=True)
class ProviderState:
    name: ProviderId
    model: str
    auth: AuthScheme
    status: Status


class ProviderRegistry:
    """Read-only view of which providers exist and whether they are configured."""

    def __init__(self, cfg: AppConfig) -> None:
        missing = set(cfg.secrets.missing())
        models = {
            ProviderId.DOUBAO: cfg.doubao.model,
            ProviderId.DEEPSEEK: cfg.deepseek.model,
            ProviderId.WENXIN: cfg.wenxin.model,
        }
        self._items: Dict[ProviderId, ProviderState] = {}
        for pid in ProviderId:
            needed = REQUIRED_SECRETS[pid]
            self._items[pid] = ProviderState(
                name=pid,
                model=models[pid],
                auth="token_exchange" if len(needed) > 1 else "bearer",
                status="down" if missing.intersection(needed) else "up",
            )

    def snapshot(self) -> list[ProviderState]:
        return list(self._items.values())

    def get(self, name: ProviderId) -> ProviderState:
        return self._items[name]
