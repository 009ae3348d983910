from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger("trichat.config")


class ProviderConfig(BaseModel):
    """One upstream chat-completions endpoint."""

    url: str
    model: str
    timeout_s: float = 60.0


class WenxinConfig(ProviderConfig):
    """Wenxin carries its access token as a query parameter, fetched from ``token_url``."""

    url: str = "https://aip.baidubce.com/rpc/2.0/ai_custom/v1/wenxinworkshop/chat/completions"
    model: str = "ERNIE-Bot-4"
    token_url: str = "https://aip.baidubce.com/oauth/2.0/token"


def _doubao_default() -> ProviderConfig:
    return ProviderConfig(url="https://ark.cn-beijing.volces.com/api/v3/chat/completions", model="doubao-pro-32k")


def _deepseek_default() -> ProviderConfig:
    return ProviderConfig(url="https://api.deepseek.com/v1/chat/completions", model="deepseek-chat")


class Secrets(BaseModel):
    doubao_api_key: Optional[str] = None
    deepseek_api_key: Optional[str] = None
    wenxin_api_key: Optional[str] = None
    wenxin_secret_key: Optional[str] = None

    def missing(self) -> list[str]:
        """Names of the secrets that are unset or blank."""
        return [name for name, value in self.model_dump().items() if not (value or "").strip()]


class AppConfig(BaseModel):
    """Process-wide configuration, read-only once the app is built."""

    doubao: ProviderConfig = Field(default_factory=_doubao_default)
    deepseek: ProviderConfig = Field(default_factory=_deepseek_default)
    wenxin: WenxinConfig = Field(default_factory=WenxinConfig)
    secrets: Secrets = Field(default_factory=Secrets)
    log_level: str = "INFO"


# env var -> secrets field
SECRET_ENV = {
    "DOUBAO_API_KEY": "doubao_api_key",
    "DEEPSEEK_API_KEY": "deepseek_api_key",
    "WENXIN_API_KEY": "wenxin_api_key",
    "WENXIN_SECRET_KEY": "wenxin_secret_key",
}


class ConfigManager:
    """Load configuration: defaults < JSON file < environment variables.

    - The JSON file is optional; a missing file means defaults.
    - A corrupt or invalid file is logged and ignored, never fatal here.
      Missing secrets are reported per call by the dispatcher instead.
    """

    def __init__(self, path: Optional[str | Path] = None) -> None:
        repo_root = Path(__file__).resolve().parents[2]
        self.repo_root = repo_root
        self.path = Path(path) if path else None

    def _resolve_path(self) -> Path:
        raw = self.path or Path(os.getenv("TRICHAT_CONFIG_PATH", "config/trichat.json"))
        if not raw.is_absolute():
            raw = self.repo_root / raw
        return raw

    def _read_file(self, cfg_path: Path) -> dict:
        if not cfg_path.exists():
            return {}
        try:
            data = json.loads(cfg_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("ignoring unreadable config file %s: %s", cfg_path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("ignoring config file %s: top level is not an object", cfg_path)
            return {}
        return data

    @staticmethod
    def _section(data: dict, name: str) -> dict:
        """A file section that must be an object; anything else is dropped."""
        value = data.get(name)
        if value is None:
            return {}
        if not isinstance(value, dict):
            logger.warning("ignoring config section %r: expected an object, got %s", name, type(value).__name__)
            return {}
        return value

    def load(self) -> AppConfig:
        data = self._read_file(self._resolve_path())

        # secrets: environment wins over the file
        env_secrets: dict = {}
        for env_name, field in SECRET_ENV.items():
            value = os.getenv(env_name)
            if value is not None and value.strip():
                env_secrets[field] = value.strip()
        data["secrets"] = {**self._section(data, "secrets"), **env_secrets}

        defaults = AppConfig().model_dump()
        for name in ("doubao", "deepseek", "wenxin"):
            section = {**defaults[name], **self._section(data, name)}
            prefix = f"TRICHAT_{name.upper()}_"
            if os.getenv(prefix + "URL"):
                section["url"] = os.getenv(prefix + "URL")
            if os.getenv(prefix + "MODEL"):
                section["model"] = os.getenv(prefix + "MODEL")
            if os.getenv(prefix + "TIMEOUT_S"):
                try:
                    section["timeout_s"] = float(os.getenv(prefix + "TIMEOUT_S", "60"))
                except ValueError:
                    logger.warning("ignoring non-numeric %sTIMEOUT_S", prefix)
            if name == "wenxin" and os.getenv("TRICHAT_WENXIN_TOKEN_URL"):
                section["token_url"] = os.getenv("TRICHAT_WENXIN_TOKEN_URL")
            data[name] = section

        if os.getenv("TRICHAT_LOG_LEVEL"):
            data["log_level"] = os.getenv("TRICHAT_LOG_LEVEL", "INFO").strip().upper()

        try:
            return AppConfig.model_validate(data)
        except ValidationError as exc:
            logger.warning("invalid configuration, falling back to defaults: %s", exc)
            return AppConfig(secrets=Secrets(**env_secrets))
