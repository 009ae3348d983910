from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Optional

# keys a .env file may set; everything else in the file is ignored
SECRET_KEYS = ("DOUBAO_API_KEY", "DEEPSEEK_API_KEY", "WENXIN_API_KEY", "WENXIN_SECRET_KEY")
ENV_PREFIX = "TRICHAT_"


def parse_env_line(raw: str) -> Optional[tuple[str, str]]:
    """Parse ``KEY=VALUE`` / ``export KEY=VALUE``; return None for blanks and comments."""
    line = raw.strip()
    if not line or line.startswith("#"):
        return None
    if line.startswith("export "):
        line = line[len("export "):].lstrip()
    key, sep, value = line.partition("=")
    key = key.strip()
    if not sep or not key:
        return None
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        value = value[1:-1]
    return key, value


def load_env_file(path: str | Path, *, override: bool = False, keys: Iterable[str] = SECRET_KEYS) -> bool:
    """Load allowed keys from a .env file into ``os.environ``.

    Only ``keys`` and ``TRICHAT_*`` names are taken. Existing process variables
    win unless ``override`` is set. Returns False when the file does not exist.
    """
    p = Path(path)
    if not p.is_file():
        return False

    allowed = set(keys)
    for raw in p.read_text(encoding="utf-8").splitlines():
        parsed = parse_env_line(raw)
        if parsed is None:
            continue
        key, value = parsed
        if key not in allowed and not key.startswith(ENV_PREFIX):
            continue
        if key in os.environ and not override:
            continue
        os.environ[key] = value
    return True


def load_env_auto(*, override: bool = False) -> Optional[Path]:
    """Try TRICHAT_ENV_FILE, then ./.env, then <repo>/.env; first hit wins."""
    candidates: list[Path] = []
    explicit = os.getenv("TRICHAT_ENV_FILE")
    if explicit:
        candidates.append(Path(explicit))
    candidates.append(Path.cwd() / ".env")
    # <repo>/trichat/common/dotenv.py -> parents[2] is <repo>
    candidates.append(Path(__file__).resolve().parents[2] / ".env")

    for candidate in candidates:
        if load_env_file(candidate, override=override):
            return candidate
    return None
