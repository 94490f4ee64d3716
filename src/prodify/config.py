from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from prodify.assistant import DEFAULT_GATEWAY_URL
from prodify.time_utils import DEFAULT_TZ


@dataclass(frozen=True)
class Settings:
    database_path: Path
    tz: str
    api_token: str | None
    api_host: str
    api_port: int
    ai_gateway_url: str
    ai_gateway_api_key: str | None
    ai_model: str | None
    ai_config_path: Path
    log_level: str = "INFO"

    @property
    def assistant_enabled(self) -> bool:
        return bool(self.ai_gateway_api_key)


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text().splitlines():
        raw = line.strip()
        if not raw or raw.startswith("#") or "=" not in raw:
            continue
        key, value = raw.split("=", maxsplit=1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _parse_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def load_settings(env_file: Path = Path(".env")) -> Settings:
    _load_env_file(env_file)

    return Settings(
        database_path=Path(os.getenv("DATABASE_PATH", "./data/prodify.db")),
        tz=os.getenv("TZ", DEFAULT_TZ),
        api_token=os.getenv("API_TOKEN") or None,
        api_host=os.getenv("API_HOST", "127.0.0.1"),
        api_port=_parse_int(os.getenv("API_PORT"), 8080),
        ai_gateway_url=os.getenv("AI_GATEWAY_URL", DEFAULT_GATEWAY_URL),
        ai_gateway_api_key=os.getenv("AI_GATEWAY_API_KEY") or None,
        ai_model=os.getenv("AI_MODEL") or None,
        ai_config_path=Path(os.getenv("AI_CONFIG_PATH", "./assistant.yaml")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
