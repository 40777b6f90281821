from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable

from .errors import ConfigurationError

REPO_ROOT = Path(__file__).resolve().parents[2]
CONFIG_FILE = REPO_ROOT / "configs" / "config.json"
ENV_FILE = REPO_ROOT / ".env"

_TRUE_VALUES = {"1", "true", "yes", "on", "y"}
_FALSE_VALUES = {"0", "false", "no", "off", "n", ""}
_CONFIG_CACHE: dict[str, Any] | None = None


def load_env_file(path: Path) -> None:
    """Load KEY=VALUE lines into os.environ without overriding existing values."""
    if not path.exists():
        return
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if key.startswith("export "):
            key = key[len("export "):].strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def to_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def require_int(value: object, field: str) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        return int(value.strip())
    raise ValueError(f"Invalid value for '{field}': expected integer-like, got {type(value).__name__}")


def require_float(value: object, field: str) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return float(value.strip())
    raise ValueError(f"Invalid value for '{field}': expected float-like, got {type(value).__name__}")


def _load_config_file() -> dict[str, Any]:
    global _CONFIG_CACHE
    if _CONFIG_CACHE is not None:
        return _CONFIG_CACHE
    data: dict[str, Any] = {}
    if CONFIG_FILE.exists():
        try:
            loaded = json.loads(CONFIG_FILE.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Cannot read config file '{CONFIG_FILE}': {exc}") from exc
        if isinstance(loaded, dict):
            data = loaded
    _CONFIG_CACHE = data
    return data


def reset_config_cache() -> None:
    global _CONFIG_CACHE
    _CONFIG_CACHE = None


def config_value(path: str, default: Any = None) -> Any:
    """Look up a dotted key (``"enrichment.batch_size"``) in configs/config.json."""
    node: Any = _load_config_file()
    for part in path.split("."):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node


def env_or_config(
    env_key: str,
    config_path: str,
    default: Any = None,
    cast: Callable[[Any], Any] | None = None,
) -> Any:
    """Environment variable, then config file, then *default*; optionally cast."""
    raw = os.environ.get(env_key)
    if raw is not None and raw.strip() != "":
        value: Any = raw.strip()
    else:
        value = config_value(config_path, default)
    if cast is not None and value is not None:
        return cast(value)
    return value


def resolve_repo_path(relative: str | Path) -> Path:
    path = Path(relative)
    if path.is_absolute():
        return path
    return REPO_ROOT / path


def is_development() -> bool:
    return str(env_or_config("APP_ENV", "runtime.env", "production")).strip().lower() == "development"


def resolve_notion_token(required: bool = False) -> str:
    token = str(env_or_config("NOTION_TOKEN", "notion.token", "") or "").strip()
    if required and not token:
        raise ConfigurationError("Missing NOTION_TOKEN environment variable")
    return token


def resolve_notion_database_id(required: bool = False) -> str:
    database_id = str(env_or_config("NOTION_DATABASE_ID", "notion.database_id", "") or "").strip()
    if required and not database_id:
        raise ConfigurationError("Missing NOTION_DATABASE_ID environment variable")
    return database_id


def resolve_openai_api_key() -> str:
    return str(env_or_config("OPENAI_API_KEY", "providers.openai.api_key", "") or "").strip()


load_env_file(ENV_FILE)
