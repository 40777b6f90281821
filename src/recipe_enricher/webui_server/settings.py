from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ..config import env_or_config, is_development, require_int, resolve_repo_path, to_bool

DEFAULT_BIND_HOST = "0.0.0.0"
DEFAULT_BIND_PORT = 3000
DEFAULT_LOGS_DIR = "logs"
DEFAULT_SCHEDULE_DAY = "mon"
DEFAULT_SCHEDULE_HOUR = 9
DEFAULT_SCHEDULE_MINUTE = 0


@dataclass(frozen=True)
class WebUISettings:
    bind_host: str
    bind_port: int
    logs_dir: Path
    development: bool
    schedule_enabled: bool
    schedule_day_of_week: str
    schedule_hour: int
    schedule_minute: int


def load_webui_settings() -> WebUISettings:
    return WebUISettings(
        bind_host=str(env_or_config("WEB_BIND_HOST", "webui.bind_host", DEFAULT_BIND_HOST)),
        bind_port=env_or_config("WEB_BIND_PORT", "webui.bind_port", DEFAULT_BIND_PORT, lambda v: require_int(v, "WEB_BIND_PORT")),
        logs_dir=resolve_repo_path(str(env_or_config("WEB_LOGS_DIR", "webui.logs_dir", DEFAULT_LOGS_DIR))),
        development=is_development(),
        schedule_enabled=bool(env_or_config("ENRICHMENT_SCHEDULE_ENABLED", "schedule.enabled", False, to_bool)),
        schedule_day_of_week=str(env_or_config("ENRICHMENT_SCHEDULE_DAY", "schedule.day_of_week", DEFAULT_SCHEDULE_DAY)),
        schedule_hour=env_or_config(
            "ENRICHMENT_SCHEDULE_HOUR", "schedule.hour", DEFAULT_SCHEDULE_HOUR,
            lambda v: require_int(v, "ENRICHMENT_SCHEDULE_HOUR"),
        ),
        schedule_minute=env_or_config(
            "ENRICHMENT_SCHEDULE_MINUTE", "schedule.minute", DEFAULT_SCHEDULE_MINUTE,
            lambda v: require_int(v, "ENRICHMENT_SCHEDULE_MINUTE"),
        ),
    )
