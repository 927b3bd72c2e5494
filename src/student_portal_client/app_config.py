from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_API_BASE_URL = "https://portal-production-26b9.up.railway.app"


@dataclass
class RuntimeEnv:
    api_base_url: str | None
    email: str | None
    password: str | None


@dataclass
class AppConfig:
    api_base_url: str
    request_timeout_seconds: float
    retry_attempts: int
    retry_wait_seconds: float
    session_db_path: str
    timezone: str | None
    log_level: str
    log_consumers: list | None


def load_json_config() -> dict:
    config_path = Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def parse_app_config(config: dict, env: RuntimeEnv | None = None) -> AppConfig:
    api_base_url = str(config.get("ApiBaseUrl", DEFAULT_API_BASE_URL)).strip()
    if env is not None and env.api_base_url:
        api_base_url = env.api_base_url.strip()
    return AppConfig(
        api_base_url=api_base_url.rstrip("/"),
        request_timeout_seconds=float(config.get("RequestTimeoutSeconds", 10)),
        retry_attempts=max(1, int(config.get("RetryAttempts", 2))),
        retry_wait_seconds=float(config.get("RetryWaitSeconds", 0.5)),
        session_db_path=str(config.get("SessionDbPath", ".student_portal/session.db")),
        timezone=str(config.get("Timezone", "")).strip() or None,
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
    )


def resolve_runtime_env() -> RuntimeEnv:
    return RuntimeEnv(
        api_base_url=os.environ.get("STUDENT_PORTAL_API_URL") or None,
        email=os.environ.get("STUDENT_PORTAL_EMAIL") or None,
        password=os.environ.get("STUDENT_PORTAL_PASSWORD") or None,
    )
