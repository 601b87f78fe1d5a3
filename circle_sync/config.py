import os
from dataclasses import dataclass


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    url: str = ""
    api_key: str = ""
    access_token: str = ""
    data_path: str = "circle_sync_data.json"
    poll_seconds: float = 2.0
    profile_ttl: float = 300.0
    # Request UPDATE/DELETE events too; the remote feed only ever sends inserts
    live_edits: bool = False
    log_level: str = "INFO"

    @property
    def is_remote(self) -> bool:
        return bool(self.url)


def load_settings() -> Settings:
    return Settings(
        url=os.getenv("CIRCLE_SYNC_URL", "").strip().rstrip("/"),
        api_key=os.getenv("CIRCLE_SYNC_API_KEY", "").strip(),
        access_token=os.getenv("CIRCLE_SYNC_ACCESS_TOKEN", "").strip(),
        data_path=os.getenv("CIRCLE_SYNC_DATA_PATH", "").strip()
        or "circle_sync_data.json",
        poll_seconds=_float_env("CIRCLE_SYNC_POLL_SECONDS", 2.0),
        profile_ttl=_float_env("CIRCLE_SYNC_PROFILE_TTL", 300.0),
        live_edits=os.getenv("CIRCLE_SYNC_LIVE_EDITS", "").strip().lower()
        in {"1", "true", "yes", "on"},
        log_level=os.getenv("CIRCLE_SYNC_LOG_LEVEL", "").strip() or "INFO",
    )
