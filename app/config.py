import os
from dataclasses import dataclass, field
from datetime import time
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

DEFAULT_SLOT_TIMES = "09:00,12:00,15:00,18:00"


def _parse_times(raw: str) -> tuple[time, ...]:
    out = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        hh, _, mm = chunk.partition(":")
        out.append(time(int(hh), int(mm or 0)))
    return tuple(sorted(set(out)))


def _parse_windows(raw: str) -> dict[str, int]:
    # "linkedin=60,x=30"
    out: dict[str, int] = {}
    for chunk in raw.split(","):
        name, sep, minutes = chunk.partition("=")
        if sep and name.strip():
            out[name.strip().lower()] = int(minutes)
    return out


@dataclass(frozen=True)
class Settings:
    conflict_window_minutes: int = 60
    conflict_windows: dict[str, int] = field(default_factory=dict)
    days_ahead: int = 7
    max_suggestions: int = 5
    slot_times: tuple[time, ...] = field(default_factory=lambda: _parse_times(DEFAULT_SLOT_TIMES))
    platform_slot_times: dict[str, tuple[time, ...]] = field(default_factory=dict)
    publish_batch_limit: int = 50
    job_stale_after_minutes: int = 30
    log_level: str = "INFO"

    def window_for(self, platform: str) -> int:
        return self.conflict_windows.get((platform or "").lower(), self.conflict_window_minutes)

    def slot_times_for(self, platform: str) -> tuple[time, ...]:
        return self.platform_slot_times.get((platform or "").lower(), self.slot_times)

    @classmethod
    def from_env(cls) -> "Settings":
        platform_times = {}
        prefix = "SCHEDULE_SLOT_TIMES_"
        for key, value in os.environ.items():
            if key.startswith(prefix) and value.strip():
                platform_times[key[len(prefix):].lower()] = _parse_times(value)

        return cls(
            conflict_window_minutes=int(os.getenv("SCHEDULE_CONFLICT_WINDOW_MINUTES", "60")),
            conflict_windows=_parse_windows(os.getenv("SCHEDULE_CONFLICT_WINDOWS", "")),
            days_ahead=int(os.getenv("SCHEDULE_DAYS_AHEAD", "7")),
            max_suggestions=int(os.getenv("SCHEDULE_MAX_SUGGESTIONS", "5")),
            slot_times=_parse_times(os.getenv("SCHEDULE_SLOT_TIMES", DEFAULT_SLOT_TIMES)),
            platform_slot_times=platform_times,
            publish_batch_limit=int(os.getenv("PUBLISH_BATCH_LIMIT", "50")),
            job_stale_after_minutes=int(os.getenv("JOB_STALE_AFTER_MINUTES", "30")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
