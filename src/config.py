"""
Engine settings.

Read from environment variables by ``EngineSettings.from_env()``; every
value has a default so tests can build settings directly.

    SALON_NAME                 - shown in greetings (default: "Signature Trims")
    SALON_TIMEZONE             - IANA zone used for "today" / "now" (default: UTC)
    SALON_PHONE                - offered when nothing is available
    BOOKING_URL                - offered when something goes wrong
    SESSION_TTL_MINUTES        - inactivity before a conversation expires (30)
    SESSION_CACHE_SECONDS      - read-cache lifetime (30)
    SLOT_MINUTES               - scheduling grid (30)
    CATEGORY_AMBIGUITY_MARGIN  - extra characters a category match needs to win (3)
    ASSUME_PM_HOURS            - bare hours read as PM, "first-last" (1-7)
    MAX_STEP_HISTORY           - depth of the "back" stack (10)
    PROMPT_FOR_STYLIST         - ask for a stylist when several exist (false)
    DEFAULT_SERVICE_MINUTES    - duration for categories without one (60)
    FALLBACK_TIMEOUT_SECONDS   - how long the LLM agent gets (8)
"""

import os
from dataclasses import dataclass
from datetime import timedelta
from zoneinfo import ZoneInfo


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_hour_range(value: str) -> tuple[int, int]:
    first, _, last = value.partition("-")
    low, high = int(first), int(last or first)
    if not (0 <= low <= high <= 23):
        raise ValueError(f"Invalid hour range: {value!r}")
    return low, high


@dataclass
class EngineSettings:
    salon_name: str = "Signature Trims"
    timezone: str = "UTC"
    salon_phone: str = "(555) 123-4567"
    booking_url: str = ""
    session_ttl_minutes: int = 30
    session_cache_seconds: int = 30
    slot_minutes: int = 30
    category_ambiguity_margin: int = 3
    assume_pm_hours: tuple[int, int] = (1, 7)
    max_step_history: int = 10
    prompt_for_stylist: bool = False
    default_service_minutes: int = 60
    fallback_timeout_seconds: float = 8.0

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(minutes=self.session_ttl_minutes)

    @property
    def session_cache_ttl(self) -> timedelta:
        return timedelta(seconds=self.session_cache_seconds)

    @classmethod
    def from_env(cls) -> "EngineSettings":
        defaults = cls()
        return cls(
            salon_name=os.environ.get("SALON_NAME", defaults.salon_name),
            timezone=os.environ.get("SALON_TIMEZONE", defaults.timezone),
            salon_phone=os.environ.get("SALON_PHONE", defaults.salon_phone),
            booking_url=os.environ.get("BOOKING_URL", defaults.booking_url),
            session_ttl_minutes=int(os.environ.get("SESSION_TTL_MINUTES", "30")),
            session_cache_seconds=int(os.environ.get("SESSION_CACHE_SECONDS", "30")),
            slot_minutes=int(os.environ.get("SLOT_MINUTES", "30")),
            category_ambiguity_margin=int(os.environ.get("CATEGORY_AMBIGUITY_MARGIN", "3")),
            assume_pm_hours=_parse_hour_range(os.environ.get("ASSUME_PM_HOURS", "1-7")),
            max_step_history=int(os.environ.get("MAX_STEP_HISTORY", "10")),
            prompt_for_stylist=_env_bool("PROMPT_FOR_STYLIST", False),
            default_service_minutes=int(os.environ.get("DEFAULT_SERVICE_MINUTES", "60")),
            fallback_timeout_seconds=float(os.environ.get("FALLBACK_TIMEOUT_SECONDS", "8")),
        )
