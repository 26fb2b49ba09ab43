"""Load automation config, user profiles and env configuration."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from dotenv import load_dotenv

from autoapply.log import get_logger
from autoapply.models import AutomationSettings, UserAccount

log = get_logger(__name__)

load_dotenv()

ROOT: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = Path(os.environ.get("AUTOAPPLY_CONFIG_DIR", ROOT / "config"))
DATA_DIR: Path = Path(os.environ.get("AUTOAPPLY_DATA_DIR", ROOT / "data"))
AUTOMATION_PATH: Path = CONFIG_DIR / "automation.yaml"
USERS_PATH: Path = CONFIG_DIR / "users.yaml"


@dataclass
class PolicyConfig:
    # 0 keeps matching unconditional on every tick.
    match_interval_hours: float = 0.0
    cleanup_interval_hours: float = 24.0
    max_scrape_titles: int = 3
    default_scrape_location: str = "United States"


@dataclass
class WorkerConfig:
    batch_size: int = 10
    max_attempts: int = 3
    stale_after_minutes: float = 30.0
    retry_base_delay_seconds: float = 0.0
    retry_max_delay_seconds: float = 3600.0


@dataclass
class HandlerConfig:
    scrape_limit: int = 20
    match_lookback_days: int = 7
    match_batch_limit: int = 100
    match_min_score: int = 0
    notify_min_score: int = 80
    job_retention_days: int = 90
    queue_retention_days: int = 30


@dataclass
class AppConfig:
    timezone: str = "UTC"
    tick_minutes: int = 60
    data_dir: Path = DATA_DIR
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    worker: WorkerConfig = field(default_factory=WorkerConfig)
    handlers: HandlerConfig = field(default_factory=HandlerConfig)


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def ensure_dirs(config: AppConfig | None = None) -> None:
    data_dir = config.data_dir if config else DATA_DIR
    for d in (CONFIG_DIR, data_dir):
        d.mkdir(parents=True, exist_ok=True)


def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML must be a mapping: {path}")
    return data


def _build(cls: type, raw: Any, section: str) -> Any:
    """Instantiate dataclass *cls* from a mapping, rejecting unknown keys and bad types."""
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ValueError(f"'{section}' must be a mapping, got {type(raw).__name__}")
    known = {f.name: f for f in fields(cls)}
    unknown = set(raw) - set(known)
    if unknown:
        raise ValueError(f"Unknown keys in '{section}': {', '.join(sorted(unknown))}")
    defaults = cls()
    values: dict[str, Any] = {}
    for key, value in raw.items():
        expected = type(getattr(defaults, key))
        try:
            values[key] = expected(value)
        except (TypeError, ValueError):
            raise ValueError(f"'{section}.{key}' must be {expected.__name__}, got {value!r}") from None
    return cls(**values)


def load_config(path: Path | None = None) -> AppConfig:
    """Read automation.yaml; a missing file means all defaults."""
    path = path or AUTOMATION_PATH
    raw: dict[str, Any] = _read_yaml(path) if path.exists() else {}
    if not path.exists():
        log.debug("No %s — using default automation config", path)

    nested = {"policy": PolicyConfig, "worker": WorkerConfig, "handlers": HandlerConfig}
    top = {k: v for k, v in raw.items() if k not in nested}
    unknown = set(top) - {"timezone", "tick_minutes", "data_dir"}
    if unknown:
        raise ValueError(f"Unknown keys in {path.name}: {', '.join(sorted(unknown))}")

    timezone = get_env("AUTOAPPLY_TIMEZONE") or str(top.get("timezone", "UTC"))
    _check_timezone(timezone)
    data_dir = Path(top["data_dir"]) if top.get("data_dir") else DATA_DIR
    if not data_dir.is_absolute():
        data_dir = ROOT / data_dir

    try:
        tick_minutes = int(top.get("tick_minutes", 60))
    except (TypeError, ValueError):
        raise ValueError(f"'tick_minutes' must be int, got {top.get('tick_minutes')!r}") from None

    return AppConfig(
        timezone=timezone,
        tick_minutes=tick_minutes,
        data_dir=data_dir,
        **{name: _build(cls, raw.get(name), name) for name, cls in nested.items()},
    )


def _check_timezone(name: str) -> None:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {name}") from None


def _hour(value: Any) -> int:
    """Accept 9, "9" or "09:00" style hours."""
    if isinstance(value, str) and ":" in value:
        value = value.split(":")[0]
    return int(value)


def settings_from_dict(raw: dict[str, Any] | None, default_timezone: str = "UTC") -> AutomationSettings:
    """Build AutomationSettings from a user's ``automation`` mapping."""
    raw = dict(raw or {})
    window = raw.pop("apply_window", None) or {}
    if "auto_apply_hours_start" in raw:
        window.setdefault("start_hour", raw.pop("auto_apply_hours_start"))
    if "auto_apply_hours_end" in raw:
        window.setdefault("end_hour", raw.pop("auto_apply_hours_end"))

    defaults = AutomationSettings()
    known = {f.name for f in fields(AutomationSettings)}
    unknown = set(raw) - known
    if unknown:
        raise ValueError(f"Unknown automation settings: {', '.join(sorted(unknown))}")

    try:
        settings = AutomationSettings(
            auto_apply_enabled=bool(raw.get("auto_apply_enabled", defaults.auto_apply_enabled)),
            min_match_score=int(raw.get("min_match_score", defaults.min_match_score)),
            max_applications_per_day=int(raw.get("max_applications_per_day", defaults.max_applications_per_day)),
            apply_window_start=_hour(window.get("start_hour", raw.get("apply_window_start", defaults.apply_window_start))),
            apply_window_end=_hour(window.get("end_hour", raw.get("apply_window_end", defaults.apply_window_end))),
            excluded_companies=frozenset(str(c) for c in raw.get("excluded_companies") or ()),
            auto_scrape_enabled=bool(raw.get("auto_scrape_enabled", defaults.auto_scrape_enabled)),
            scrape_frequency_hours=int(raw.get("scrape_frequency_hours", defaults.scrape_frequency_hours)),
            auto_match_enabled=bool(raw.get("auto_match_enabled", defaults.auto_match_enabled)),
            apply_on_weekends=bool(raw.get("apply_on_weekends", defaults.apply_on_weekends)),
            preferred_sources=tuple(
                str(s).lower() for s in raw.get("preferred_sources") or defaults.preferred_sources
            ),
            timezone=str(raw.get("timezone") or default_timezone),
            daily_summary_enabled=bool(raw.get("daily_summary_enabled", defaults.daily_summary_enabled)),
            daily_summary_hour=_hour(raw.get("daily_summary_hour", defaults.daily_summary_hour)),
        )
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid automation settings: {exc}") from None
    _check_timezone(settings.timezone)
    return settings


def load_users(path: Path | None = None, default_timezone: str = "UTC") -> list[UserAccount]:
    """Read users.yaml: one entry per user with profile, skills and automation settings."""
    path = path or USERS_PATH
    if not path.exists():
        log.warning("No users file at %s — nothing to automate", path)
        return []
    data = _read_yaml(path)
    entries = data.get("users") or []
    if not isinstance(entries, list):
        raise ValueError(f"'users' must be a list in {path.name}")

    users: list[UserAccount] = []
    seen: set[str] = set()
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("id"):
            raise ValueError(f"Every user in {path.name} needs an 'id'")
        user_id = str(entry["id"])
        if user_id in seen:
            raise ValueError(f"Duplicate user id {user_id!r} in {path.name}")
        seen.add(user_id)
        users.append(
            UserAccount(
                id=user_id,
                email=str(entry.get("email", "")),
                name=str(entry.get("name", "")),
                profile=dict(entry.get("profile") or {}),
                skills=list(entry.get("skills") or []),
                settings=settings_from_dict(entry.get("automation"), default_timezone),
            )
        )
    log.debug("Loaded %d user(s) from %s", len(users), path.name)
    return users
