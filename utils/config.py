from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from dotenv import dotenv_values

PORTFOLIO_CSV_DEFAULT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "data", "portfolio.csv"))

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    api_base_url: str = "https://brapi.dev/api"
    api_timeout_ms: int = 10000
    cache_ttl_ms: int = 300000
    api_token: str | None = None
    refresh_interval_ms: int = 300000
    refresh_enabled: bool = True
    portfolio_csv: str = PORTFOLIO_CSV_DEFAULT
    total_budget: float = 1000.0
    discount_rate: float = 10.5
    log_level: str = "INFO"


def _layered_env(dotenv_path: str | None, environ: Mapping[str, str] | None) -> dict:
    """
    .env values first, real environment on top (a .env file never overrides an
    exported variable).
    """
    env: dict = {}
    dp = Path(dotenv_path or ".env")
    if dp.exists():
        env.update({k: v for k, v in dotenv_values(dp).items() if v is not None})
    env.update(os.environ if environ is None else environ)
    return env


def _number(env: dict, key: str, default, typ):
    raw = env.get(key)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        return typ(str(raw).strip())
    except ValueError:
        raise ValueError(f"Invalid value for {key}: {raw!r}")


def _flag(env: dict, key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or str(raw).strip() == "":
        return default
    val = str(raw).strip().lower()
    if val in _TRUTHY:
        return True
    if val in _FALSY:
        return False
    raise ValueError(f"Invalid value for {key}: {raw!r}")


def load_settings(dotenv_path: str | None = None, environ: Mapping[str, str] | None = None) -> Settings:
    env = _layered_env(dotenv_path, environ)
    defaults = Settings()
    return Settings(
        api_base_url=(env.get("BRAPI_BASE_URL") or defaults.api_base_url).rstrip("/"),
        api_timeout_ms=_number(env, "BRAPI_TIMEOUT_MS", defaults.api_timeout_ms, int),
        cache_ttl_ms=_number(env, "CACHE_TTL_MS", defaults.cache_ttl_ms, int),
        api_token=(env.get("BRAPI_TOKEN") or "").strip() or None,
        refresh_interval_ms=_number(env, "REFRESH_INTERVAL_MS", defaults.refresh_interval_ms, int),
        refresh_enabled=_flag(env, "REFRESH_ENABLED", defaults.refresh_enabled),
        portfolio_csv=env.get("PORTFOLIO_CSV") or defaults.portfolio_csv,
        total_budget=_number(env, "TOTAL_BUDGET", defaults.total_budget, float),
        discount_rate=_number(env, "DISCOUNT_RATE", defaults.discount_rate, float),
        log_level=(env.get("LOG_LEVEL") or defaults.log_level).upper(),
    )
