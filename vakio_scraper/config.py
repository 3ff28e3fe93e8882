"""Environment-driven settings."""

from __future__ import annotations

import os
import re
from typing import List, Tuple
from urllib.parse import quote

DEFAULT_BASE_URL = "https://www.veikkaus.fi"
DEFAULT_LOCALES = ("sv", "fi")
DEFAULT_REST_PATHS = (
    "/api/sport-open-games/v1/games/SPORT/draws/{draw}",
    "/api/sport-open-games/v1/games/SPORT/draws?kohde={draw}",
    "/api/sport-popularity/v1/games/SPORT/draws/{draw}/popularity",
    "/api/v1/sport-games/draws/SPORT/{draw}",
)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    try:
        return int(raw) if raw not in (None, "") else default
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    try:
        return float(raw) if raw not in (None, "") else default
    except Exception:
        return default


def base_url() -> str:
    raw = (os.getenv("VAKIO_BASE_URL") or "").strip().rstrip("/")
    if re.match(r"^https?://", raw, re.I):
        return raw
    return DEFAULT_BASE_URL


def locales() -> Tuple[str, ...]:
    raw = os.getenv("VAKIO_LOCALES") or ""
    out = tuple(p.strip().lower() for p in raw.split(",") if re.fullmatch(r"[a-zA-Z]{2}", p.strip()))
    return out or DEFAULT_LOCALES


def listing_urls() -> List[str]:
    return [f"{base_url()}/{loc}/vedonlyonti/vakio" for loc in locales()]


def home_url() -> str:
    return f"{base_url()}/{locales()[0]}/vedonlyonti"


def draw_url(draw_id: str, locale: str) -> str:
    return f"{base_url()}/{locale}/vedonlyonti/vakio?kohde={quote(draw_id, safe='')}"


def rest_paths() -> Tuple[str, ...]:
    raw = (os.getenv("VAKIO_REST_PATHS") or "").strip()
    if not raw:
        return DEFAULT_REST_PATHS
    return tuple(p.strip() for p in raw.split(";") if p.strip().startswith("/"))


def budget_s() -> float:
    return max(1.0, _env_float("VAKIO_BUDGET_S", 45.0))


def nav_timeout_ms() -> int:
    return max(1000, _env_int("VAKIO_NAV_TIMEOUT_MS", 20_000))


def cache_ttl_s() -> float:
    return max(0.0, _env_float("VAKIO_CACHE_TTL_S", 30 * 60.0))


def max_sessions() -> int:
    return max(1, _env_int("VAKIO_MAX_SESSIONS", 2))


def attempts() -> int:
    # One retry at most; a failed attempt is reported, not looped on.
    return min(2, max(1, _env_int("VAKIO_ATTEMPTS", 1)))


def refresh_s() -> float:
    return max(0.0, _env_float("VAKIO_REFRESH_S", 0.0))


def port() -> int:
    return _env_int("PORT", 10000)
