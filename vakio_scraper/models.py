from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

SYMBOLS = ("1", "X", "2")
AUTO = "auto"


@dataclass(frozen=True)
class Match:
    index: int
    home: str
    away: str
    percent: Dict[str, float]
    odds: Optional[Dict[str, float]] = None
    odds_prob_pct: Optional[Dict[str, float]] = None
    deviation: Optional[Dict[str, float]] = None

    @property
    def percent_sum(self) -> float:
        return float(sum(self.percent.get(s, 0.0) for s in SYMBOLS))

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "index": self.index,
            "home": self.home,
            "away": self.away,
            "percent": dict(self.percent),
        }
        if self.odds is not None:
            out["odds"] = dict(self.odds)
        if self.odds_prob_pct is not None:
            out["oddsProbPct"] = dict(self.odds_prob_pct)
        if self.deviation is not None:
            out["deviation"] = dict(self.deviation)
        return out


@dataclass(frozen=True)
class DrawResult:
    draw_id: str
    matches: List[Match]
    source_tag: str
    debug: Optional[Dict[str, Any]] = None


@dataclass
class JobState:
    key: str
    in_progress: bool = False
    last_error: Optional[str] = None
    updated_at: Optional[str] = None
    draw_id: Optional[str] = None
    matches: Optional[List[Match]] = None
    source_tag: Optional[str] = None
    debug: Optional[Dict[str, Any]] = None

    @property
    def mode(self) -> str:
        return AUTO if self.key == AUTO else "kohde"

    @property
    def ok(self) -> bool:
        return bool(self.matches) and self.last_error is None

    def snapshot(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "mode": self.mode,
            "kohde": self.draw_id if self.draw_id else (None if self.key == AUTO else self.key),
            "inProgress": self.in_progress,
            "lastError": self.last_error,
            "updatedAt": self.updated_at,
            "sourceTag": self.source_tag,
            "matches": [m.to_json() for m in self.matches] if self.matches else None,
            "debug": self.debug,
        }


@dataclass(frozen=True)
class CacheEntry:
    created_at: float
    result: DrawResult


@dataclass(frozen=True)
class KickResult:
    accepted: bool
    already_running: bool
    reused_cache: bool
    mode: str
    target: Optional[str]
    message: str = ""

    def to_json(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "accepted": self.accepted,
            "alreadyRunning": self.already_running,
            "message": self.message,
            "mode": self.mode,
            "kohde": self.target,
            "target": self.target,
            "inProgress": self.already_running or self.accepted,
        }
