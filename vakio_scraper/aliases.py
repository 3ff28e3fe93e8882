"""
Field alias configuration for heuristic match extraction.

Every logical field is resolved through an ordered list of aliases; the first
alias yielding a usable value wins. Aliases may be dotted paths into nested
objects/arrays (e.g. "homeTeam.name", "competitors.0.name").

Overrides (read at call time):
  VAKIO_ALIASES_FILE=/path/aliases.json   {"home": ["..."], "odds": ["..."], ...}
  VAKIO_ALIAS_HOME=homeName,home.name     single list, comma-separated
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Tuple

from vakio_scraper.logging_utils import _dbg


@dataclass(frozen=True)
class AliasConfig:
    # Top-level object entries searched first by the extractor.
    containers: Tuple[str, ...] = ("draw", "content", "result")
    # Top-level array-valued entries searched first by the extractor.
    container_lists: Tuple[str, ...] = (
        "draws",
        "games",
        "events",
        "rows",
        "pairs",
        "selections",
        "fixtures",
    )
    outcomes: Tuple[str, ...] = ("choices", "outcomes", "selections", "market.outcomes")
    home: Tuple[str, ...] = (
        "homeName",
        "homeTeamName",
        "home",
        "homeTeam",
        "homeTeam.name",
        "home.name",
        "homeCompetitor.name",
    )
    away: Tuple[str, ...] = (
        "awayName",
        "awayTeamName",
        "away",
        "awayTeam",
        "awayTeam.name",
        "away.name",
        "awayCompetitor.name",
    )
    # Arrays of two named entries: [home, away].
    pairs: Tuple[str, ...] = ("teams", "competitors", "participants")
    pair_name: Tuple[str, ...] = ("name", "shortName", "teamName")
    # "Home - Away" style event titles.
    event_name: Tuple[str, ...] = ("name", "eventName", "title")
    percent: Tuple[str, ...] = (
        "percentage",
        "percent",
        "selectionPercentage",
        "probabilityPct",
        "probability",
    )
    odds: Tuple[str, ...] = ("odds", "price", "decimalOdds", "o")


def _split(raw: str) -> Tuple[str, ...]:
    return tuple(p.strip() for p in raw.split(",") if p.strip())


def load_aliases() -> AliasConfig:
    cfg = AliasConfig()
    path = (os.getenv("VAKIO_ALIASES_FILE") or "").strip()
    if path:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            _dbg(f"aliases file ignored ({path}): {e}")
            data = {}
        cfg = apply_overrides(cfg, data if isinstance(data, dict) else {})
    env_over: Dict[str, Any] = {}
    for fld in fields(AliasConfig):
        raw = os.getenv(f"VAKIO_ALIAS_{fld.name.upper()}")
        if raw:
            env_over[fld.name] = _split(raw)
    return apply_overrides(cfg, env_over)


def apply_overrides(cfg: AliasConfig, overrides: Dict[str, Any]) -> AliasConfig:
    known = {f.name for f in fields(AliasConfig)}
    patch: Dict[str, Tuple[str, ...]] = {}
    for name, value in overrides.items():
        if name not in known:
            continue
        if isinstance(value, str):
            value = _split(value)
        if not isinstance(value, (list, tuple)):
            continue
        items = tuple(str(v).strip() for v in value if str(v).strip())
        if items:
            patch[name] = items
    return replace(cfg, **patch) if patch else cfg


def resolve_path(obj: Any, path: str) -> Any:
    """Follow a dotted alias path through dicts and list indices; None when absent."""
    cur = obj
    for part in path.split("."):
        if isinstance(cur, dict):
            cur = cur.get(part)
        elif isinstance(cur, list) and part.isdigit():
            idx = int(part)
            cur = cur[idx] if idx < len(cur) else None
        else:
            return None
        if cur is None:
            return None
    return cur
