from __future__ import annotations

import math
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from vakio_scraper.aliases import AliasConfig, load_aliases, resolve_path
from vakio_scraper.extractor import DRAW_SIZE, outcome_list
from vakio_scraper.models import SYMBOLS, Match

NAME_MAX_LEN = 80
ODDS_FLOOR = 1.0

_NUM_RE = re.compile(r"-?\d+(?:[.,]\d+)?")
_EVENT_SPLIT_RE = re.compile(r"\s+[-–—]\s+")


def _to_float(value: Any) -> Optional[float]:
    """Numbers and numeric strings ("45", "45,5 %", "2.10") -> float."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        out = float(value)
    elif isinstance(value, str):
        m = _NUM_RE.search(value)
        if not m:
            return None
        out = float(m.group(0).replace(",", "."))
    else:
        return None
    if math.isnan(out) or math.isinf(out):
        return None
    return out


def _clean_name(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    s = re.sub(r"\s+", " ", value).strip()
    if not s or len(s) > NAME_MAX_LEN:
        return None
    return s


def _first_name(obj: Dict[str, Any], paths: Iterable[str]) -> Optional[str]:
    for path in paths:
        name = _clean_name(resolve_path(obj, path))
        if name:
            return name
    return None


def resolve_names(obj: Dict[str, Any], aliases: AliasConfig) -> Tuple[Optional[str], Optional[str]]:
    home = _first_name(obj, aliases.home)
    away = _first_name(obj, aliases.away)
    if home and away:
        return home, away
    for key in aliases.pairs:
        pair = obj.get(key)
        if not isinstance(pair, list) or len(pair) < 2:
            continue
        names = []
        for item in pair[:2]:
            if isinstance(item, dict):
                names.append(_first_name(item, aliases.pair_name))
            else:
                names.append(_clean_name(item))
        home = home or names[0]
        away = away or names[1]
        if home and away:
            return home, away
    for key in aliases.event_name:
        title = obj.get(key)
        if not isinstance(title, str):
            continue
        parts = _EVENT_SPLIT_RE.split(title.strip(), maxsplit=1)
        if len(parts) == 2:
            home = home or _clean_name(parts[0])
            away = away or _clean_name(parts[1])
            if home and away:
                return home, away
    return home, away


def _first_number(obj: Dict[str, Any], paths: Iterable[str]) -> Optional[float]:
    for path in paths:
        val = _to_float(resolve_path(obj, path))
        if val is not None:
            return val
    return None


def parse_percent(outcome: Any, aliases: AliasConfig) -> float:
    if not isinstance(outcome, dict):
        return 0.0
    val = _first_number(outcome, aliases.percent)
    if val is None or val < 0.0 or val > 100.0:
        return 0.0
    return val


def parse_odds(outcome: Any, aliases: AliasConfig) -> Optional[float]:
    if not isinstance(outcome, dict):
        return None
    for path in aliases.odds:
        val = _to_float(resolve_path(outcome, path))
        if val is not None and val > ODDS_FLOOR:
            return val
    return None


def normalize_one(candidate: Dict[str, Any], index: int, aliases: AliasConfig) -> Optional[Match]:
    home, away = resolve_names(candidate, aliases)
    if not home or not away:
        return None
    outcomes = outcome_list(candidate, aliases)
    if not outcomes or len(outcomes) < len(SYMBOLS):
        return None
    # Positional: outcome 0 -> "1", 1 -> "X", 2 -> "2". Labels are not consulted.
    trio = outcomes[: len(SYMBOLS)]
    percent = {sym: parse_percent(o, aliases) for sym, o in zip(SYMBOLS, trio)}
    if sum(percent.values()) <= 0.0:
        return None
    odds: Dict[str, float] = {}
    for sym, o in zip(SYMBOLS, trio):
        price = parse_odds(o, aliases)
        if price is not None:
            odds[sym] = price
    return Match(index=index, home=home, away=away, percent=percent, odds=odds or None)


def normalize(candidates: Iterable[Any], *, aliases: Optional[AliasConfig] = None) -> List[Match]:
    """
    Candidates -> canonical Match records (at most DRAW_SIZE), indexed 1.. in
    discovery order. Rejected candidates do not consume an index.
    """
    aliases = aliases or load_aliases()
    out: List[Match] = []
    for cand in candidates:
        if len(out) >= DRAW_SIZE:
            break
        if not isinstance(cand, dict):
            continue
        m = normalize_one(cand, len(out) + 1, aliases)
        if m is not None:
            out.append(m)
    return out


def is_complete_draw(matches: List[Match]) -> bool:
    if len(matches) != DRAW_SIZE:
        return False
    return all(m.home and m.away and m.percent_sum > 0.0 for m in matches)
