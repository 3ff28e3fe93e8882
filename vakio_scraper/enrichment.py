from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple

from vakio_scraper.models import SYMBOLS, Match

_EPS = 1e-9


def implied_probabilities(odds: Optional[Dict[str, float]]) -> Optional[Dict[str, float]]:
    """
    Decimal odds -> implied probability in percent, de-margined proportionally
    so the available symbols sum to 100. None when nothing usable is quoted.
    """
    if not odds:
        return None
    raw: Dict[str, float] = {}
    for sym in SYMBOLS:
        price = odds.get(sym)
        if price is None:
            continue
        try:
            p = float(price)
        except (TypeError, ValueError):
            continue
        if p > _EPS:
            raw[sym] = 1.0 / p
    total = sum(raw.values())
    if total <= 0.0:
        return None
    return {sym: v / total * 100.0 for sym, v in raw.items()}


def deviation(percent: Dict[str, float], prob_pct: Dict[str, float]) -> Dict[str, float]:
    return {sym: float(percent.get(sym, 0.0)) - p for sym, p in prob_pct.items()}


def enrich_one(match: Match) -> Match:
    prob = implied_probabilities(match.odds)
    if prob is None:
        return replace(match, odds_prob_pct=None, deviation=None)
    return replace(match, odds_prob_pct=prob, deviation=deviation(match.percent, prob))


def enrich(matches: Iterable[Match]) -> List[Match]:
    """Never raises; matches without usable odds keep the derived fields unset."""
    return [enrich_one(m) for m in matches]


def top_deviations(matches: Iterable[Match], *, limit: int = 3) -> List[Tuple[int, str, float]]:
    """(index, symbol, deviation) sorted by absolute deviation, largest first."""
    rows: List[Tuple[int, str, float]] = []
    for m in matches:
        for sym, dv in (m.deviation or {}).items():
            rows.append((m.index, sym, dv))
    rows.sort(key=lambda r: abs(r[2]), reverse=True)
    return rows[: max(0, int(limit))]
