from __future__ import annotations

from typing import Any, Dict, List

from vakio_scraper.models import DrawResult, Match

TEAMS = [
    ("HJK", "KuPS"),
    ("Arsenal", "Chelsea"),
    ("Liverpool", "Everton"),
    ("Leeds", "Burnley"),
    ("Ilves", "SJK"),
    ("Inter", "Milan"),
    ("Roma", "Lazio"),
    ("Ajax", "PSV"),
    ("Celtic", "Rangers"),
    ("Porto", "Benfica"),
    ("Lyon", "Nice"),
    ("Sevilla", "Betis"),
    ("AIK", "Hammarby"),
    ("Molde", "Brann"),
]


def choice(pct: Any, odds: Any = None) -> Dict[str, Any]:
    out: Dict[str, Any] = {"percentage": pct}
    if odds is not None:
        out["odds"] = odds
    return out


def flat_rows(n: int = 13, *, with_odds: bool = True) -> List[Dict[str, Any]]:
    rows = []
    for i in range(n):
        home, away = TEAMS[i % len(TEAMS)]
        rows.append(
            {
                "homeName": home,
                "awayName": away,
                "choices": [
                    choice(40 + i, 2.0 if with_odds else None),
                    choice(30, 3.5 if with_odds else None),
                    choice(30 - i, 4.0 if with_odds else None),
                ],
            }
        )
    return rows


def draw_result(draw_id: str = "a_100522", n: int = 13) -> DrawResult:
    matches = [
        Match(index=i + 1, home=h, away=a, percent={"1": 50.0, "X": 25.0, "2": 25.0}, odds={"1": 2.0, "X": 4.0, "2": 4.0})
        for i, (h, a) in enumerate(TEAMS[:n])
    ]
    return DrawResult(draw_id=draw_id, matches=matches, source_tag="network@sv")
