from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import List, Optional

import uvicorn

from vakio_scraper import config
from vakio_scraper.acquisition import BrowserRunner
from vakio_scraper.api import create_app
from vakio_scraper.browser import BrowserPool
from vakio_scraper.enrichment import enrich, top_deviations
from vakio_scraper.models import DrawResult, Match
from vakio_scraper.veikkaus import VeikkausError, format_error


def _fmt_sym(values: Optional[dict], sym: str, spec: str = "5.1f") -> str:
    if not values or values.get(sym) is None:
        return "    -"
    return format(values[sym], spec)


def _print_match(m: Match) -> None:
    pct = "  ".join(f"{s}:{_fmt_sym(m.percent, s)}" for s in ("1", "X", "2"))
    line = f"{m.index:>2}. {m.home} - {m.away}  [{pct}]"
    if m.deviation:
        dev = " ".join(f"{s}:{_fmt_sym(m.deviation, s, '+5.1f')}" for s in ("1", "X", "2"))
        line += f"  dev[{dev}]"
    print(line)


def _print_result(result: DrawResult) -> None:
    print(f"kohde={result.draw_id} source={result.source_tag}")
    for m in result.matches:
        _print_match(m)
    top = top_deviations(result.matches)
    if top:
        print("largest deviations: " + ", ".join(f"#{i} {s} {d:+.1f}" for i, s, d in top))


async def cmd_find(*, headless: bool) -> int:
    pool = BrowserPool(headless=headless, max_sessions=1)
    try:
        ids = await BrowserRunner(pool).find()
    except VeikkausError as e:
        print(f"error: {format_error(e)}", file=sys.stderr)
        return 1
    finally:
        await pool.close()
    if not ids:
        print("No kohde found.")
        return 1
    for draw_id in ids:
        print(draw_id)
    return 0


async def cmd_scrape(kohde: Optional[str], *, as_json: bool, headless: bool, budget_s: Optional[float]) -> int:
    pool = BrowserPool(headless=headless, max_sessions=1)
    try:
        result = await BrowserRunner(pool, budget_s=budget_s)(kohde)
    except VeikkausError as e:
        print(f"error: {format_error(e)}", file=sys.stderr)
        if as_json and e.debug:
            print(json.dumps({"debug": e.debug}, ensure_ascii=False, indent=2), file=sys.stderr)
        return 1
    finally:
        await pool.close()
    result = DrawResult(result.draw_id, enrich(result.matches), result.source_tag, result.debug)
    if as_json:
        payload = {
            "ok": True,
            "kohde": result.draw_id,
            "sourceTag": result.source_tag,
            "matches": [m.to_json() for m in result.matches],
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        _print_result(result)
    return 0


def cmd_serve(*, host: str, port: int, headless: bool) -> int:
    print(f"vakio-scraper listening on :{port}", flush=True)
    uvicorn.run(create_app(headless=headless), host=host, port=port)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="vakio-scraper")
    parser.add_argument("--headed", action="store_true", help="Run with visible browser window")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_serve = sub.add_parser("serve", help="Run the HTTP API (find/kick/last)")
    p_serve.add_argument("--host", default="0.0.0.0")
    p_serve.add_argument("--port", type=int, default=config.port())

    sub.add_parser("find", help="List kohde ids from the Vakio listing, newest first")

    p_scrape = sub.add_parser("scrape", help="One-shot acquisition of a draw")
    p_scrape.add_argument("--kohde", default=None, help="Draw id (default: newest discovered)")
    p_scrape.add_argument("--budget", type=float, default=None, help="Wall-clock budget in seconds")
    p_scrape.add_argument("--json", action="store_true", help="Print result as JSON")

    args = parser.parse_args(argv)
    headless = not args.headed

    if args.cmd == "serve":
        return cmd_serve(host=args.host, port=args.port, headless=headless)
    if args.cmd == "find":
        return asyncio.run(cmd_find(headless=headless))
    if args.cmd == "scrape":
        return asyncio.run(cmd_scrape(args.kohde, as_json=args.json, headless=headless, budget_s=args.budget))
    raise SystemExit(2)


if __name__ == "__main__":
    raise SystemExit(main())
