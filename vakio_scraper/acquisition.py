from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from playwright.async_api import Page

from vakio_scraper import config
from vakio_scraper.aliases import AliasConfig, load_aliases
from vakio_scraper.browser import BrowserPool
from vakio_scraper.discovery import discover_draw_ids
from vakio_scraper.extractor import extract
from vakio_scraper.logging_utils import _dbg, _log_step
from vakio_scraper.models import DrawResult, Match
from vakio_scraper.normalizer import is_complete_draw, normalize
from vakio_scraper.veikkaus import (
    SNIPPET_LIMIT,
    DiscoveryEmpty,
    DriverLaunchFailure,
    MalformedSource,
    NavigationTimeout,
    NoMatchesFound,
    ResponseCapture,
    VeikkausError,
    fetch_json_via_page,
    global_state_texts,
    open_draw,
    open_home,
    parse_json_text,
    rest_urls,
    script_json_texts,
    snippet,
)

SOURCE_NETWORK = "network"
SOURCE_SCRIPT = "script-json"
SOURCE_GLOBAL = "global-state"
SOURCE_REST = "rest"


@dataclass
class AttemptTrace:
    """Bounded diagnostics for one attempt."""

    draw_id: str
    phase: str = "start"
    sources_tried: int = 0
    nav_failures: int = 0
    samples: List[str] = field(default_factory=list)

    def sample(self, payload: Any) -> None:
        if len(self.samples) < SNIPPET_LIMIT:
            self.samples.append(snippet(payload))

    def to_debug(self) -> Dict[str, Any]:
        return {
            "kohde": self.draw_id,
            "phase": self.phase,
            "sourcesTried": self.sources_tried,
            "jsonSnippets": list(self.samples),
        }


def match_draw(document: Any, aliases: AliasConfig) -> Optional[List[Match]]:
    matches = normalize(extract(document, aliases=aliases), aliases=aliases)
    return matches if is_complete_draw(matches) else None


async def _collect(
    page: Page,
    capture: ResponseCapture,
    draw_id: str,
    locale: str,
    trace: AttemptTrace,
    aliases: AliasConfig,
) -> Optional[Tuple[List[Match], str]]:
    def _try(doc: Any, tag: str) -> Optional[Tuple[List[Match], str]]:
        trace.sources_tried += 1
        trace.sample(doc)
        found = match_draw(doc, aliases)
        if found is None:
            return None
        return found, f"{tag}@{locale}"

    trace.phase = f"{SOURCE_NETWORK}@{locale}"
    for _url, doc in await capture.drain():
        hit = _try(doc, SOURCE_NETWORK)
        if hit:
            return hit

    trace.phase = f"{SOURCE_SCRIPT}@{locale}"
    try:
        texts = await script_json_texts(page)
    except Exception as e:
        _dbg(f"script scan failed: {e}")
        texts = []
    for text in texts:
        try:
            doc = parse_json_text(text, origin="script")
        except MalformedSource as e:
            _dbg(str(e))
            continue
        hit = _try(doc, SOURCE_SCRIPT)
        if hit:
            return hit

    trace.phase = f"{SOURCE_GLOBAL}@{locale}"
    try:
        rows = await global_state_texts(page)
    except Exception as e:
        _dbg(f"global state probe failed: {e}")
        rows = []
    for name, text in rows:
        try:
            doc = parse_json_text(text, origin=name)
        except MalformedSource as e:
            _dbg(str(e))
            continue
        hit = _try(doc, f"{SOURCE_GLOBAL}:{name}")
        if hit:
            return hit

    trace.phase = f"{SOURCE_REST}@{locale}"
    for url in rest_urls(draw_id):
        try:
            doc = await fetch_json_via_page(page, url)
        except Exception as e:
            _dbg(f"rest probe failed: {e}")
            continue
        hit = _try(doc, f"{SOURCE_REST}:{urlparse(url).path}")
        if hit:
            return hit
    return None


async def _attempt(
    page: Page,
    draw_id: str,
    locales: Sequence[str],
    trace: AttemptTrace,
    aliases: AliasConfig,
) -> DrawResult:
    with ResponseCapture(page) as capture:
        trace.phase = "home"
        await open_home(page)
        for locale in locales:
            trace.phase = f"navigate@{locale}"
            try:
                await open_draw(page, draw_id, locale)
            except NavigationTimeout as e:
                trace.nav_failures += 1
                _log_step(f"kohde={draw_id} locale={locale}: {e}")
                continue
            hit = await _collect(page, capture, draw_id, locale, trace, aliases)
            if hit is not None:
                matches, tag = hit
                trace.phase = "done"
                return DrawResult(draw_id=draw_id, matches=matches, source_tag=tag, debug=trace.to_debug())
    trace.phase = "exhausted"
    if locales and trace.nav_failures >= len(locales):
        raise NavigationTimeout(f"all draw pages failed to load for kohde={draw_id}", debug=trace.to_debug())
    raise NoMatchesFound(f"No 13-match draw found for kohde={draw_id}", debug=trace.to_debug())


async def acquire_draw(
    page: Page,
    draw_id: str,
    *,
    budget_s: Optional[float] = None,
    locales: Optional[Sequence[str]] = None,
    aliases: Optional[AliasConfig] = None,
) -> DrawResult:
    """
    One acquisition attempt for `draw_id`: home page, then each locale variant
    of the draw page, trying network/script/global-state/REST sources until a
    complete 13-match draw is normalized. The whole attempt is bounded by
    `budget_s`; partial draws are never returned.
    """
    budget = budget_s if budget_s is not None else config.budget_s()
    trace = AttemptTrace(draw_id=draw_id)
    try:
        return await asyncio.wait_for(
            _attempt(page, draw_id, tuple(locales or config.locales()), trace, aliases or load_aliases()),
            timeout=budget,
        )
    except asyncio.TimeoutError:
        raise NavigationTimeout(
            f"budget {budget:g}s exceeded for kohde={draw_id} (phase={trace.phase})",
            debug=trace.to_debug(),
        ) from None


class BrowserRunner:
    """Resolves a target (None = auto) and acquires its draw in a fresh browser session."""

    def __init__(self, pool: BrowserPool, *, attempts: Optional[int] = None, budget_s: Optional[float] = None):
        self.pool = pool
        self.attempts = attempts or config.attempts()
        self.budget_s = budget_s

    async def find(self) -> List[str]:
        async with self.pool.session() as page:
            return await discover_draw_ids(page)

    async def _resolve(self, page: Page, budget: float) -> str:
        try:
            ids = await asyncio.wait_for(discover_draw_ids(page), timeout=budget)
        except asyncio.TimeoutError:
            raise NavigationTimeout(
                f"budget {budget:g}s exceeded during auto-find", debug={"phase": "auto-find"}
            ) from None
        if not ids:
            raise DiscoveryEmpty("Could not find a kohde automatically", debug={"phase": "auto-find"})
        return ids[0]

    async def __call__(self, draw_id: Optional[str]) -> DrawResult:
        last: Optional[VeikkausError] = None
        for n in range(1, self.attempts + 1):
            try:
                async with self.pool.session() as page:
                    # Discovery and acquisition share one deadline per attempt.
                    budget = self.budget_s if self.budget_s is not None else config.budget_s()
                    loop = asyncio.get_running_loop()
                    deadline = loop.time() + budget
                    target = draw_id
                    if target is None:
                        target = await self._resolve(page, budget)
                    remaining = deadline - loop.time()
                    if remaining <= 0:
                        raise NavigationTimeout(
                            f"budget {budget:g}s exceeded before acquiring kohde={target}",
                            debug={"phase": "auto-find"},
                        )
                    return await acquire_draw(page, target, budget_s=remaining)
            except (DiscoveryEmpty, DriverLaunchFailure):
                raise
            except VeikkausError as e:
                last = e
                _log_step(f"attempt {n}/{self.attempts} failed: {e}")
        raise last or NoMatchesFound(f"no attempt completed for kohde={draw_id}")
