"""Veikkaus page helpers: navigation, consent, and raw JSON sources."""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from playwright.async_api import Page, Response

from vakio_scraper import config
from vakio_scraper.logging_utils import _dbg

SNIPPET_CHARS = 500
SNIPPET_LIMIT = 3
GLOBAL_STATE_MAX_CHARS = 2_000_000


class VeikkausError(RuntimeError):
    code = "veikkaus_error"

    def __init__(self, message: str = "", *, debug: Optional[Dict[str, Any]] = None):
        super().__init__(message or self.code)
        self.debug = debug


class NavigationTimeout(VeikkausError):
    code = "navigation_timeout"


class NoMatchesFound(VeikkausError):
    code = "no_matches_found"


class MalformedSource(VeikkausError):
    code = "malformed_source"


class DriverLaunchFailure(VeikkausError):
    code = "driver_launch_failure"


class DiscoveryEmpty(VeikkausError):
    code = "discovery_empty"


def error_code(ex: BaseException) -> Tuple[str, str]:
    """Exception -> (code, short human-readable text) for JobState.last_error."""
    text = re.sub(r"\s+", " ", str(ex or "")).strip()
    if isinstance(ex, VeikkausError):
        return ex.code, text or ex.code
    if isinstance(ex, asyncio.TimeoutError):
        return NavigationTimeout.code, text or "timed out"
    lo = text.lower()
    if "timeout" in lo and "exceeded" in lo:
        return NavigationTimeout.code, text
    if "executable doesn't exist" in lo or "browsertype.launch" in lo:
        return DriverLaunchFailure.code, text
    return "unexpected", text or type(ex).__name__


def format_error(ex: BaseException) -> str:
    code, text = error_code(ex)
    if text == code:
        return text
    return f"{text[:300]} (code={code})"


def snippet(text: Any) -> str:
    s = text if isinstance(text, str) else json.dumps(text, ensure_ascii=False, default=str)
    return s[:SNIPPET_CHARS]


async def _safe_goto(page: Page, url: str, *, timeout_ms: Optional[int] = None) -> None:
    """
    Navigation helper:
    - try domcontentloaded
    - on failure, retry with wait_until='commit'
    Raises NavigationTimeout only if both fail.
    """
    timeout_ms = timeout_ms or config.nav_timeout_ms()
    try:
        await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        return
    except Exception as e:
        _dbg(f"goto domcontentloaded failed url={url}: {e}")
    try:
        await page.goto(url, wait_until="commit", timeout=timeout_ms)
    except Exception as e:
        raise NavigationTimeout(f"navigation failed for {url}: {e}") from e


async def _dismiss_overlays_basic(page: Page) -> None:
    try:
        await page.keyboard.press("Escape")
    except Exception:
        pass

    # Cookie/consent dialogs (FI/SV/EN labels).
    for rx in (
        r"hyväksy kaikki|godkänn alla|acceptera alla|accept all|allow all",
        r"^\s*(hyväksy|godkänn|acceptera|i agree|agree|ok)\s*$",
        r"tallenna|spara|save|confirm",
    ):
        try:
            btn = page.locator("button").filter(has_text=re.compile(rx, re.I))
            if await btn.count() and await btn.first.is_visible():
                await btn.first.click(timeout=2000, force=True)
                await page.wait_for_timeout(350)
                return
        except Exception:
            pass


async def open_home(page: Page) -> None:
    """Establish cookies/consent on the site root. Failures are ignored."""
    try:
        await _safe_goto(page, config.home_url())
    except Exception as e:
        _dbg(f"home navigation ignored: {e}")
        return
    try:
        await _dismiss_overlays_basic(page)
    except Exception:
        pass


async def open_draw(page: Page, draw_id: str, locale: str) -> None:
    await _safe_goto(page, config.draw_url(draw_id, locale))
    try:
        await page.wait_for_load_state("networkidle", timeout=8_000)
    except Exception:
        pass
    try:
        await _dismiss_overlays_basic(page)
    except Exception:
        pass


class ResponseCapture:
    """
    Collects JSON bodies of responses observed on one page.

    Handlers run as tasks; `drain()` awaits pending handlers and returns the
    documents captured since the previous drain.
    """

    def __init__(self, page: Page, *, max_docs: int = 200):
        self.page = page
        self.max_docs = max_docs
        self._docs: List[Tuple[str, Any]] = []
        self._tasks: set = set()
        self._closed = False

    def __enter__(self) -> "ResponseCapture":
        self.page.on("response", self._on_response)
        return self

    def __exit__(self, *exc: Any) -> None:
        self._closed = True
        try:
            self.page.remove_listener("response", self._on_response)
        except Exception:
            pass
        for t in list(self._tasks):
            t.cancel()

    @staticmethod
    def _is_json(resp: Response) -> bool:
        try:
            ctype = (resp.headers or {}).get("content-type") or ""
        except Exception:
            return False
        return "json" in ctype.lower()

    async def _handle(self, resp: Response) -> None:
        try:
            if resp.status != 200 or not self._is_json(resp):
                return
            data = await resp.json()
        except Exception as e:
            # Body can be unavailable after navigation (redirects, evicted cache).
            _dbg(f"response body skipped url={getattr(resp, 'url', '?')}: {e}")
            return
        if len(self._docs) < self.max_docs:
            self._docs.append((resp.url, data))

    def _on_response(self, resp: Response) -> None:
        if self._closed:
            return
        t = asyncio.create_task(self._handle(resp))
        self._tasks.add(t)

        def _done(tt: asyncio.Task) -> None:
            self._tasks.discard(tt)
            try:
                if not tt.cancelled():
                    _ = tt.exception()
            except Exception:
                pass

        t.add_done_callback(_done)

    async def drain(self) -> List[Tuple[str, Any]]:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        docs, self._docs = self._docs, []
        return docs


def parse_json_text(text: str, *, origin: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError) as e:
        raise MalformedSource(f"invalid JSON from {origin}: {snippet(text or '')[:200]}") from e


async def script_json_texts(page: Page) -> List[str]:
    texts = await page.evaluate(
        """
        () => Array.from(document.querySelectorAll(
            "script[type='application/json'], script[type='application/ld+json'], script#__NEXT_DATA__"
          ))
          .map((s) => s.textContent || '')
          .filter((t) => t.trim().length > 0)
        """
    )
    return [t for t in (texts or []) if isinstance(t, str)]


async def global_state_texts(page: Page) -> List[Tuple[str, str]]:
    """JSON-serialized well-known SPA state globals, size capped."""
    rows = await page.evaluate(
        """
        (maxChars) => {
          const names = ['__NEXT_DATA__', '__NUXT__', '__INITIAL_STATE__', '__PRELOADED_STATE__',
                         '__APOLLO_STATE__', '__APP_STATE__', '__STATE__', 'initialState'];
          for (const k of Object.keys(window)) {
            if (/^__[A-Z0-9_]+__$/.test(k) && !names.includes(k)) names.push(k);
          }
          const out = [];
          for (const name of names.slice(0, 20)) {
            try {
              const v = window[name];
              if (!v || typeof v !== 'object') continue;
              const text = JSON.stringify(v);
              if (text && text.length <= maxChars) out.push([name, text]);
            } catch (e) {}
          }
          return out;
        }
        """,
        GLOBAL_STATE_MAX_CHARS,
    )
    return [(str(r[0]), str(r[1])) for r in (rows or []) if isinstance(r, (list, tuple)) and len(r) == 2]


async def fetch_json_via_page(page: Page, url: str) -> Any:
    """Credentialed same-origin fetch from the page's execution context."""
    result = await page.evaluate(
        """
        async (url) => {
          const ac = new AbortController();
          const t = setTimeout(() => ac.abort(), 10000);
          try {
            const r = await fetch(url, { credentials: "include", signal: ac.signal });
            const text = await r.text();
            return { status: r.status, text };
          } catch (e) {
            return { status: 0, text: String(e && e.message ? e.message : e) };
          } finally {
            clearTimeout(t);
          }
        }
        """,
        url,
    )
    status = int(result.get("status") or 0)
    text = result.get("text") or ""
    if status != 200:
        raise VeikkausError(f"HTTP {status} for {url}: {text[:200]}")
    return parse_json_text(text, origin=url)


def rest_urls(draw_id: str) -> List[str]:
    base = config.base_url()
    return [base + p.format(draw=quote(draw_id, safe="")) for p in config.rest_paths()]
