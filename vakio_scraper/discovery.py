"""Draw identifier (kohde) discovery from listing pages."""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence, Set, Tuple
from urllib.parse import parse_qs, urljoin, urlparse

from playwright.async_api import Page

from vakio_scraper import config
from vakio_scraper.logging_utils import _dbg, _log_step
from vakio_scraper.veikkaus import _dismiss_overlays_basic, _safe_goto

_KOHDE_TEXT_RE = re.compile(r"[?&](?:amp;)?kohde=([A-Za-z0-9_\-]+)")
_LAST_DIGITS_RE = re.compile(r"(\d+)(?!.*\d)")


def draw_sort_key(draw_id: str) -> Tuple[int, str]:
    m = _LAST_DIGITS_RE.search(draw_id or "")
    return (int(m.group(1)) if m else -1, draw_id or "")


def order_draw_ids(ids: Iterable[str]) -> List[str]:
    """Deduplicate and order newest first (numeric suffix, descending)."""
    uniq = {i.strip() for i in ids if isinstance(i, str) and i.strip()}
    return sorted(uniq, key=draw_sort_key, reverse=True)


def ids_from_hrefs(hrefs: Iterable[str], *, base: Optional[str] = None) -> List[str]:
    base = base or config.base_url()
    out: List[str] = []
    for href in hrefs:
        if not isinstance(href, str) or not href:
            continue
        try:
            query = urlparse(urljoin(base, href)).query
        except ValueError:
            continue
        for val in parse_qs(query).get("kohde", []):
            if val.strip():
                out.append(val.strip())
    return out


def ids_from_text(text: str) -> List[str]:
    return _KOHDE_TEXT_RE.findall(text or "")


async def _page_ids(page: Page) -> Set[str]:
    found: Set[str] = set()
    try:
        hrefs = await page.eval_on_selector_all(
            'a[href*="kohde="]',
            "(as) => as.map((a) => a.getAttribute('href')).filter(Boolean)",
        )
        found.update(ids_from_hrefs(hrefs or []))
    except Exception as e:
        _dbg(f"anchor scan failed: {e}")
    # Raw markup scan catches ids in inline scripts/data attributes.
    try:
        found.update(ids_from_text(await page.content()))
    except Exception as e:
        _dbg(f"text scan failed: {e}")
    return found


async def discover_draw_ids(page: Page, listing_urls: Optional[Sequence[str]] = None) -> List[str]:
    """
    Visit listing pages and return draw ids, newest first.
    Empty list when nothing was found; callers decide whether that is an error.
    """
    urls = list(listing_urls) if listing_urls is not None else config.listing_urls()
    found: Set[str] = set()
    for url in urls:
        try:
            await _safe_goto(page, url)
        except Exception as e:
            _dbg(f"listing skipped url={url}: {e}")
            continue
        try:
            await _dismiss_overlays_basic(page)
        except Exception:
            pass
        try:
            await page.wait_for_load_state("networkidle", timeout=6_000)
        except Exception:
            pass
        found.update(await _page_ids(page))
    ordered = order_draw_ids(found)
    _log_step(f"discovery: {len(ordered)} kohde ids {ordered[:5]}")
    return ordered
