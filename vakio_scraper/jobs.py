"""
In-memory job registry and result cache.

Single owner per key: only the task started by `JobScheduler.kick` for a key
mutates that key's JobState; an auto success writes a concrete kohde's state
only while no job for that kohde is running. A fresh cache entry for a key
always matches the draw its JobState reports. `kick` marks the key running before the task is
created and never awaits in between, so concurrent kicks on one event loop
cannot both start a job.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from vakio_scraper import config
from vakio_scraper.enrichment import enrich
from vakio_scraper.logging_utils import _log_step
from vakio_scraper.models import AUTO, CacheEntry, DrawResult, JobState, KickResult
from vakio_scraper.veikkaus import VeikkausError, format_error

Runner = Callable[[Optional[str]], Awaitable[DrawResult]]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def target_key(draw_id: Optional[str]) -> str:
    raw = (draw_id or "").strip()
    return raw if raw and raw != AUTO else AUTO


class ResultCache:
    def __init__(self, ttl_s: Optional[float] = None, *, clock: Callable[[], float] = time.time):
        self.ttl_s = config.cache_ttl_s() if ttl_s is None else float(ttl_s)
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def is_fresh(self, entry: CacheEntry) -> bool:
        return (self.clock() - entry.created_at) < self.ttl_s

    def get(self, key: str) -> Optional[CacheEntry]:
        """Fresh entry or None. Stale entries stay stored until overwritten or evicted."""
        entry = self._entries.get(key)
        if entry is None or not self.is_fresh(entry):
            return None
        return entry

    def put(self, key: str, result: DrawResult) -> CacheEntry:
        entry = CacheEntry(created_at=self.clock(), result=result)
        self._entries[key] = entry
        return entry

    def discard(self, key: str) -> None:
        self._entries.pop(key, None)

    def evict_stale(self) -> int:
        stale = [k for k, e in self._entries.items() if not self.is_fresh(e)]
        for k in stale:
            del self._entries[k]
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)


class JobScheduler:
    def __init__(self, runner: Runner, *, cache: Optional[ResultCache] = None):
        self.runner = runner
        self.cache = cache if cache is not None else ResultCache()
        self._states: Dict[str, JobState] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    def _state(self, key: str) -> JobState:
        st = self._states.get(key)
        if st is None:
            st = JobState(key=key)
            self._states[key] = st
        return st

    def is_running(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def kick(self, draw_id: Optional[str] = None, *, force: bool = False) -> KickResult:
        key = target_key(draw_id)
        mode = AUTO if key == AUTO else "kohde"
        target = None if key == AUTO else key
        if self.is_running(key):
            return KickResult(
                accepted=False,
                already_running=True,
                reused_cache=False,
                mode=mode,
                target=target,
                message="Job already running",
            )
        cached = None if force else self.cache.get(key)
        if cached is not None:
            return KickResult(
                accepted=False,
                already_running=False,
                reused_cache=True,
                mode=mode,
                target=cached.result.draw_id,
                message="Already done, reusing cache",
            )
        st = self._state(key)
        st.in_progress = True
        st.last_error = None
        self._tasks[key] = asyncio.get_running_loop().create_task(self._run(key, target))
        _log_step(f"job started key={key} force={force}")
        return KickResult(
            accepted=True,
            already_running=False,
            reused_cache=False,
            mode=mode,
            target=target,
            message="Job started (background)",
        )

    async def _run(self, key: str, draw_id: Optional[str]) -> None:
        st = self._state(key)
        try:
            result = await self.runner(draw_id)
            result = DrawResult(
                draw_id=result.draw_id,
                matches=enrich(result.matches),
                source_tag=result.source_tag,
                debug=result.debug,
            )
        except asyncio.CancelledError:
            st.in_progress = False
            st.last_error = "cancelled"
            st.updated_at = _now_iso()
            raise
        except Exception as e:
            # A failed run supersedes any earlier result for this key.
            self.cache.discard(key)
            st.in_progress = False
            st.last_error = format_error(e)
            st.updated_at = _now_iso()
            st.draw_id = draw_id
            st.matches = None
            st.source_tag = None
            st.debug = e.debug if isinstance(e, VeikkausError) else None
            _log_step(f"job failed key={key}: {st.last_error}")
            return
        self._store(key, result)
        if key == AUTO and not self.is_running(result.draw_id):
            # Auto successes are also served under the concrete kohde.
            self._store(result.draw_id, result)
        _log_step(f"job done key={key} kohde={result.draw_id} source={result.source_tag}")

    def _store(self, key: str, result: DrawResult) -> None:
        """Cache `result` under `key` and publish it on that key's state in one step."""
        self.cache.put(key, result)
        st = self._state(key)
        st.in_progress = False
        st.last_error = None
        st.updated_at = _now_iso()
        st.draw_id = result.draw_id
        st.matches = list(result.matches)
        st.source_tag = result.source_tag
        st.debug = result.debug

    def status(self, draw_id: Optional[str] = None) -> Dict[str, Any]:
        key = target_key(draw_id)
        st = self._states.get(key)
        if st is None:
            return JobState(key=key, in_progress=self.is_running(key)).snapshot()
        return st.snapshot()

    async def wait(self, draw_id: Optional[str] = None) -> Dict[str, Any]:
        key = target_key(draw_id)
        task = self._tasks.get(key)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return self.status(key)

    async def shutdown(self) -> None:
        tasks = [t for t in self._tasks.values() if not t.done()]
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
