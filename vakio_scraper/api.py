"""FastAPI application exposing draw discovery and background scrape jobs.

Usage (dev):
  uvicorn vakio_scraper.api:app --host 0.0.0.0 --port 10000

Endpoints:
  GET /health                           - liveness, answers immediately
  GET /api/veikkaus/find                - discovered kohde ids, newest first
  GET /api/veikkaus/kick?kohde=&force=1 - start a job (auto when kohde is empty)
  GET /api/veikkaus/last?kohde=         - job status / result snapshot
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from vakio_scraper import config
from vakio_scraper.acquisition import BrowserRunner
from vakio_scraper.browser import BrowserPool
from vakio_scraper.jobs import JobScheduler
from vakio_scraper.logging_utils import _log_step
from vakio_scraper.models import AUTO
from vakio_scraper.veikkaus import format_error

Finder = Callable[[], Awaitable[List[str]]]

_STARTED = time.monotonic()


async def _refresh_loop(scheduler: JobScheduler, interval_s: float) -> None:
    while True:
        await asyncio.sleep(interval_s)
        evicted = scheduler.cache.evict_stale()
        res = scheduler.kick(AUTO)
        _log_step(f"periodic refresh: accepted={res.accepted} evicted={evicted}")


def create_app(
    scheduler: Optional[JobScheduler] = None,
    finder: Optional[Finder] = None,
    *,
    headless: bool = True,
) -> FastAPI:
    pool: Optional[BrowserPool] = None
    if scheduler is None or finder is None:
        pool = BrowserPool(headless=headless)
        runner = BrowserRunner(pool)
        scheduler = scheduler or JobScheduler(runner)
        finder = finder or runner.find

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        refresh_task = None
        interval = config.refresh_s()
        if interval > 0:
            refresh_task = asyncio.create_task(_refresh_loop(scheduler, interval))
        try:
            yield
        finally:
            if refresh_task is not None:
                refresh_task.cancel()
                await asyncio.gather(refresh_task, return_exceptions=True)
            await scheduler.shutdown()
            if pool is not None:
                await pool.close()

    app = FastAPI(title="vakio-scraper", version="0.1.0", lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["GET", "OPTIONS"], allow_headers=["*"])
    app.state.scheduler = scheduler

    @app.get("/health")
    async def health():
        return {
            "ok": True,
            "status": "healthy",
            "uptime": time.monotonic() - _STARTED,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return "vakio-scraper is running • use /api/veikkaus/find, /kick, /last"

    @app.get("/api/veikkaus/find")
    async def find():
        try:
            ids = await finder()
        except Exception as e:
            return JSONResponse(status_code=500, content={"ok": False, "error": format_error(e)})
        if not ids:
            return JSONResponse(status_code=404, content={"ok": False, "error": "No kohde found"})
        return {"ok": True, "kohde": ids[0], "kohdes": ids}

    @app.get("/api/veikkaus/kick")
    async def kick(kohde: str = Query(default=""), force: str = Query(default="0")):
        res = scheduler.kick(kohde.strip() or None, force=force.strip().lower() in ("1", "true", "yes"))
        return res.to_json()

    @app.get("/api/veikkaus/last")
    async def last(kohde: str = Query(default="")):
        return scheduler.status(kohde.strip() or None)

    return app


app = create_app()
