"""Logging helpers for scraper internals."""

from __future__ import annotations

import os


def _flag(name: str) -> bool:
    return os.getenv(name) in ("1", "true", "yes")


def _dbg(msg: str) -> None:
    if _flag("VAKIO_DEBUG"):
        print(f"[debug] {msg}", flush=True)


def _log_step(msg: str) -> None:
    """
    Progress logging for jobs and acquisition attempts.
    Enabled when VAKIO_PROGRESS or VAKIO_DEBUG is set.
    """
    if _flag("VAKIO_PROGRESS") or _flag("VAKIO_DEBUG"):
        print(f"[progress] {msg}", flush=True)
