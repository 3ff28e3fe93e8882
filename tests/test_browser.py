import unittest
from unittest.mock import AsyncMock, MagicMock

from vakio_scraper.browser import BrowserPool


def _context(*, page_error=None, page_close_error=None):
    page = MagicMock()
    page.close = AsyncMock(side_effect=page_close_error)
    context = MagicMock()
    context.add_init_script = AsyncMock()
    context.new_page = AsyncMock(side_effect=page_error, return_value=page)
    context.close = AsyncMock()
    return context, page


def _pool(context):
    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    pool = BrowserPool(max_sessions=1)
    pool.ensure_browser = AsyncMock(return_value=browser)
    return pool


class BrowserPoolSessionTests(unittest.IsolatedAsyncioTestCase):
    async def test_session_closes_page_and_context(self) -> None:
        context, page = _context()
        async with _pool(context).session() as got:
            self.assertIs(got, page)
        page.close.assert_awaited_once()
        context.close.assert_awaited_once()

    async def test_context_closed_when_body_raises(self) -> None:
        context, page = _context()
        with self.assertRaises(ValueError):
            async with _pool(context).session():
                raise ValueError("boom")
        page.close.assert_awaited_once()
        context.close.assert_awaited_once()

    async def test_context_closed_when_new_page_fails(self) -> None:
        context, _page = _context(page_error=RuntimeError("Target closed"))
        with self.assertRaises(RuntimeError):
            async with _pool(context).session():
                self.fail("session body must not run")
        context.close.assert_awaited_once()

    async def test_context_closed_when_page_close_fails(self) -> None:
        context, page = _context(page_close_error=RuntimeError("already closed"))
        async with _pool(context).session():
            pass
        page.close.assert_awaited_once()
        context.close.assert_awaited_once()

    async def test_failed_init_script_is_not_fatal(self) -> None:
        context, page = _context()
        context.add_init_script = AsyncMock(side_effect=RuntimeError("nope"))
        async with _pool(context).session() as got:
            self.assertIs(got, page)
        context.close.assert_awaited_once()

    async def test_slot_released_after_failure(self) -> None:
        context, _page = _context(page_error=RuntimeError("Target closed"))
        pool = _pool(context)
        for _ in range(2):
            with self.assertRaises(RuntimeError):
                async with pool.session():
                    pass
        self.assertEqual(context.close.await_count, 2)


if __name__ == "__main__":
    unittest.main()
