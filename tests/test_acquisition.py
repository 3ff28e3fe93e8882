import asyncio
import json
import unittest
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

from tests.helpers import draw_result, flat_rows
from vakio_scraper.acquisition import BrowserRunner, acquire_draw
from vakio_scraper.aliases import AliasConfig
from vakio_scraper.veikkaus import DiscoveryEmpty, NavigationTimeout, NoMatchesFound, VeikkausError

FULL = {"draws": [{"rows": flat_rows(13)}]}
PARTIAL = {"draws": [{"rows": flat_rows(10)}]}


class FakeCapture:
    def __init__(self, *batches):
        self.batches = list(batches)

    def __call__(self, page):
        return self

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return None

    async def drain(self):
        return self.batches.pop(0) if self.batches else []


class AcquireDrawTests(unittest.IsolatedAsyncioTestCase):
    def _patches(self, *, capture=None, scripts=None, globals_=None, fetch=None, open_draw=None, rest=None):
        return [
            patch("vakio_scraper.acquisition.open_home", new=AsyncMock()),
            patch("vakio_scraper.acquisition.open_draw", new=open_draw or AsyncMock()),
            patch("vakio_scraper.acquisition.ResponseCapture", new=capture or FakeCapture()),
            patch("vakio_scraper.acquisition.script_json_texts", new=AsyncMock(side_effect=scripts or (lambda p: []))),
            patch("vakio_scraper.acquisition.global_state_texts", new=AsyncMock(side_effect=globals_ or (lambda p: []))),
            patch(
                "vakio_scraper.acquisition.fetch_json_via_page",
                new=fetch or AsyncMock(side_effect=VeikkausError("HTTP 404")),
            ),
            patch("vakio_scraper.acquisition.rest_urls", new=rest or (lambda d: ["https://h/api/a"])),
        ]

    async def _acquire(self, patches, *, budget_s=5.0):
        for p in patches:
            p.start()
            self.addCleanup(p.stop)
        return await acquire_draw(MagicMock(), "a_100522", budget_s=budget_s, locales=("sv", "fi"), aliases=AliasConfig())

    async def test_network_source_wins(self) -> None:
        open_draw = AsyncMock()
        res = await self._acquire(self._patches(capture=FakeCapture([("u", FULL)]), open_draw=open_draw))
        self.assertEqual(res.source_tag, "network@sv")
        self.assertEqual(len(res.matches), 13)
        self.assertEqual(res.draw_id, "a_100522")
        self.assertEqual(open_draw.await_count, 1)

    async def test_partial_network_then_script_json(self) -> None:
        scripts = lambda p: ["{not json", json.dumps(FULL)]
        res = await self._acquire(self._patches(capture=FakeCapture([("u", PARTIAL)]), scripts=scripts))
        self.assertEqual(res.source_tag, "script-json@sv")
        self.assertEqual([m.index for m in res.matches], list(range(1, 14)))

    async def test_second_locale_global_state(self) -> None:
        calls = []

        def globals_(page):
            calls.append(1)
            return [] if len(calls) == 1 else [("__NEXT_DATA__", json.dumps({"props": FULL}))]

        open_draw = AsyncMock()
        res = await self._acquire(self._patches(globals_=globals_, open_draw=open_draw))
        self.assertEqual(res.source_tag, "global-state:__NEXT_DATA__@fi")
        self.assertEqual([c.args[2] for c in open_draw.await_args_list], ["sv", "fi"])

    async def test_rest_probe(self) -> None:
        fetch = AsyncMock(side_effect=[VeikkausError("HTTP 404"), FULL])
        res = await self._acquire(
            self._patches(fetch=fetch, rest=lambda d: ["https://h/api/a", "https://h/api/b?kohde=" + d])
        )
        self.assertEqual(res.source_tag, "rest:/api/b@sv")

    async def test_partial_everywhere_is_no_matches(self) -> None:
        with self.assertRaises(NoMatchesFound) as ctx:
            await self._acquire(self._patches(capture=FakeCapture([("u", PARTIAL)], [("u", PARTIAL)])))
        debug = ctx.exception.debug
        self.assertEqual(debug["phase"], "exhausted")
        self.assertLessEqual(len(debug["jsonSnippets"]), 3)
        self.assertTrue(all(len(s) <= 500 for s in debug["jsonSnippets"]))

    async def test_budget_exceeded_is_timeout(self) -> None:
        async def slow(page, draw_id, locale):
            await asyncio.sleep(5)

        with self.assertRaises(NavigationTimeout) as ctx:
            await self._acquire(self._patches(open_draw=AsyncMock(side_effect=slow)), budget_s=0.05)
        self.assertIn("budget", str(ctx.exception))

    async def test_all_navigations_failed(self) -> None:
        with self.assertRaises(NavigationTimeout):
            await self._acquire(self._patches(open_draw=AsyncMock(side_effect=NavigationTimeout("nav"))))


class FakePool:
    def __init__(self):
        self.sessions = 0

    @asynccontextmanager
    async def session(self):
        self.sessions += 1
        yield MagicMock()


class BrowserRunnerTests(unittest.IsolatedAsyncioTestCase):
    async def test_auto_uses_newest_discovered(self) -> None:
        acquire = AsyncMock(return_value=draw_result("a_100522"))
        with patch("vakio_scraper.acquisition.discover_draw_ids", new=AsyncMock(return_value=["a_100522", "a_1"])), patch(
            "vakio_scraper.acquisition.acquire_draw", new=acquire
        ):
            res = await BrowserRunner(FakePool(), attempts=1)(None)
        self.assertEqual(res.draw_id, "a_100522")
        self.assertEqual(acquire.await_args.args[1], "a_100522")

    async def test_auto_empty_discovery(self) -> None:
        with patch("vakio_scraper.acquisition.discover_draw_ids", new=AsyncMock(return_value=[])):
            with self.assertRaises(DiscoveryEmpty):
                await BrowserRunner(FakePool(), attempts=2)(None)

    async def test_slow_discovery_is_bounded_by_budget(self) -> None:
        async def slow_discovery(page):
            await asyncio.sleep(5)
            return ["a_100522"]

        acquire = AsyncMock(return_value=draw_result("a_100522"))
        with patch("vakio_scraper.acquisition.discover_draw_ids", new=slow_discovery), patch(
            "vakio_scraper.acquisition.acquire_draw", new=acquire
        ):
            with self.assertRaises(NavigationTimeout) as ctx:
                await BrowserRunner(FakePool(), attempts=1, budget_s=0.05)(None)
        self.assertIn("auto-find", str(ctx.exception))
        self.assertEqual(acquire.await_count, 0)

    async def test_acquisition_gets_remaining_budget(self) -> None:
        acquire = AsyncMock(return_value=draw_result("a_100522"))
        with patch("vakio_scraper.acquisition.discover_draw_ids", new=AsyncMock(return_value=["a_100522"])), patch(
            "vakio_scraper.acquisition.acquire_draw", new=acquire
        ):
            await BrowserRunner(FakePool(), attempts=1, budget_s=10.0)(None)
        remaining = acquire.await_args.kwargs["budget_s"]
        self.assertGreater(remaining, 0)
        self.assertLessEqual(remaining, 10.0)

    async def test_one_retry_with_fresh_session(self) -> None:
        pool = FakePool()
        acquire = AsyncMock(side_effect=[NoMatchesFound("none"), draw_result("a_5")])
        with patch("vakio_scraper.acquisition.acquire_draw", new=acquire):
            res = await BrowserRunner(pool, attempts=2)("a_5")
        self.assertEqual(res.draw_id, "a_5")
        self.assertEqual(pool.sessions, 2)

    async def test_failure_reported_after_attempts(self) -> None:
        acquire = AsyncMock(side_effect=NoMatchesFound("none"))
        with patch("vakio_scraper.acquisition.acquire_draw", new=acquire):
            with self.assertRaises(NoMatchesFound):
                await BrowserRunner(FakePool(), attempts=1)("a_5")
        self.assertEqual(acquire.await_count, 1)


if __name__ == "__main__":
    unittest.main()
