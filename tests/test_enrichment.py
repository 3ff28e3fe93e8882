import unittest

from tests.helpers import flat_rows
from vakio_scraper.aliases import AliasConfig
from vakio_scraper.enrichment import enrich, implied_probabilities, top_deviations
from vakio_scraper.models import Match
from vakio_scraper.normalizer import normalize


def _match(odds=None, percent=None) -> Match:
    return Match(index=1, home="A", away="B", percent=percent or {"1": 60.0, "X": 20.0, "2": 20.0}, odds=odds)


class EnrichmentTests(unittest.TestCase):
    def test_even_book(self) -> None:
        (m,) = enrich([_match({"1": 2.0, "X": 4.0, "2": 4.0})])
        self.assertAlmostEqual(m.odds_prob_pct["1"], 50.0)
        self.assertAlmostEqual(m.odds_prob_pct["X"], 25.0)
        self.assertAlmostEqual(m.odds_prob_pct["2"], 25.0)
        self.assertAlmostEqual(m.deviation["1"], 10.0)
        self.assertAlmostEqual(m.deviation["X"], -5.0)
        self.assertAlmostEqual(m.deviation["2"], -5.0)

    def test_margin_is_removed(self) -> None:
        prob = implied_probabilities({"1": 1.8, "X": 3.4, "2": 4.2})
        self.assertAlmostEqual(sum(prob.values()), 100.0, places=9)
        self.assertGreater(prob["1"], prob["X"])
        self.assertGreater(prob["X"], prob["2"])

    def test_sum_is_hundred_for_all_rows(self) -> None:
        for m in enrich(normalize(flat_rows(13), aliases=AliasConfig())):
            self.assertAlmostEqual(sum(m.odds_prob_pct.values()), 100.0, places=9)

    def test_missing_odds_leaves_fields_unset(self) -> None:
        (m,) = enrich([_match(None)])
        self.assertIsNone(m.odds_prob_pct)
        self.assertIsNone(m.deviation)

    def test_zero_odds_do_not_raise(self) -> None:
        (m,) = enrich([_match({"1": 0.0, "X": 0.0, "2": 0.0})])
        self.assertIsNone(m.odds_prob_pct)
        self.assertIsNone(m.deviation)

    def test_partial_odds(self) -> None:
        (m,) = enrich([_match({"1": 2.0, "2": 2.0})])
        self.assertEqual(set(m.odds_prob_pct), {"1", "2"})
        self.assertAlmostEqual(m.odds_prob_pct["1"], 50.0)
        self.assertAlmostEqual(m.deviation["1"], 10.0)

    def test_idempotent(self) -> None:
        once = enrich([_match({"1": 2.5, "X": 3.1, "2": 2.9}), _match(None)])
        self.assertEqual(enrich(once), once)

    def test_input_not_mutated(self) -> None:
        m = _match({"1": 2.0, "X": 4.0, "2": 4.0})
        enrich([m])
        self.assertIsNone(m.odds_prob_pct)

    def test_top_deviations(self) -> None:
        rows = enrich([_match({"1": 2.0, "X": 4.0, "2": 4.0})])
        top = top_deviations(rows, limit=1)
        self.assertEqual(top[0][:2], (1, "1"))


if __name__ == "__main__":
    unittest.main()
