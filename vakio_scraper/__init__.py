"""Veikkaus Vakio draw scraper (Playwright capture + heuristic extraction)."""
