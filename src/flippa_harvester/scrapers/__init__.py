"""Scrapers module."""

from .base import BaseScraper, ScraperConfig, ScrapeError, ScanResult
from .flippa import FlippaScraper, StopReason, detect_block_page

__all__ = [
    "BaseScraper",
    "ScraperConfig",
    "ScrapeError",
    "ScanResult",
    "FlippaScraper",
    "StopReason",
    "detect_block_page",
]
