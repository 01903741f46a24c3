"""Base scraper class."""

from __future__ import annotations

import traceback
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, UTC

from bs4 import BeautifulSoup
from playwright.async_api import Browser, BrowserContext, Page, async_playwright
from pydantic import BaseModel, Field

from ..extraction.accumulator import ListingAccumulator
from ..extraction.document import parse_document
from ..extraction.pipeline import PageScan
from ..models.listing import ListingRecord


@dataclass
class ScrapeError:
    """Record of a page that could not be fetched."""

    url: str
    error_type: str
    error_message: str
    traceback: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_exception(cls, url: str, exc: Exception) -> "ScrapeError":
        """Create a ScrapeError from an exception."""
        return cls(
            url=url,
            error_type=type(exc).__name__,
            error_message=str(exc),
            traceback=traceback.format_exc(),
        )


@dataclass
class ScanResult:
    """Result of a scan run: deduplicated listings plus page-level failures."""

    accumulator: ListingAccumulator = field(default_factory=ListingAccumulator)
    pages: list[PageScan] = field(default_factory=list)
    errors: list[ScrapeError] = field(default_factory=list)
    flushed: int = 0
    stop_reason: str | None = None

    @property
    def records(self) -> list[ListingRecord]:
        return self.accumulator.all()

    @property
    def pages_scanned(self) -> int:
        return len(self.pages)

    @property
    def empty_pages(self) -> int:
        return sum(1 for page in self.pages if page.is_empty)

    @property
    def success_count(self) -> int:
        return len(self.accumulator)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def __repr__(self) -> str:
        return (
            f"ScanResult({self.success_count} listings from {self.pages_scanned} pages, "
            f"{self.error_count} failed, stopped: {self.stop_reason})"
        )


class ScraperConfig(BaseModel):
    """Configuration for a scraper."""

    source_id: str = Field(..., description="Unique identifier for this source")
    base_url: str = Field(..., description="Base URL for the source")
    headless: bool = Field(default=True, description="Run browser in headless mode")
    slow_mo: int = Field(default=0, description="Slow down operations by ms")
    timeout_ms: int = Field(default=30000, description="Default timeout in ms")


class BaseScraper(ABC):
    """Playwright lifecycle shared by all scrapers.

    `setup(pages=N)` opens N browser pages so up to N search pages can be
    fetched concurrently.
    """

    def __init__(self, scraper_config: ScraperConfig):
        self.config = scraper_config
        self._playwright = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._pages: list[Page] = []

    async def setup(self, pages: int = 1) -> None:
        """Initialize Playwright browser."""
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.config.headless,
            slow_mo=self.config.slow_mo,
        )
        self._context = await self._browser.new_context()
        for _ in range(pages):
            page = await self._context.new_page()
            page.set_default_timeout(self.config.timeout_ms)
            self._pages.append(page)

    async def teardown(self) -> None:
        """Cleanup browser resources."""
        for page in self._pages:
            await page.close()
        self._pages = []
        if self._context:
            await self._context.close()
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()

    @property
    def pages(self) -> list[Page]:
        """Open browser pages, raising if not initialized."""
        if not self._pages:
            raise RuntimeError("Scraper not initialized. Call setup() first.")
        return self._pages

    async def fetch_document(
        self,
        url: str,
        page: Page,
        timeout_ms: int | None = None,
        idle_timeout_ms: int | None = None,
    ) -> BeautifulSoup:
        """Load a URL and return the rendered HTML as a parsed tree."""
        timeout = timeout_ms or self.config.timeout_ms
        await page.goto(url, timeout=timeout)
        # Search results render client-side after the initial load
        await page.wait_for_load_state("networkidle", timeout=idle_timeout_ms or timeout)
        return parse_document(await page.content())

    @abstractmethod
    def page_url(self, page_number: int) -> str:
        """URL of a 1-based search results page.

        Override in subclass to implement source-specific pagination.
        """
        raise NotImplementedError

    async def __aenter__(self):
        await self.setup()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.teardown()
