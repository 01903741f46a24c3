"""Flippa.com search-results scraper.

Search pages: https://flippa.com/search, paginated with ?page=N.

Card markup drifts often (Angular repeat divs, then GTM-classed cards, then
Tailwind utility classes), so nothing here depends on it directly: each page
is handed to the extraction pipeline, which tries structural selectors first
and falls back to locating cards around dollar amounts.

A scan stops when:
- several pages in a row yield no confident listing (end of results),
- the page limit is reached, or
- a rate-limit / CAPTCHA page comes back.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from bs4 import BeautifulSoup
from playwright.async_api import Page

from .base import BaseScraper, ScraperConfig, ScrapeError, ScanResult
from ..config import ExtractionConfig, ScanConfig, config
from ..db.operations import ListingSink
from ..extraction.accumulator import ListingAccumulator
from ..extraction.document import normalize_whitespace
from ..extraction.pipeline import ExtractionPipeline, PageScan, merge_scan

logger = logging.getLogger(__name__)


RATE_LIMIT_INDICATORS = (
    "rate limit",
    "too many requests",
    "please try again later",
    "captcha",
    "verify you're human",
    "verify you are human",
    "access denied",
)


class StopReason:
    """Why a scan ended."""
    EMPTY_PAGES = "consecutive_empty_pages"
    MAX_PAGES = "max_pages"
    RATE_LIMITED = "rate_limited"


def detect_block_page(root: BeautifulSoup) -> str | None:
    """Return the rate-limit/CAPTCHA indicator found on a page, if any."""
    page_lower = normalize_whitespace(root.get_text(" ", strip=True)).lower()
    for indicator in RATE_LIMIT_INDICATORS:
        if indicator in page_lower:
            return indicator
    return None


@dataclass
class PageOutcome:
    """What one worker brings back for one search page."""

    page_number: int
    url: str
    scan: PageScan
    error: ScrapeError | None = None
    block_indicator: str | None = None


class FlippaScraper(BaseScraper):
    """Paginates Flippa search results through the extraction pipeline.

    Pages are fetched in rounds of `workers` pages. Within a round, pages load
    and extract concurrently; their records are then merged into the run
    accumulator in page order, so first-seen-wins stays deterministic.
    """

    PAGINATION_PARAM = "page"

    def __init__(
        self,
        headless: bool = True,
        scan_config: ScanConfig | None = None,
        extraction_config: ExtractionConfig | None = None,
        pipeline: ExtractionPipeline | None = None,
    ):
        self.scan_config = scan_config or config.scan
        extraction_settings = extraction_config or config.extraction
        scraper_config = ScraperConfig(
            source_id="flippa",
            base_url=extraction_settings.base_url,
            headless=headless,
            slow_mo=config.slow_mo,
            timeout_ms=self.scan_config.page_load_timeout_ms,
        )
        super().__init__(scraper_config)
        self.pipeline = pipeline or ExtractionPipeline(extraction_settings)

    def page_url(self, page_number: int) -> str:
        search_url = self.scan_config.search_url
        if page_number == 1:
            return search_url
        separator = "&" if "?" in search_url else "?"
        return f"{search_url}{separator}{self.PAGINATION_PARAM}={page_number}"

    # -------------------------------------------------------------------------
    # Page Helpers
    # -------------------------------------------------------------------------

    async def _load_with_retry(self, url: str, page: Page) -> BeautifulSoup:
        """Fetch a page, retrying with exponential backoff.

        Raises:
            Exception: The last fetch error once retries are exhausted.
        """
        settings = self.scan_config
        for attempt in range(settings.max_retries + 1):
            try:
                return await self.fetch_document(
                    url,
                    page,
                    timeout_ms=settings.page_load_timeout_ms,
                    idle_timeout_ms=settings.network_idle_timeout_ms,
                )
            except Exception as e:
                if attempt >= settings.max_retries:
                    raise
                retry_delay = settings.base_retry_delay_seconds * (2 ** attempt)
                logger.warning(f"Page load error ({attempt + 1}/{settings.max_retries}) for {url}: {e}")
                await asyncio.sleep(retry_delay)
        raise RuntimeError("unreachable")

    async def _scan_one(self, page_number: int, page: Page) -> PageOutcome:
        """Fetch and extract one search page. Never raises."""
        url = self.page_url(page_number)
        logger.info(f"Fetching page {page_number}: {url}")
        try:
            root = await self._load_with_retry(url, page)
        except Exception as e:
            logger.error(f"Giving up on page {page_number}: {e}")
            return PageOutcome(
                page_number=page_number,
                url=url,
                scan=PageScan(page_number=page_number),
                error=ScrapeError.from_exception(url, e),
            )

        scan = self.pipeline.scan_page(root, page_number=page_number)
        indicator = detect_block_page(root) if scan.is_empty else None
        return PageOutcome(page_number=page_number, url=url, scan=scan, block_indicator=indicator)

    @staticmethod
    def _flush(accumulator: ListingAccumulator, sink: ListingSink | None, result: ScanResult) -> None:
        if sink is None:
            return
        pending = accumulator.drain_pending()
        if pending:
            result.flushed += sink.upsert_many(pending)
            logger.info(f"Flushed {len(pending)} listings ({result.flushed} total)")

    # -------------------------------------------------------------------------
    # Scan
    # -------------------------------------------------------------------------

    async def scan(
        self,
        max_pages: int | None = None,
        workers: int | None = None,
        accumulator: ListingAccumulator | None = None,
        sink: ListingSink | None = None,
    ) -> ScanResult:
        """Scan search pages until the results run out.

        Args:
            max_pages: Optional limit on pages to scan. None = config limit.
            workers: Pages fetched concurrently per round. None = config value.
            accumulator: Run accumulator to fill. A new one is created if None.
            sink: Optional storage, flushed every `flush_every_pages` pages and
                at the end of the scan.

        Returns:
            ScanResult with the deduplicated listings and any page failures.
        """
        settings = self.scan_config
        effective_max = max_pages or settings.max_pages
        pool_size = max(1, workers or settings.workers)
        accumulator = accumulator if accumulator is not None else ListingAccumulator()
        result = ScanResult(accumulator=accumulator)

        # Inside `async with scraper:` the caller owns the browser
        owns_browser = not self._pages
        if owns_browser:
            await self.setup(pages=pool_size)
        pool_size = min(pool_size, len(self.pages))
        try:
            page_number = 1
            consecutive_empty = 0
            pages_since_flush = 0

            while page_number <= effective_max and result.stop_reason is None:
                batch = list(range(page_number, min(page_number + pool_size, effective_max + 1)))
                outcomes = await asyncio.gather(
                    *(self._scan_one(number, page) for number, page in zip(batch, self.pages))
                )

                for outcome in outcomes:
                    if outcome.block_indicator:
                        logger.warning(
                            f"Rate limit detected on page {outcome.page_number} "
                            f"('{outcome.block_indicator}'), stopping pagination"
                        )
                        result.stop_reason = StopReason.RATE_LIMITED
                        break

                    merge_scan(outcome.scan, accumulator)
                    result.pages.append(outcome.scan)
                    pages_since_flush += 1
                    if outcome.error:
                        result.errors.append(outcome.error)

                    logger.info(
                        f"Page {outcome.page_number}: {len(outcome.scan.records)} listings "
                        f"({outcome.scan.inserted} new, {len(accumulator)} total)"
                    )

                    consecutive_empty = consecutive_empty + 1 if outcome.scan.is_empty else 0
                    if consecutive_empty >= settings.max_consecutive_empty_pages:
                        logger.info(f"Stopping after {consecutive_empty} consecutive empty pages")
                        result.stop_reason = StopReason.EMPTY_PAGES
                        break

                if pages_since_flush >= settings.flush_every_pages:
                    self._flush(accumulator, sink, result)
                    pages_since_flush = 0

                page_number += len(batch)
                if result.stop_reason is None and page_number <= effective_max:
                    # Politeness delay
                    await asyncio.sleep(settings.delay_between_pages_seconds)

            if result.stop_reason is None:
                result.stop_reason = StopReason.MAX_PAGES

            self._flush(accumulator, sink, result)
            logger.info(f"{result!r}")
            return result
        finally:
            if owns_browser:
                await self.teardown()
