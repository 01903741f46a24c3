"""Page-level extraction: locate containers, extract fields, keep confident ones."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, Tag

from ..config import ExtractionConfig, config
from ..models.listing import ListingRecord
from .accumulator import ListingAccumulator
from .extractor import FieldExtractor
from .locator import ContainerLocator

logger = logging.getLogger(__name__)


@dataclass
class PageScan:
    """Outcome of extracting one page."""

    page_number: int | None = None
    containers_found: int = 0
    records: list[ListingRecord] = field(default_factory=list)
    rejected: int = 0  # Containers below the confidence threshold
    inserted: int = 0
    duplicates: int = 0
    errors: list[str] = field(default_factory=list)  # Swallowed per-field errors

    @property
    def is_empty(self) -> bool:
        """True when the page produced no acceptable listing."""
        return not self.records

    def __repr__(self) -> str:
        return (
            f"PageScan(page={self.page_number}, {self.containers_found} containers, "
            f"{len(self.records)} accepted, {self.rejected} rejected, {self.inserted} new)"
        )


class ExtractionPipeline:
    """Container Locator + Field Extractor for a whole scan run.

    Holds no page state; one instance serves every page of a run so that
    synthetic identifiers stay unique across pages.
    """

    def __init__(
        self,
        settings: ExtractionConfig | None = None,
        locator: ContainerLocator | None = None,
        extractor: FieldExtractor | None = None,
    ):
        self.settings = settings or config.extraction
        self.locator = locator or ContainerLocator(self.settings)
        self.extractor = extractor or FieldExtractor(self.settings)

    def scan_page(self, root: BeautifulSoup | Tag, page_number: int | None = None) -> PageScan:
        """Extract accepted records from a page without touching an accumulator."""
        containers = self.locator.locate(root)
        scan = PageScan(page_number=page_number, containers_found=len(containers))

        for container in containers:
            result = self.extractor.extract(container)
            scan.errors.extend(result.errors)
            record = self.extractor.accept(result, page_number=page_number)
            if record is None:
                scan.rejected += 1
                continue
            scan.records.append(record)

        logger.debug(f"{scan!r}")
        return scan

    def process(
        self,
        root: BeautifulSoup | Tag,
        accumulator: ListingAccumulator,
        page_number: int | None = None,
    ) -> PageScan:
        """Extract a page and insert its records into the run accumulator."""
        scan = self.scan_page(root, page_number=page_number)
        merge_scan(scan, accumulator)
        return scan


def merge_scan(scan: PageScan, accumulator: ListingAccumulator) -> None:
    """Insert a page's records, counting new and duplicate listings."""
    for record in scan.records:
        if accumulator.insert(record):
            scan.inserted += 1
        else:
            scan.duplicates += 1
