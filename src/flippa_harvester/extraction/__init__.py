"""Heuristic listing extraction."""

from .accumulator import ListingAccumulator
from .document import RawContainer, parse_document
from .extractor import ExtractedField, ExtractionResult, FieldExtractor, Strategy, default_cascades
from .locator import CARD_SELECTORS, ContainerLocator
from .pipeline import ExtractionPipeline, PageScan, merge_scan

__all__ = [
    "CARD_SELECTORS",
    "ContainerLocator",
    "ExtractedField",
    "ExtractionPipeline",
    "ExtractionResult",
    "FieldExtractor",
    "ListingAccumulator",
    "PageScan",
    "RawContainer",
    "Strategy",
    "default_cascades",
    "merge_scan",
    "parse_document",
]
