"""Field Extractor: infer listing fields from one container.

Each field has an ordered cascade of strategies. The first strategy that
returns a hit wins; later strategies are noisier and only run when the
earlier ones miss. Every hit adds its field's weight to the container's
confidence score, and containers scoring below `min_confidence` are dropped
as noise.

Fields run in dependency order: url before identifier and title (both reuse
the listing link), price and recurring value before the derived multiple.
"""

from __future__ import annotations

import itertools
import logging
import re
import secrets
import time
from dataclasses import dataclass, field
from typing import Any, Callable
from urllib.parse import urlparse

from ..config import ExtractionConfig, config
from ..models.listing import ListingRecord
from .document import Anchor, RawContainer, normalize_whitespace
from .patterns import (
    ATTRIBUTE_ID_RE,
    BADGE_KEYWORDS,
    BASIS_RE,
    GENERIC_LINK_TEXT,
    HEADLINE_CATEGORY_RE,
    ID_ATTRIBUTES,
    LISTING_ELEMENT_ID_RE,
    LISTING_ID_PATH_RE,
    MULTIPLE_RE,
    NAVIGATION_PATHS,
    PRICE_PATTERNS,
    RECURRING_PATTERNS,
    AmountPattern,
    amount_from_match,
    is_monthly,
    trailing_basis,
)

logger = logging.getLogger(__name__)

FIELD_ORDER = (
    "url",
    "identifier",
    "title",
    "price",
    "monthly_recurring_value",
    "multiple",
    "category",
    "badges",
)

SYNTHETIC_PREFIX = "syn-"


# =============================================================================
# Result Types
# =============================================================================

@dataclass(frozen=True)
class ExtractedField:
    """One field value with the strategy that produced it.

    A field is either absent (no ExtractedField at all) or carries a
    non-empty value.
    """

    value: Any
    source: str
    confidence: int = 0
    basis: str | None = None  # "revenue" / "profit" for money-derived fields

    def __post_init__(self):
        if self.value is None:
            raise ValueError(f"{self.source}: extracted value must not be None")
        if isinstance(self.value, str) and not self.value.strip():
            raise ValueError(f"{self.source}: extracted value must not be empty")
        if isinstance(self.value, (list, tuple)) and not self.value:
            raise ValueError(f"{self.source}: extracted value must not be empty")


@dataclass(frozen=True)
class Hit:
    """What a strategy returns on success."""

    value: Any
    basis: str | None = None


@dataclass
class ExtractionResult:
    """Everything the extractor learned about one container."""

    strategy: str
    position: int
    fields: dict[str, ExtractedField] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def confidence(self) -> int:
        return sum(extracted.confidence for extracted in self.fields.values())

    def value(self, name: str) -> Any:
        extracted = self.fields.get(name)
        return extracted.value if extracted else None

    def source(self, name: str) -> str | None:
        extracted = self.fields.get(name)
        return extracted.source if extracted else None

    def basis(self, name: str) -> str | None:
        extracted = self.fields.get(name)
        return extracted.basis if extracted else None

    def to_record(self, page_number: int | None = None) -> ListingRecord:
        """Build the canonical record from the extracted fields."""
        badges = self.value("badges")
        return ListingRecord(
            identifier=self.value("identifier"),
            synthetic_identifier=self.source("identifier") == "identifier:synthetic",
            title=self.value("title"),
            url=self.value("url"),
            price=self.value("price"),
            monthly_recurring_value=self.value("monthly_recurring_value"),
            recurring_basis=self.basis("monthly_recurring_value"),
            multiple=self.value("multiple"),
            multiple_basis=self.basis("multiple"),
            multiple_derived=self.source("multiple") == "multiple:derived",
            category=self.value("category"),
            badges=list(badges) if badges else [],
            extraction_confidence=self.confidence,
            extraction_method=self.strategy,
            page_number=page_number,
            raw_data={
                "sources": {name: extracted.source for name, extracted in self.fields.items()},
                "errors": self.errors or None,
            },
        )


# =============================================================================
# Strategy Plumbing
# =============================================================================

@dataclass
class ExtractionContext:
    """State visible to strategies while one container is being extracted."""

    container: RawContainer
    settings: ExtractionConfig
    found: dict[str, ExtractedField]

    def value(self, name: str) -> Any:
        extracted = self.found.get(name)
        return extracted.value if extracted else None

    def basis(self, name: str) -> str | None:
        extracted = self.found.get(name)
        return extracted.basis if extracted else None


StrategyFunc = Callable[[ExtractionContext], Hit | None]


@dataclass(frozen=True)
class Strategy:
    """A named step in a field cascade."""

    name: str
    func: StrategyFunc
    scored: bool = True  # False: a hit adds no confidence


# =============================================================================
# Helpers
# =============================================================================

def _same_site(url: str, base_url: str) -> bool:
    host = urlparse(url).netloc.lower().removeprefix("www.")
    base_host = urlparse(base_url).netloc.lower().removeprefix("www.")
    return bool(host) and (host == base_host or host.endswith("." + base_host))


def _is_navigation(url: str) -> bool:
    path = urlparse(url).path.rstrip("/")
    if not path:
        return True
    return any(path == nav or path.startswith(nav + "/") for nav in NAVIGATION_PATHS)


def _is_link_target(href: str) -> bool:
    return not href.startswith(("#", "javascript:", "mailto:", "tel:"))


def _listing_id_from_href(href: str) -> str | None:
    match = LISTING_ID_PATH_RE.search(urlparse(href).path + "/")
    return match.group(1) if match else None


def _listing_anchor(ctx: ExtractionContext) -> Anchor | None:
    """The anchor the url step picked, if any."""
    url = ctx.value("url")
    if url is None:
        return None
    for anchor in ctx.container.anchors:
        if anchor.absolute(ctx.settings.base_url) == url:
            return anchor
    return None


def _title_length_ok(text: str, settings: ExtractionConfig) -> bool:
    return settings.title_min_length <= len(text) <= settings.title_max_length


def _looks_recurring(text: str, match: re.Match[str]) -> bool:
    """True when a dollar amount reads as monthly revenue/profit, not a price."""
    if is_monthly(text, match.end()):
        return True
    # Only look back as far as the previous amount
    window = text[max(0, match.start() - 20):match.start()].rsplit("$", 1)[-1]
    return BASIS_RE.search(window) is not None


def _first_amount(
    text: str,
    pattern: AmountPattern,
    upper_bound: int,
    skip: Callable[[str, re.Match[str]], bool] | None = None,
) -> tuple[int, re.Match[str]] | None:
    """First match of a pattern, accepted only if within (0, upper_bound)."""
    for match in pattern.regex.finditer(text):
        if skip is not None and skip(text, match):
            continue
        amount = amount_from_match(match)
        if amount is not None and 0 < amount < upper_bound:
            return amount, match
        return None
    return None


# =============================================================================
# Strategies
# =============================================================================

def url_from_listing_id(ctx: ExtractionContext) -> Hit | None:
    """First link whose path carries a numeric listing id."""
    for anchor in ctx.container.anchors:
        if _is_link_target(anchor.href) and _listing_id_from_href(anchor.href):
            return Hit(anchor.absolute(ctx.settings.base_url))
    return None


def url_from_same_site(ctx: ExtractionContext) -> Hit | None:
    """First same-site link that is not site navigation."""
    for anchor in ctx.container.anchors:
        if not _is_link_target(anchor.href):
            continue
        url = anchor.absolute(ctx.settings.base_url)
        if _same_site(url, ctx.settings.base_url) and not _is_navigation(url):
            return Hit(url)
    return None


def identifier_from_attributes(ctx: ExtractionContext) -> Hit | None:
    """Numeric id in id="listing-123" / data-listing-id style attributes."""
    for element in ctx.container.descendants_with_attributes():
        for attribute in ID_ATTRIBUTES:
            value = element.get(attribute)
            if not value or not isinstance(value, str):
                continue
            pattern = LISTING_ELEMENT_ID_RE if attribute == "id" else ATTRIBUTE_ID_RE
            match = pattern.search(value.strip())
            if match:
                return Hit(match.group(1))
    return None


def identifier_from_href(ctx: ExtractionContext) -> Hit | None:
    """Numeric path segment of the listing link, else of any link."""
    url = ctx.value("url")
    if url:
        listing_id = _listing_id_from_href(url)
        if listing_id:
            return Hit(listing_id)
    for anchor in ctx.container.anchors:
        listing_id = _listing_id_from_href(anchor.href)
        if listing_id:
            return Hit(listing_id)
    return None


def title_from_heading(ctx: ExtractionContext) -> Hit | None:
    for heading in ctx.container.headings():
        text = normalize_whitespace(heading.get_text(" ", strip=True))
        if _title_length_ok(text, ctx.settings):
            return Hit(text)
    return None


def title_from_link_text(ctx: ExtractionContext) -> Hit | None:
    anchor = _listing_anchor(ctx)
    if anchor is None:
        return None
    text = anchor.text
    if text.lower() in GENERIC_LINK_TEXT or "$" in text:
        return None
    if _title_length_ok(text, ctx.settings):
        return Hit(text)
    return None


def title_from_longest_line(ctx: ExtractionContext) -> Hit | None:
    """The most prose-like line once prices, counters and badges are gone."""
    best: str | None = None
    for line in ctx.container.lines:
        line = normalize_whitespace(line)
        if "$" in line or re.fullmatch(r"[\d,.\s]+", line):
            continue
        if line.lower() in GENERIC_LINK_TEXT:
            continue
        if not _title_length_ok(line, ctx.settings):
            continue
        if best is None or len(line) > len(best):
            best = line
    return Hit(best) if best else None


def _is_monthly_amount(text: str, match: re.Match[str]) -> bool:
    return is_monthly(text, match.end())


def _price_strategy(pattern: AmountPattern) -> StrategyFunc:
    # A price label right before the amount outweighs nearby revenue wording
    skip = _is_monthly_amount if pattern.name == "labelled" else _looks_recurring

    def extract_price(ctx: ExtractionContext) -> Hit | None:
        found = _first_amount(ctx.container.text, pattern, ctx.settings.price_max, skip=skip)
        return Hit(found[0]) if found else None

    extract_price.__name__ = f"price_{pattern.name}"
    return extract_price


def _recurring_strategy(pattern: AmountPattern) -> StrategyFunc:
    def extract_recurring(ctx: ExtractionContext) -> Hit | None:
        text = ctx.container.text
        found = _first_amount(text, pattern, ctx.settings.recurring_max)
        if found is None:
            return None
        amount, match = found
        basis_match = BASIS_RE.search(match.group(0))
        basis = basis_match.group("basis").lower() if basis_match else trailing_basis(text, match.end())
        return Hit(amount, basis=basis)

    extract_recurring.__name__ = f"recurring_{pattern.name}"
    return extract_recurring


def multiple_from_text(ctx: ExtractionContext) -> Hit | None:
    """A number immediately followed by 'x' ("3.1x revenue")."""
    match = MULTIPLE_RE.search(ctx.container.text)
    if match is None:
        return None
    value = float(match.group("value"))
    if not 0 < value < ctx.settings.multiple_max:
        return None
    basis = match.group("basis")
    return Hit(value, basis=basis.lower() if basis else None)


def multiple_from_price(ctx: ExtractionContext) -> Hit | None:
    """price / (monthly value * 12), rounded to one decimal."""
    price = ctx.value("price")
    monthly = ctx.value("monthly_recurring_value")
    if not price or not monthly:
        return None
    value = round(price / (monthly * 12), 1)
    if not 0 < value < ctx.settings.multiple_max:
        return None
    return Hit(value, basis=ctx.basis("monthly_recurring_value"))


def category_from_type_label(ctx: ExtractionContext) -> Hit | None:
    """Value line following a 'Type' label line."""
    lines = ctx.container.lines
    for i, line in enumerate(lines[:-1]):
        if line.strip().lower() == "type":
            value = lines[i + 1].strip()
            if value and "$" not in value and len(value) < 50:
                return Hit(value)
    return None


def category_from_headline(ctx: ExtractionContext) -> Hit | None:
    """Leading part of a 'SaaS | Fitness' style headline."""
    candidates = [ctx.value("title")] if ctx.value("title") else []
    candidates.extend(ctx.container.lines)
    for line in candidates:
        match = HEADLINE_CATEGORY_RE.match(line)
        if match:
            return Hit(match.group("category").strip())
    return None


def badges_from_keywords(ctx: ExtractionContext) -> Hit | None:
    text = ctx.container.text
    badges = [badge for badge in BADGE_KEYWORDS if badge in text]
    return Hit(badges) if badges else None


def default_cascades() -> dict[str, list[Strategy]]:
    """Ordered strategies per field, most precise first."""
    return {
        "url": [
            Strategy("url:listing-id", url_from_listing_id),
            Strategy("url:same-site", url_from_same_site),
        ],
        "identifier": [
            Strategy("identifier:attribute", identifier_from_attributes),
            Strategy("identifier:href", identifier_from_href),
        ],
        "title": [
            Strategy("title:heading", title_from_heading),
            Strategy("title:link-text", title_from_link_text),
            Strategy("title:longest-line", title_from_longest_line),
        ],
        "price": [Strategy(f"price:{p.name}", _price_strategy(p)) for p in PRICE_PATTERNS],
        "monthly_recurring_value": [
            Strategy(f"recurring:{p.name}", _recurring_strategy(p)) for p in RECURRING_PATTERNS
        ],
        "multiple": [
            Strategy("multiple:text", multiple_from_text),
            Strategy("multiple:derived", multiple_from_price),
        ],
        "category": [
            Strategy("category:type-label", category_from_type_label),
            Strategy("category:headline", category_from_headline),
        ],
        "badges": [Strategy("badges:keywords", badges_from_keywords)],
    }


# =============================================================================
# Extractor
# =============================================================================

class FieldExtractor:
    """Runs the per-field cascades over containers for one scan run.

    Synthetic identifiers are unique per extractor instance, so share one
    extractor across all pages of a run.
    """

    def __init__(
        self,
        settings: ExtractionConfig | None = None,
        cascades: dict[str, list[Strategy]] | None = None,
    ):
        self.settings = settings or config.extraction
        self.cascades = cascades if cascades is not None else default_cascades()
        self._synthetic_counter = itertools.count()

    def next_synthetic_identifier(self) -> str:
        """Run-unique, never-numeric fallback id."""
        millis = int(time.time() * 1000)
        return f"{SYNTHETIC_PREFIX}{millis}-{next(self._synthetic_counter)}-{secrets.token_hex(3)}"

    def extract(self, container: RawContainer) -> ExtractionResult:
        """Extract every field from a container.

        Never raises for container content: a strategy that blows up leaves
        its field absent and the error is recorded on the result.
        """
        result = ExtractionResult(strategy=container.strategy, position=container.position)
        ctx = ExtractionContext(container=container, settings=self.settings, found=result.fields)

        for name in FIELD_ORDER:
            for strategy in self.cascades.get(name, []):
                try:
                    hit = strategy.func(ctx)
                    if hit is None:
                        continue
                    weight = self.settings.weights.for_field(name) if strategy.scored else 0
                    result.fields[name] = ExtractedField(
                        value=hit.value,
                        source=strategy.name,
                        confidence=weight,
                        basis=hit.basis,
                    )
                    break
                except Exception as e:
                    result.errors.append(f"{strategy.name}: {type(e).__name__}: {e}")
                    logger.debug(f"Strategy {strategy.name} failed on container {container.position}: {e}", exc_info=True)
                    # A broken strategy abandons the field, not the container
                    break

        if "identifier" not in result.fields:
            result.fields["identifier"] = ExtractedField(
                value=self.next_synthetic_identifier(),
                source="identifier:synthetic",
                confidence=0,
            )

        logger.debug(
            f"Container {container.position} ({container.strategy}): confidence {result.confidence}, "
            f"fields {sorted(result.fields)}"
        )
        return result

    def accept(self, result: ExtractionResult, page_number: int | None = None) -> ListingRecord | None:
        """Build a record if the container scored at least `min_confidence`."""
        if result.confidence < self.settings.min_confidence:
            return None
        return result.to_record(page_number=page_number)
