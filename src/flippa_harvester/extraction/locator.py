"""Container Locator: find the DOM subtrees that each hold one listing.

Two tiers:
1. Structural selectors (Angular repeat marker, listing-id prefix, GTM card
   classes). Fast and precise while the markup is stable.
2. Price proximity. Every short element showing a dollar amount is walked up
   to the nearest ancestor rich enough to be a whole card. Keeps working when
   the site renames its classes.
"""

from __future__ import annotations

import logging

from bs4 import BeautifulSoup, Tag

from ..config import ExtractionConfig, config
from .document import RawContainer, normalize_whitespace
from .patterns import AMOUNT_RE

logger = logging.getLogger(__name__)


# Multiple selectors with fallback - GTM classes change frequently
CARD_SELECTORS = [
    'div[ng-repeat="listing in results"]',  # Angular search results
    'div[id^="listing-"]',  # Stable listing-id prefix
    "[class*='GTM-search-result-card']",  # Google Tag Manager card class
    "[data-testid='listing-card']",  # Test ID if they add one
]

PRICE_PROXIMITY = "price-proximity"


class ContainerLocator:
    """Produce an ordered, capped sequence of listing containers for a page."""

    def __init__(
        self,
        settings: ExtractionConfig | None = None,
        selectors: list[str] | None = None,
    ):
        self.settings = settings or config.extraction
        self.selectors = list(selectors) if selectors is not None else list(CARD_SELECTORS)

    def locate(self, root: BeautifulSoup | Tag) -> list[RawContainer]:
        """Find listing containers in a parsed document.

        Args:
            root: Parsed document (or any subtree of one).

        Returns:
            At most `page_size_cap` containers. Empty when nothing on the page
            looks like a listing, which usually means the page is exhausted.

        Raises:
            ValueError: If no document was supplied.
        """
        if root is None:
            raise ValueError("ContainerLocator.locate() requires a document, got None")

        containers = self._locate_by_selector(root)
        if containers:
            return containers

        containers = self._locate_by_price_proximity(root)
        logger.debug(f"Price-proximity fallback found {len(containers)} containers")
        return containers

    # -------------------------------------------------------------------------
    # Tier 1: structural selectors
    # -------------------------------------------------------------------------

    def _locate_by_selector(self, root: BeautifulSoup | Tag) -> list[RawContainer]:
        for selector in self.selectors:
            matches = root.select(selector)
            if not matches:
                continue
            if len(matches) > self.settings.max_primary_matches:
                logger.debug(f"Selector '{selector}' matched {len(matches)} elements, too many to trust")
                continue

            outermost = _drop_nested(matches)
            logger.debug(f"Using selector '{selector}' (found {len(outermost)} elements)")
            strategy = f"selector:{selector}"
            return [
                RawContainer(element=element, strategy=strategy, position=index)
                for index, element in enumerate(outermost[: self.settings.page_size_cap])
            ]
        return []

    # -------------------------------------------------------------------------
    # Tier 2: price proximity
    # -------------------------------------------------------------------------

    def _is_price_anchor(self, element: Tag) -> bool:
        text = normalize_whitespace(element.get_text(" ", strip=True))
        if not self.settings.price_text_min_length < len(text) < self.settings.price_text_max_length:
            return False
        return AMOUNT_RE.search(text) is not None

    def _is_card_like(self, element: Tag) -> bool:
        child_count = sum(1 for child in element.children if isinstance(child, Tag))
        if child_count < self.settings.container_min_children:
            return False
        text_length = len(normalize_whitespace(element.get_text(" ", strip=True)))
        return (
            self.settings.container_min_text_length
            <= text_length
            <= self.settings.container_max_text_length
        )

    def _find_card(self, anchor: Tag) -> Tag | None:
        """Walk from a price element up to the first card-like ancestor.

        The element itself counts as step zero; at most `ancestor_max_depth`
        parents are examined after it.
        """
        current: Tag | None = anchor
        for _ in range(self.settings.ancestor_max_depth + 1):
            if current is None or isinstance(current, BeautifulSoup):
                return None
            if self._is_card_like(current):
                return current
            current = current.parent
        return None

    def _locate_by_price_proximity(self, root: BeautifulSoup | Tag) -> list[RawContainer]:
        cards: list[Tag] = []
        seen: set[int] = set()

        for element in root.find_all(True):
            if not self._is_price_anchor(element):
                continue
            card = self._find_card(element)
            # Tags compare by content, so identity is tracked explicitly
            if card is None or id(card) in seen:
                continue
            seen.add(id(card))
            cards.append(card)

        cards = _drop_enclosing(cards)
        return [
            RawContainer(element=card, strategy=PRICE_PROXIMITY, position=index)
            for index, card in enumerate(cards[: self.settings.page_size_cap])
        ]


def _drop_nested(elements: list[Tag]) -> list[Tag]:
    """Keep only elements that are not inside another element of the list."""
    ids = {id(element) for element in elements}
    kept = []
    for element in elements:
        if any(id(parent) in ids for parent in element.parents):
            continue
        kept.append(element)
    return kept


def _drop_enclosing(elements: list[Tag]) -> list[Tag]:
    """Resolve candidates nested inside each other to one element per listing.

    Innermost candidates are leaves. A candidate enclosing two or more leaves
    is a wrapper (result list, page body) and is dropped; otherwise the
    outermost candidate around a single leaf stands for that listing.
    """
    ids = {id(element) for element in elements}
    has_inner: set[int] = set()
    for element in elements:
        for parent in element.parents:
            if id(parent) in ids:
                has_inner.add(id(parent))

    leaves = [element for element in elements if id(element) not in has_inner]
    leaf_count: dict[int, int] = {}
    for leaf in leaves:
        for parent in leaf.parents:
            if id(parent) in ids:
                leaf_count[id(parent)] = leaf_count.get(id(parent), 0) + 1

    resolved = []
    for leaf in leaves:
        best = leaf
        for parent in leaf.parents:
            if id(parent) not in ids:
                continue
            if leaf_count[id(parent)] > 1:
                break
            best = parent
        resolved.append(best)
    return resolved
