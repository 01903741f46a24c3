"""Currency, recurring-value and multiple patterns used by the field cascades.

Ordered lists are tried front to back; precise labelled patterns come before
bare dollar amounts. Adapting to markup or copy changes on the site means
editing these lists, not the extractor.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# A dollar amount: "$45,000", "$ 1200", "$3.5M", "$45k".
# The guard after the integer part stops the engine from settling on a prefix
# of a longer number ("$1,200" must never parse as "$1").
AMOUNT = (
    r"\$\s?(?P<num>\d{1,3}(?:,\d{3})+|\d+)(?!\d|,\d)"
    r"(?:\.(?P<dec>\d+))?"
    r"(?:\s?(?P<suffix>[kKmM])\b)?"
)

AMOUNT_RE = re.compile(AMOUNT)

# Anything that makes an amount a monthly figure rather than a one-off price.
# "Monthly" followed by a basis word and another amount is the next field's
# label ("Price $45,000 Monthly Profit $1,500"), not a suffix.
MONTHLY_SUFFIX_RE = re.compile(
    r"\s*(?:p/mo\b|/\s*mo(?:nth)?\b|per\s+month\b|a\s+month\b"
    r"|monthly\b(?!\s+(?:net\s+)?(?:revenue|profit)\b\s*:?\s*(?:USD\s*)?\$))",
    re.IGNORECASE,
)

# Basis keyword shortly after a monthly amount, e.g. "$1,200/mo revenue"
TRAILING_BASIS_RE = re.compile(
    r"[\s:|,\-]*(?:net\s+|monthly\s+)?(?P<basis>revenue|profit)\b",
    re.IGNORECASE,
)

BASIS_RE = re.compile(r"\b(?P<basis>revenue|profit)\b", re.IGNORECASE)

# Rejects an amount (or a backtracked prefix of it) followed by a yearly
# marker. "Annual Revenue" starting the next label does not count.
NOT_ANNUAL = (
    r"(?!(?:\.\d+|\d+)?[kKmM]?\s*(?:/\s*y(?:ea)?r\b|per\s+(?:year|annum)\b|a\s+year\b|p/?a\b"
    r"|\((?:annual|yearly)\)|(?:annual(?:ly)?|yearly)\b(?!\s+(?:net\s+)?(?:revenue|profit)\b)))"
)

SUFFIX_SCALE = {"k": 1_000, "m": 1_000_000}


@dataclass(frozen=True)
class AmountPattern:
    """A named pattern whose match contains one AMOUNT group."""

    name: str
    regex: re.Pattern[str]
    monthly: bool = False  # True: match must be a monthly figure


PRICE_PATTERNS: list[AmountPattern] = [
    AmountPattern(
        "labelled",
        re.compile(
            r"\b(?:asking\s+price|asking|price|buy\s+it\s+now)\b"
            r"\s*(?:\([^)]{0,30}\))?\s*:?\s*(?:USD\s*)?" + AMOUNT,
            re.IGNORECASE,
        ),
    ),
    AmountPattern("usd", re.compile(r"\bUSD\s*" + AMOUNT)),
    AmountPattern("plain", AMOUNT_RE),
]

RECURRING_PATTERNS: list[AmountPattern] = [
    AmountPattern(
        "keyword",
        re.compile(
            r"(?<!annual )(?<!yearly )\b(?P<basis>revenue|profit)\b"
            r"\s*(?:\((?:monthly|avg\.?|average)\)|per\s+month|/\s*mo)?\s*:?\s*(?:USD\s*)?" + AMOUNT + NOT_ANNUAL,
            re.IGNORECASE,
        ),
    ),
    AmountPattern(
        "context",
        re.compile(r"\b(?:net|monthly|per\s+month)\b[^$\n]{0,20}?" + AMOUNT + NOT_ANNUAL, re.IGNORECASE),
    ),
    AmountPattern("suffix", re.compile(AMOUNT + r"(?=" + MONTHLY_SUFFIX_RE.pattern + r")", re.IGNORECASE), monthly=True),
]

MULTIPLE_RE = re.compile(
    r"(?<![\w.,$])(?P<value>\d{1,3}(?:\.\d+)?)\s?x\b(?:\s*(?P<basis>profit|revenue)\b)?",
    re.IGNORECASE,
)

# Structural attributes known to carry the numeric listing id. A plain id
# attribute only counts with the listing prefix; widgets use numbered ids too.
ID_ATTRIBUTES = ("id", "data-listing-id", "data-id", "data-listing")
ATTRIBUTE_ID_RE = re.compile(r"(?<!\d)(\d{4,})(?!\d)")
LISTING_ELEMENT_ID_RE = re.compile(r"^listing[-_](\d{4,})$")

# Numeric listing id as a path segment: /12249202, /12249202-some-slug
LISTING_ID_PATH_RE = re.compile(r"/(\d{4,})(?=[-/?#]|$)")

# Business types seen in "Type | Industry" headlines
HEADLINE_CATEGORY_RE = re.compile(r"^\s*(?P<category>[A-Za-z][\w &+\-]{1,30}?)\s*\|\s*\S")

BADGE_KEYWORDS = (
    "Verified",
    "Managed by Flippa",
    "Sponsored",
    "Editor's Choice",
    "Super Seller",
    "Broker",
    "Featured",
    "Premium",
)

GENERIC_LINK_TEXT = frozenset({
    "view listing",
    "view details",
    "view",
    "details",
    "learn more",
    "read more",
    "see more",
    "watch",
    "sign nda",
})

NAVIGATION_PATHS = (
    "/search",
    "/login",
    "/signup",
    "/sell",
    "/buy",
    "/pricing",
    "/blog",
    "/help",
    "/about",
    "/contact",
    "/users",
)


def amount_from_match(match: re.Match[str]) -> int | None:
    """Whole-dollar value of an AMOUNT match, or None if it cannot be parsed."""
    number = match.group("num")
    if not number:
        return None
    try:
        value = float(number.replace(",", ""))
        decimals = match.group("dec")
        if decimals:
            value += float(f"0.{decimals}")
    except ValueError:
        return None
    suffix = match.group("suffix")
    if suffix:
        value *= SUFFIX_SCALE[suffix.lower()]
    return int(round(value))


def is_monthly(text: str, end: int) -> bool:
    """True when the amount ending at `end` carries a monthly suffix."""
    return MONTHLY_SUFFIX_RE.match(text, end) is not None


def trailing_basis(text: str, end: int, window: int = 30) -> str | None:
    """'revenue' / 'profit' named right after position `end`, if any.

    A monthly suffix directly after `end` is skipped first, so
    "$1,200/mo revenue" reads as revenue.
    """
    suffix = MONTHLY_SUFFIX_RE.match(text, end)
    if suffix:
        end = suffix.end()
    match = TRAILING_BASIS_RE.match(text, end, end + window)
    return match.group("basis").lower() if match else None
