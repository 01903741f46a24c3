"""Parsed page documents and the container wrapper handed to the extractor."""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

# Tags whose text is never visible listing content
SKIPPED_TAGS = frozenset({"script", "style", "noscript", "template", "svg"})


def parse_document(html: str) -> BeautifulSoup:
    """Parse raw page HTML into a queryable tree."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(list(SKIPPED_TAGS)):
        tag.decompose()
    return soup


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace to single spaces."""
    return " ".join(text.split())


@dataclass(frozen=True)
class Anchor:
    """A link found inside a container."""

    href: str
    text: str

    def absolute(self, base_url: str) -> str:
        return urljoin(base_url, self.href)


@dataclass
class RawContainer:
    """A DOM subtree believed to hold exactly one listing.

    Wraps a BeautifulSoup tag with cached text views so each field strategy
    does not re-walk the tree. Created per page scan and discarded after
    extraction.
    """

    element: Tag
    strategy: str
    position: int = 0

    @cached_property
    def text(self) -> str:
        """Full text content with whitespace normalized."""
        return normalize_whitespace(self.element.get_text(" ", strip=True))

    @cached_property
    def lines(self) -> list[str]:
        """Non-empty text nodes, in document order."""
        raw = self.element.get_text("\n", strip=True)
        return [line.strip() for line in raw.split("\n") if line.strip()]

    @cached_property
    def anchors(self) -> list[Anchor]:
        """Descendant links that carry an href (including the container itself)."""
        found = []
        candidates = [self.element] if self.element.name == "a" else []
        candidates.extend(self.element.find_all("a", href=True))
        for link in candidates:
            href = (link.get("href") or "").strip()
            if href:
                found.append(Anchor(href=href, text=normalize_whitespace(link.get_text(" ", strip=True))))
        return found

    @cached_property
    def attributes(self) -> dict[str, str]:
        """Identifier, class and data-* attributes of the container element."""
        attrs: dict[str, str] = {}
        for key, value in self.element.attrs.items():
            if key == "id" or key == "class" or key.startswith("data-"):
                attrs[key] = " ".join(value) if isinstance(value, list) else str(value)
        return attrs

    def headings(self) -> list[Tag]:
        return self.element.find_all(["h1", "h2", "h3", "h4", "h5", "h6"])

    def descendants_with_attributes(self) -> list[Tag]:
        """The container element followed by every descendant tag."""
        return [self.element, *self.element.find_all(True)]
