"""Shared fixtures: HTML builders for search pages and listing cards."""

import pytest

from flippa_harvester.extraction.document import RawContainer, parse_document


def _card_html(
    listing_id: int | str,
    title: str | None = None,
    price: int = 45_000,
    monthly: int | None = 1_500,
) -> str:
    title = title or f"Profitable SaaS business number {listing_id}"
    monthly_html = f"<span>${monthly:,}/mo revenue</span>" if monthly else ""
    return (
        f'<div id="listing-{listing_id}">'
        f"<h3>{title}</h3>"
        f"<span>${price:,}</span>"
        f"{monthly_html}"
        f'<a href="/{listing_id}">View Listing</a>'
        f"</div>"
    )


def _page_html(cards: list[str]) -> str:
    return (
        "<html><body>"
        '<nav><a href="/search">Search</a><a href="/sell">Sell</a></nav>'
        f'<section class="results">{"".join(cards)}</section>'
        "</body></html>"
    )


@pytest.fixture
def card_html():
    """Factory for a structurally-marked listing card."""
    return _card_html


@pytest.fixture
def page_html():
    """Factory wrapping cards into a search results page."""
    return _page_html


@pytest.fixture
def make_container():
    """Factory turning an HTML fragment into a RawContainer of its first tag."""

    def _make(html: str, strategy: str = "test", position: int = 0) -> RawContainer:
        soup = parse_document(html)
        return RawContainer(element=soup.find(True), strategy=strategy, position=position)

    return _make
