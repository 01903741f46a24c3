"""Tests for database operations."""

import pytest

from flippa_harvester.db.schema import init_db
from flippa_harvester.db.operations import (
    SqliteListingSink,
    save_listing,
    save_listings,
    get_listing,
    get_all_listings,
    get_known_identifiers,
    close_db,
)
import flippa_harvester.db.operations as db_ops
from flippa_harvester.models.listing import ListingRecord


@pytest.fixture
def test_db(tmp_path):
    """Create a temporary test database."""
    db_path = tmp_path / "test.db"
    # Reset module-level connection
    db_ops._connection = None
    conn = init_db(db_path)
    db_ops._connection = conn
    yield conn
    close_db()


class TestListingOperations:
    """Tests for listing upserts and lookups."""

    def test_save_and_get_listing(self, test_db):
        """Test saving and retrieving a listing."""
        record = ListingRecord(
            identifier="12249202",
            url="https://flippa.com/12249202",
            title="Test Business",
            price=5000000,
            monthly_recurring_value=40000,
            recurring_basis="profit",
            badges=["Verified"],
            raw_data={"sources": {"price": "price:labelled"}},
        )
        assert save_listing(record) is True

        listing = get_listing("12249202")
        assert listing is not None
        assert listing["title"] == "Test Business"
        assert listing["price"] == 5000000
        assert listing["recurring_basis"] == "profit"
        assert listing["badges"] == ["Verified"]
        assert listing["raw_data"] == {"sources": {"price": "price:labelled"}}

    def test_upsert_listing(self, test_db):
        """Test that saving same listing updates it."""
        assert save_listing(ListingRecord(identifier="100", title="Original Title")) is True
        assert save_listing(ListingRecord(identifier="100", title="Updated Title")) is False

        listing = get_listing("100")
        assert listing["title"] == "Updated Title"
        assert len(get_all_listings()) == 1

    def test_get_missing_listing(self, test_db):
        assert get_listing("nope") is None

    def test_save_listings_batch(self, test_db):
        records = [ListingRecord(identifier=str(i), price=i * 1000) for i in range(1, 4)]
        assert save_listings(records) == 3
        assert save_listings([]) == 0
        assert len(get_all_listings()) == 3

    def test_filter_by_category(self, test_db):
        save_listings([
            ListingRecord(identifier="1", category="SaaS"),
            ListingRecord(identifier="2", category="Ecommerce"),
        ])
        saas = get_all_listings(category="SaaS")
        assert [row["identifier"] for row in saas] == ["1"]

    def test_known_identifiers_skip_synthetic(self, test_db):
        save_listings([
            ListingRecord(identifier="12345"),
            ListingRecord(identifier="syn-1-0-abc123", synthetic_identifier=True),
        ])
        assert get_known_identifiers() == {"12345"}
        assert get_known_identifiers(include_synthetic=True) == {"12345", "syn-1-0-abc123"}


class TestSqliteListingSink:
    def test_upsert_many(self, tmp_path):
        db_ops._connection = None
        sink = SqliteListingSink(tmp_path / "sink.db")
        try:
            written = sink.upsert_many([
                ListingRecord(identifier="1", title="First listing title"),
                ListingRecord(identifier="2", title="Second listing title"),
            ])
            sink.upsert_many([ListingRecord(identifier="1", title="First listing, new title")])

            assert written == 2
            assert get_listing("1")["title"] == "First listing, new title"
            assert len(get_all_listings()) == 2
        finally:
            sink.close()
