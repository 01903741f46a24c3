"""Tests for the Field Extractor cascades and confidence scoring."""

import pytest

from flippa_harvester.config import ExtractionConfig
from flippa_harvester.extraction.extractor import (
    SYNTHETIC_PREFIX,
    ExtractedField,
    FieldExtractor,
    Strategy,
    title_from_heading,
)


@pytest.fixture
def extractor():
    return FieldExtractor(ExtractionConfig())


class TestExtractedField:
    """Tests for ExtractedField presence rules."""

    def test_value_required(self):
        with pytest.raises(ValueError):
            ExtractedField(value=None, source="title:heading")

    def test_blank_string_rejected(self):
        with pytest.raises(ValueError):
            ExtractedField(value="   ", source="title:heading")

    def test_empty_list_rejected(self):
        with pytest.raises(ValueError):
            ExtractedField(value=[], source="badges:keywords")

    def test_zero_is_a_value(self):
        extracted = ExtractedField(value=0, source="test")
        assert extracted.value == 0


class TestStructuredCard:
    """A card with a listing id, heading, price and monthly revenue."""

    def test_all_fields(self, extractor, card_html, make_container):
        result = extractor.extract(make_container(card_html(12249202)))

        assert result.value("identifier") == "12249202"
        assert result.source("identifier") == "identifier:attribute"
        assert result.value("url") == "https://flippa.com/12249202"
        assert result.source("url") == "url:listing-id"
        assert result.value("title") == "Profitable SaaS business number 12249202"
        assert result.source("title") == "title:heading"
        assert result.value("price") == 45000
        assert result.value("monthly_recurring_value") == 1500
        assert result.basis("monthly_recurring_value") == "revenue"
        assert result.value("multiple") == 2.5
        assert result.source("multiple") == "multiple:derived"

    def test_confidence_is_sum_of_weights(self, extractor, card_html, make_container):
        result = extractor.extract(make_container(card_html(12249202)))
        # url 10 + identifier 5 + title 25 + price 30 + recurring 20 + multiple 5
        assert result.confidence == 95
        assert result.confidence == sum(f.confidence for f in result.fields.values())

    def test_extraction_is_repeatable(self, extractor, card_html, make_container):
        """Same container, same fields and sources."""
        container = make_container(card_html(555555))
        first = extractor.extract(container)
        second = extractor.extract(container)
        assert first.fields == second.fields
        assert first.confidence == second.confidence

    def test_record_conversion(self, extractor, card_html, make_container):
        result = extractor.extract(make_container(card_html(12249202), strategy="selector:x"))
        record = extractor.accept(result, page_number=3)

        assert record is not None
        assert record.identifier == "12249202"
        assert record.synthetic_identifier is False
        assert record.recurring_basis == "revenue"
        assert record.multiple_derived is True
        assert record.multiple_basis == "revenue"
        assert record.extraction_confidence == 95
        assert record.extraction_method == "selector:x"
        assert record.page_number == 3
        assert record.raw_data["sources"]["price"] == "price:plain"


class TestUnstructuredText:
    """Fields recovered from free text when the markup gives no hints."""

    HTML = (
        "<div><p>SaaS | Fitness App $45,000 USD $1,200/mo revenue 3.1x revenue</p>"
        '<a href="https://example.com/12345">View Listing</a></div>'
    )

    def test_fields(self, extractor, make_container):
        result = extractor.extract(make_container(self.HTML))

        assert result.value("url") == "https://example.com/12345"
        assert result.value("identifier") == "12345"
        assert result.source("identifier") == "identifier:href"
        assert result.value("price") == 45000
        assert result.value("monthly_recurring_value") == 1200
        assert result.source("monthly_recurring_value") == "recurring:suffix"
        assert result.basis("monthly_recurring_value") == "revenue"
        assert result.value("multiple") == 3.1
        assert result.source("multiple") == "multiple:text"
        assert result.basis("multiple") == "revenue"
        assert result.value("category") == "SaaS"

    def test_generic_link_text_is_not_a_title(self, extractor, make_container):
        result = extractor.extract(make_container(self.HTML))
        assert "title" not in result.fields

    def test_confidence(self, extractor, make_container):
        # url 10 + identifier 5 + price 30 + recurring 20 + multiple 5 + category 5
        assert extractor.extract(make_container(self.HTML)).confidence == 75


class TestPriceCascade:
    def test_labelled_price_beats_revenue(self, extractor, make_container):
        html = "<div><p>Revenue $2,000/mo</p><p>Asking Price: $60,000</p></div>"
        result = extractor.extract(make_container(html))

        assert result.value("price") == 60000
        assert result.source("price") == "price:labelled"
        assert result.value("monthly_recurring_value") == 2000
        assert result.source("monthly_recurring_value") == "recurring:keyword"

    def test_out_of_range_price_is_absent(self, extractor, make_container):
        html = "<div><h3>Big enterprise software company</h3><p>$60,000,000</p></div>"
        result = extractor.extract(make_container(html))
        assert "price" not in result.fields

    def test_suffixed_price(self, extractor, make_container):
        html = "<div><h3>Content site in the travel niche</h3><p>$1.2M</p></div>"
        assert extractor.extract(make_container(html)).value("price") == 1_200_000

    def test_label_value_card(self, extractor, make_container):
        """A 'Monthly Profit' label after the price does not make the price monthly."""
        html = (
            "<div><h3>Subscription box for coffee lovers</h3>"
            "<div>Price</div><div>$45,000</div>"
            "<div>Monthly Profit</div><div>$1,500</div></div>"
        )
        result = extractor.extract(make_container(html))

        assert result.value("price") == 45000
        assert result.source("price") == "price:labelled"
        assert result.value("monthly_recurring_value") == 1500
        assert result.basis("monthly_recurring_value") == "profit"
        assert result.value("multiple") == 2.5
        # title 25 + price 30 + recurring 20 + multiple 5
        assert result.confidence == 80

    def test_unlabelled_price_before_monthly_label(self, extractor, make_container):
        html = "<div><span>$45,000</span><span>Monthly revenue $1,500</span></div>"
        result = extractor.extract(make_container(html))

        assert result.value("price") == 45000
        assert result.value("monthly_recurring_value") == 1500
        assert result.basis("monthly_recurring_value") == "revenue"


class TestRecurringCascade:
    def test_annual_revenue_is_not_monthly(self, extractor, make_container):
        html = "<div><p>Annual revenue $240,000</p><p>Profit $5,000/mo</p></div>"
        result = extractor.extract(make_container(html))

        assert result.value("monthly_recurring_value") == 5000
        assert result.basis("monthly_recurring_value") == "profit"

    def test_context_keyword(self, extractor, make_container):
        html = "<div><p>Monthly net: $3,500</p></div>"
        result = extractor.extract(make_container(html))

        assert result.value("monthly_recurring_value") == 3500
        assert result.source("monthly_recurring_value") == "recurring:context"
        assert result.basis("monthly_recurring_value") is None

    def test_no_recurring_value(self, extractor, make_container):
        html = "<div><h3>Domain name for sale today</h3><p>$900</p></div>"
        assert "monthly_recurring_value" not in extractor.extract(make_container(html)).fields

    @pytest.mark.parametrize(
        "text",
        [
            "Revenue $240,000/yr",
            "Profit $120,000 per year",
            "Revenue $240,000 annually",
            "Net profit $60k p/a",
            "Revenue (annual) $240,000",
        ],
    )
    def test_annual_figures_are_not_monthly(self, extractor, make_container, text):
        result = extractor.extract(make_container(f"<div><p>Asking $45,000</p><p>{text}</p></div>"))

        assert result.value("price") == 45000
        assert "monthly_recurring_value" not in result.fields
        assert "multiple" not in result.fields

    def test_annual_label_after_monthly_value(self, extractor, make_container):
        html = "<div><p>Revenue $20,000</p><p>Annual Revenue $240,000</p></div>"
        result = extractor.extract(make_container(html))
        assert result.value("monthly_recurring_value") == 20000


class TestOtherCascades:
    def test_widget_ids_are_not_listing_ids(self, extractor, make_container):
        """Numbered ids on tooltips or inputs never become the dedup key."""
        html = (
            '<div><span id="tooltip-20231">?</span><input id="mat-input-1234">'
            "<h3>Bookkeeping SaaS for dentists</h3>"
            '<a href="/12345678">Open</a><p>$90,000</p></div>'
        )
        result = extractor.extract(make_container(html))

        assert result.value("identifier") == "12345678"
        assert result.source("identifier") == "identifier:href"

    def test_data_attribute_id(self, extractor, make_container):
        html = '<div data-listing-id="87654321"><h3>Print on demand store</h3><p>$9,000</p></div>'
        result = extractor.extract(make_container(html))

        assert result.value("identifier") == "87654321"
        assert result.source("identifier") == "identifier:attribute"

    def test_same_site_url_skips_navigation(self, extractor, make_container):
        html = (
            '<div><a href="/search">Search</a>'
            '<a href="https://other.example/blog">Elsewhere</a>'
            '<a href="/businesses/cool-blog">Cool blog about hiking</a></div>'
        )
        result = extractor.extract(make_container(html))
        assert result.value("url") == "https://flippa.com/businesses/cool-blog"
        assert result.source("url") == "url:same-site"

    def test_title_from_link_text(self, extractor, make_container):
        html = '<div><a href="/10012345">Established dropshipping store</a><p>$30,000</p></div>'
        result = extractor.extract(make_container(html))
        assert result.value("title") == "Established dropshipping store"
        assert result.source("title") == "title:link-text"

    def test_title_from_longest_line(self, extractor, make_container):
        html = "<div><span>Tiny</span><span>Affiliate site reviewing kitchen knives</span><span>$8,000</span></div>"
        result = extractor.extract(make_container(html))
        assert result.value("title") == "Affiliate site reviewing kitchen knives"
        assert result.source("title") == "title:longest-line"

    def test_category_from_type_label(self, extractor, make_container):
        html = "<div><h3>Shopify store selling candles</h3><p>Type</p><p>Ecommerce</p><p>$30,000</p></div>"
        result = extractor.extract(make_container(html))
        assert result.value("category") == "Ecommerce"
        assert result.source("category") == "category:type-label"

    def test_badges_add_no_confidence(self, extractor, make_container):
        html = "<div><span>Verified</span><span>Managed by Flippa</span><h3>Mobile game studio</h3></div>"
        result = extractor.extract(make_container(html))

        assert result.value("badges") == ["Verified", "Managed by Flippa"]
        assert result.fields["badges"].confidence == 0

    def test_multiple_out_of_range(self, extractor, make_container):
        html = "<div><h3>Odd listing with a typo</h3><p>150x profit</p></div>"
        assert "multiple" not in extractor.extract(make_container(html)).fields

    def test_container_attributes(self, make_container):
        container = make_container('<div id="listing-1" class="card big" data-id="7" title="x">hi</div>')
        assert container.attributes == {"id": "listing-1", "class": "card big", "data-id": "7"}


class TestSyntheticIdentifier:
    HTML = "<div><h3>Handmade candle shop on Etsy</h3><p>$12,000</p></div>"

    def test_synthetic_ids_are_unique(self, extractor, make_container):
        first = extractor.extract(make_container(self.HTML))
        second = extractor.extract(make_container(self.HTML))

        assert first.value("identifier").startswith(SYNTHETIC_PREFIX)
        assert first.value("identifier") != second.value("identifier")

    def test_synthetic_id_scores_nothing(self, extractor, make_container):
        result = extractor.extract(make_container(self.HTML))
        assert result.fields["identifier"].confidence == 0
        # title 25 + price 30
        assert result.confidence == 55

    def test_record_flags_synthetic(self, extractor, make_container):
        record = extractor.accept(extractor.extract(make_container(self.HTML)))
        assert record.synthetic_identifier is True


class TestThreshold:
    def test_low_confidence_rejected(self, extractor, make_container):
        result = extractor.extract(make_container("<div><span>Tiny widget</span><span>500 views</span></div>"))
        assert result.confidence == 25
        assert "price" not in result.fields
        assert extractor.accept(result) is None

    def test_bare_number_is_not_a_price(self, extractor, make_container):
        result = extractor.extract(make_container("<div><span>500 views</span></div>"))
        assert result.fields.keys() == {"identifier"}
        assert result.confidence == 0
        assert extractor.accept(result) is None

    def test_custom_threshold(self, make_container):
        lenient = FieldExtractor(ExtractionConfig(min_confidence=20))
        result = lenient.extract(make_container("<div><span>Tiny widget</span><span>500 views</span></div>"))
        assert lenient.accept(result) is not None


class TestStrategyFailures:
    """A failing strategy never takes down the extraction."""

    def test_error_recorded_and_field_absent(self, make_container):
        def boom(ctx):
            raise RuntimeError("markup changed")

        cascades = {
            "title": [
                Strategy("title:boom", boom),
                Strategy("title:heading", title_from_heading),
            ],
        }
        extractor = FieldExtractor(ExtractionConfig(), cascades=cascades)
        result = extractor.extract(make_container("<div><h3>A perfectly good heading</h3></div>"))

        assert "title" not in result.fields
        assert result.errors == ["title:boom: RuntimeError: markup changed"]
        assert result.source("identifier") == "identifier:synthetic"

    def test_errors_kept_in_raw_data(self, make_container):
        def boom(ctx):
            raise KeyError("price")

        cascades = {
            "price": [Strategy("price:boom", boom)],
            "title": [Strategy("title:heading", title_from_heading)],
        }
        extractor = FieldExtractor(ExtractionConfig(min_confidence=0), cascades=cascades)
        result = extractor.extract(make_container("<div><h3>A perfectly good heading</h3></div>"))
        record = extractor.accept(result)

        assert record.raw_data["errors"] == result.errors
        assert len(result.errors) == 1
