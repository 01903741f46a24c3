"""Listing data models."""

from datetime import datetime, UTC
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


RecurringBasis = Literal["revenue", "profit"]


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


class ListingRecord(BaseModel):
    """Canonical listing produced from one search-result container.

    Money fields are whole US dollars. Optional fields are None when the
    extractor found no evidence for them, never an empty string.
    """

    model_config = ConfigDict(from_attributes=True)

    identifier: str = Field(..., min_length=1, description="Listing id, or a synthetic fallback")
    synthetic_identifier: bool = Field(False, description="True when no real id could be derived")
    title: str | None = Field(None, description="Listing headline")
    url: str | None = Field(None, description="Absolute listing URL")
    price: int | None = Field(None, ge=0, description="Asking price in USD")
    monthly_recurring_value: int | None = Field(
        None, ge=0, description="Monthly revenue or profit in USD (see recurring_basis)"
    )
    recurring_basis: RecurringBasis | None = Field(
        None, description="Keyword that anchored the recurring value, if any"
    )
    multiple: float | None = Field(None, gt=0, description="Price / annualized recurring value")
    multiple_basis: RecurringBasis | None = Field(None)
    multiple_derived: bool = Field(False, description="True when computed rather than read from text")
    category: str | None = Field(None, description="Business type (e.g., 'SaaS')")
    badges: list[str] = Field(default_factory=list, description="Trust/promotion badges on the card")
    extraction_confidence: int = Field(0, ge=0, description="Sum of per-field confidence increments")
    extraction_method: str | None = Field(None, description="Locator strategy that found the container")
    page_number: int | None = Field(None, description="Search page the listing was found on")
    extracted_at: datetime = Field(default_factory=_utc_now)
    raw_data: dict[str, Any] | None = Field(None, description="Per-field extraction provenance")

    @field_validator("title", "url", "category", "extraction_method", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def annual_recurring_value(self) -> int | None:
        """Annualized recurring value."""
        if self.monthly_recurring_value is None:
            return None
        return self.monthly_recurring_value * 12
