"""Configuration management."""

from pathlib import Path
from pydantic import BaseModel, Field


class ConfidenceWeights(BaseModel):
    """Confidence increment contributed by each extracted field.

    Price and title are the strongest signals that a container is a real
    listing card; identifier and url are cheap to find on navigation chrome too.
    """

    price: int = 30
    title: int = 25
    monthly_recurring_value: int = 20
    url: int = 10
    identifier: int = 5  # Real ids only, synthetic ids score nothing
    multiple: int = 5
    category: int = 5
    badges: int = 0

    def for_field(self, name: str) -> int:
        """Weight for a field name, 0 for unknown fields."""
        return getattr(self, name, 0)


class ExtractionConfig(BaseModel):
    """Tuning knobs for container location and field extraction."""

    base_url: str = Field(
        default="https://flippa.com",
        description="Used to resolve relative hrefs and recognise same-site links"
    )

    # Container Locator
    page_size_cap: int = Field(default=25, ge=1, description="Max containers returned per page")
    max_primary_matches: int = Field(
        default=200,
        description="A structural selector matching more than this is treated as wrong"
    )
    ancestor_max_depth: int = Field(default=8, ge=0, description="Ancestor levels walked from a price element")
    price_text_min_length: int = 10  # Exclusive bounds on price-anchor text length
    price_text_max_length: int = 500
    container_min_children: int = 2
    container_min_text_length: int = 100
    container_max_text_length: int = 2000

    # Field Extractor
    title_min_length: int = 10
    title_max_length: int = 200
    price_max: int = Field(default=50_000_000, description="Prices at or above this are rejected")
    recurring_max: int = Field(default=1_000_000, description="Monthly values at or above this are rejected")
    multiple_max: float = 100.0
    min_confidence: int = Field(default=40, description="Containers scoring below this are dropped")
    weights: ConfidenceWeights = Field(default_factory=ConfidenceWeights)


class ScanConfig(BaseModel):
    """Pagination and fetch settings for a scan run."""

    search_url: str = "https://flippa.com/search"
    max_pages: int = 200  # Hard limit on search pages
    max_consecutive_empty_pages: int = 5
    workers: int = Field(default=1, ge=1, description="Pages fetched concurrently per round")
    flush_every_pages: int = Field(default=20, ge=1, description="Flush pending records to the sink this often")

    delay_between_pages_seconds: float = 2.0  # Politeness delay between rounds
    base_retry_delay_seconds: float = 3.0  # Starting delay for exponential backoff
    max_retries: int = 3

    page_load_timeout_ms: int = 60_000  # Flippa pages can be slow
    network_idle_timeout_ms: int = 60_000


class Config(BaseModel):
    """Application configuration."""

    # Project paths - config.py is at src/flippa_harvester/config.py, so 3 parents up
    project_root: Path = Path(__file__).parent.parent.parent
    data_dir: Path = project_root / "data"
    db_path: Path = data_dir / "flippa_harvester.db"

    # Browser settings
    headless: bool = True
    slow_mo: int = 0  # milliseconds between actions

    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)

    def ensure_dirs(self) -> None:
        """Ensure required directories exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)


# Global config instance
config = Config()
