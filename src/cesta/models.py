"""Core data models for cesta."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class Product(BaseModel):
    """A canonical product ("mother article") independent of any store label."""

    id: UUID = Field(default_factory=uuid4)
    name: str
    category: str | None = None
    image_url: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class ProductAlias(BaseModel):
    """An alternate name bound to one product, optionally scoped to a store."""

    id: UUID = Field(default_factory=uuid4)
    product_id: UUID
    alias_name: str
    supermarket_name: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)


class PriceObservation(BaseModel):
    """A single recorded (product, store, price, date) fact."""

    id: UUID = Field(default_factory=uuid4)
    product_id: UUID
    supermarket_name: str
    price: float = Field(ge=0, allow_inf_nan=False)
    unit_price: float | None = Field(default=None, allow_inf_nan=False)
    date_recorded: date = Field(default_factory=date.today)
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def effective_unit_price(self) -> float:
        """Unit price when recorded, otherwise the shelf price."""
        if self.unit_price is not None and self.unit_price > 0:
            return self.unit_price
        return self.price


class ShoppingListEntry(BaseModel):
    """A shopping list entry. The name does not have to resolve to a product."""

    id: UUID = Field(default_factory=uuid4)
    product_name: str
    quantity: int = Field(default=1, ge=1)
    is_checked: bool = False
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class ShoppingList(BaseModel):
    """The complete shopping list."""

    version: str = "1.0"
    last_updated: datetime = Field(default_factory=datetime.now)
    entries: list[ShoppingListEntry] = Field(default_factory=list)

    @property
    def pending(self) -> list[ShoppingListEntry]:
        """Entries not yet checked off."""
        return [entry for entry in self.entries if not entry.is_checked]


# --- Resolution ---


class MatchSource(str, Enum):
    """How a free-text name was resolved to a product."""

    ALIAS = "alias"
    PRODUCT_NAME = "product_name"
    NONE = "none"


class ProductSuggestion(BaseModel):
    """A fuzzy candidate for a free-text product name."""

    id: UUID
    name: str
    similarity: float
    aliases: list[str] = Field(default_factory=list)


class ResolutionResult(BaseModel):
    """Outcome of resolving a free-text name."""

    query: str
    exact_match: Product | None = None
    match_source: MatchSource = MatchSource.NONE
    suggestions: list[ProductSuggestion] = Field(default_factory=list)

    @property
    def is_exact(self) -> bool:
        return self.exact_match is not None


# --- Comparison ---


class StorePrice(BaseModel):
    """Current price of one list entry at one store."""

    store: str
    price: float
    total_price: float
    date_recorded: date | None = None


class ProductComparison(BaseModel):
    """Per-store price breakdown for one shopping list entry."""

    product_name: str
    quantity: int = 1
    product_ids: list[UUID] = Field(default_factory=list)
    prices: list[StorePrice] = Field(default_factory=list)
    best_store: str | None = None
    best_price: float | None = None
    error: str | None = None

    @property
    def has_data(self) -> bool:
        return bool(self.prices)


class BasketItem(BaseModel):
    """An entry assigned to a store basket."""

    name: str
    price: float
    quantity: int = 1

    @property
    def total(self) -> float:
        return round(self.price * self.quantity, 2)


class StoreTotal(BaseModel):
    """A store basket and its cost."""

    store: str
    total: float
    items: list[BasketItem] = Field(default_factory=list)


class ComparisonStatus(str, Enum):
    """Outcome of a list comparison."""

    OK = "ok"
    EMPTY_LIST = "empty_list"


class ComparisonResult(BaseModel):
    """Single-store and split recommendations for a shopping list."""

    status: ComparisonStatus = ComparisonStatus.OK
    products: list[ProductComparison] = Field(default_factory=list)
    best_single_store: StoreTotal | None = None
    optimized_split: list[StoreTotal] = Field(default_factory=list)
    optimized_total: float = 0.0
    total_savings: float = 0.0
    success: bool = True
    error: str | None = None
    is_demo: bool = False


# --- Dashboard ---


class CategorySpend(BaseModel):
    """Spend for one category in the current month."""

    category: str
    amount: float
    percentage: float = 0.0
    observation_count: int = 0


class DashboardData(BaseModel):
    """Current vs previous month spend with a category breakdown."""

    month: str  # "YYYY-MM"
    current_month_start: date
    last_month_start: date
    current_month_total: float = 0.0
    last_month_total: float = 0.0
    month_over_month_pct: float | None = None
    category_spend: list[CategorySpend] = Field(default_factory=list)
    budget_limit: float | None = None
    budget_remaining: float | None = None
    budget_percentage: float | None = None
    is_demo: bool = False


# --- Catalog and ledger views ---


class CatalogPrice(BaseModel):
    """Latest price of a product at one store."""

    id: UUID
    supermarket_name: str
    price: float
    date_recorded: date


class CatalogEntry(BaseModel):
    """A product with its latest prices per store and its aliases."""

    id: UUID
    name: str
    category: str | None = None
    best_price: float | None = None
    best_supermarket: str | None = None
    prices: list[CatalogPrice] = Field(default_factory=list)
    aliases: list[ProductAlias] = Field(default_factory=list)


class StoreProduct(BaseModel):
    """A product seen at a store with its most recent price."""

    product_id: UUID
    product_name: str
    last_price: float
    last_date: date
    count_records: int = 1


class PriceAlert(BaseModel):
    """Current best price compared with the lowest price ever recorded."""

    product_id: UUID
    min_price: float
    current_price: float | None = None
    current_store: str | None = None
    is_record_low: bool = False
    above_min_pct: float | None = None


# --- Ingestion ---


class ScannedPrice(BaseModel):
    """An unverified (name, price) pair read from a receipt."""

    name: str
    price: float
    unit_price: float | None = None
    quantity: float | None = None
    store: str | None = None


class RejectedRecord(BaseModel):
    """A record dropped from a batch because it violated an invariant."""

    name: str
    reason: str
    price: float | None = None


class ScanResult(BaseModel):
    """Validated output of the receipt recognition service."""

    store: str | None = None
    receipt_date: date | None = None
    items: list[ScannedPrice] = Field(default_factory=list)
    rejected: list[RejectedRecord] = Field(default_factory=list)


class VoiceItem(BaseModel):
    """A (name, quantity) pair extracted from dictated text."""

    name: str
    quantity: int = Field(default=1, ge=1)


class BatchItemResult(BaseModel):
    """Outcome of one record in a batch write."""

    name: str
    success: bool
    product_id: UUID | None = None
    observation_id: UUID | None = None
    created_product: bool = False
    error: str | None = None


class BatchResult(BaseModel):
    """Per-record outcomes of a batch write."""

    success: bool = True
    results: list[BatchItemResult] = Field(default_factory=list)
    rejected: list[RejectedRecord] = Field(default_factory=list)

    @property
    def saved_count(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed_count(self) -> int:
        return sum(1 for result in self.results if not result.success)
