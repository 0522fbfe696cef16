"""cesta - Shopping list and supermarket price comparison."""

from .catalog import CatalogManager
from .category import CATEGORY_RULES, DEFAULT_CATEGORY, CategoryRule, classify_product
from .comparison import ListComparator
from .config import ConfigManager
from .dashboard import DashboardAggregator
from .data_store import (
    BackendType,
    DataStore,
    DataStoreProtocol,
    StorageError,
    create_data_store,
)
from .demo_store import DemoStore
from .ingestion import ScanIngestor
from .list_manager import EntryNotFoundError, ListManager
from .matching import (
    AliasNotFoundError,
    ProductNotFoundError,
    ProductResolver,
    containment_overlap_score,
)
from .models import (
    BatchResult,
    ComparisonResult,
    ComparisonStatus,
    DashboardData,
    PriceObservation,
    Product,
    ProductAlias,
    ProductSuggestion,
    ResolutionResult,
    ScannedPrice,
    ScanResult,
    ShoppingList,
    ShoppingListEntry,
    StoreTotal,
    VoiceItem,
)
from .output_formatter import OutputFormatter
from .price_ledger import ObservationNotFoundError, PriceLedger
from .recognition import ReceiptRecognizer, RecognitionError, VoiceListParser
from .sqlite_store import SQLiteStore

__version__ = "0.1.0"

__all__ = [
    "AliasNotFoundError",
    "BackendType",
    "BatchResult",
    "CATEGORY_RULES",
    "CatalogManager",
    "CategoryRule",
    "classify_product",
    "ComparisonResult",
    "ComparisonStatus",
    "ConfigManager",
    "containment_overlap_score",
    "create_data_store",
    "DashboardAggregator",
    "DashboardData",
    "DataStore",
    "DataStoreProtocol",
    "DEFAULT_CATEGORY",
    "DemoStore",
    "EntryNotFoundError",
    "ListComparator",
    "ListManager",
    "ObservationNotFoundError",
    "OutputFormatter",
    "PriceLedger",
    "PriceObservation",
    "Product",
    "ProductAlias",
    "ProductNotFoundError",
    "ProductResolver",
    "ProductSuggestion",
    "ReceiptRecognizer",
    "RecognitionError",
    "ResolutionResult",
    "ScanIngestor",
    "ScannedPrice",
    "ScanResult",
    "ShoppingList",
    "ShoppingListEntry",
    "SQLiteStore",
    "StorageError",
    "StoreTotal",
    "VoiceItem",
    "VoiceListParser",
]
