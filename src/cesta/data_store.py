"""Data persistence for cesta.

This module provides data persistence with support for JSON (default) or SQLite
backends, plus an in-memory demo store used when no storage is configured.
Use create_data_store() to get the appropriate backend based on configuration.
"""

import json
from collections.abc import Iterable
from datetime import date, datetime, time
from enum import Enum
from pathlib import Path
from typing import Any, Protocol, TypeVar
from uuid import UUID

from pydantic import BaseModel, ValidationError

from .logging_config import get_logger
from .models import (
    PriceObservation,
    Product,
    ProductAlias,
    ShoppingList,
    ShoppingListEntry,
)

log = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class StorageError(Exception):
    """Raised when the backing store fails (I/O, corrupt data, database errors)."""


class BackendType(str, Enum):
    """Data storage backend types."""

    JSON = "json"
    SQLITE = "sqlite"
    DEMO = "demo"


class DataStoreProtocol(Protocol):
    """Protocol defining the data store interface."""

    is_configured: bool

    def list_products(self) -> list[Product]: ...
    def get_product(self, product_id: UUID) -> Product | None: ...
    def add_product(self, product: Product) -> Product: ...
    def update_product(self, product: Product) -> None: ...
    def delete_product(self, product_id: UUID) -> bool: ...
    def list_aliases(self, product_id: UUID | None = None) -> list[ProductAlias]: ...
    def get_alias(self, alias_id: UUID) -> ProductAlias | None: ...
    def add_alias(self, alias: ProductAlias) -> ProductAlias: ...
    def update_alias(self, alias: ProductAlias) -> None: ...
    def delete_alias(self, alias_id: UUID) -> bool: ...
    def list_observations(
        self,
        product_ids: Iterable[UUID] | None = None,
        store: str | None = None,
    ) -> list[PriceObservation]: ...
    def get_observation(self, observation_id: UUID) -> PriceObservation | None: ...
    def add_observation(self, observation: PriceObservation) -> PriceObservation: ...
    def update_observation(self, observation: PriceObservation) -> None: ...
    def delete_observation(self, observation_id: UUID) -> bool: ...
    def load_list(self) -> ShoppingList: ...
    def save_list(self, shopping_list: ShoppingList) -> None: ...
    def get_entry(self, entry_id: UUID) -> ShoppingListEntry | None: ...


class JSONEncoder(json.JSONEncoder):
    """Custom JSON encoder for our data types."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, date):
            return obj.isoformat()
        if isinstance(obj, time):
            return obj.isoformat()
        return super().default(obj)


def newest_first(observations: list[PriceObservation]) -> list[PriceObservation]:
    """Sort observations by date_recorded then created_at, most recent first.

    Remaining ties put the later-inserted observation first, so the order is
    deterministic for any input order that reflects insertion.
    """
    indexed = list(enumerate(observations))
    indexed.sort(
        key=lambda pair: (pair[1].date_recorded, pair[1].created_at, pair[0]),
        reverse=True,
    )
    return [observation for _, observation in indexed]


def filter_observations(
    observations: list[PriceObservation],
    product_ids: Iterable[UUID] | None = None,
    store: str | None = None,
) -> list[PriceObservation]:
    """Apply the product-id set and store filters shared by the file-based stores."""
    if product_ids is not None:
        wanted = set(product_ids)
        observations = [obs for obs in observations if obs.product_id in wanted]
    if store is not None:
        observations = [obs for obs in observations if obs.supermarket_name == store]
    return newest_first(observations)


class DataStore:
    """Manages JSON file persistence for products, prices and the shopping list."""

    is_configured = True

    def __init__(self, data_dir: Path | None = None):
        """Initialize data store.

        Args:
            data_dir: Directory for data files. Defaults to ./data
        """
        self.data_dir = data_dir or Path.cwd() / "data"
        self._ensure_directories()

    def _ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create data directory {self.data_dir}: {e}") from e

    def _products_path(self) -> Path:
        """Path to products file."""
        return self.data_dir / "products.json"

    def _aliases_path(self) -> Path:
        """Path to product aliases file."""
        return self.data_dir / "product_aliases.json"

    def _prices_path(self) -> Path:
        """Path to price observations file."""
        return self.data_dir / "prices.json"

    def _list_path(self) -> Path:
        """Path to shopping list file."""
        return self.data_dir / "shopping_list.json"

    def _read_json(self, path: Path) -> Any:
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            log.error("Failed to read %s: %s", path, e)
            raise StorageError(f"Cannot read {path.name}: {e}") from e

    def _write_json(self, path: Path, data: Any) -> None:
        tmp_path = path.with_suffix(".json.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, cls=JSONEncoder, indent=2, ensure_ascii=False)
            tmp_path.replace(path)
        except OSError as e:
            log.error("Failed to write %s: %s", path, e)
            raise StorageError(f"Cannot write {path.name}: {e}") from e

    def _load_records(self, path: Path, model: type[ModelT]) -> list[ModelT]:
        raw = self._read_json(path) or []
        try:
            return [model(**record) for record in raw]
        except (TypeError, ValidationError) as e:
            raise StorageError(f"Corrupt record in {path.name}: {e}") from e

    def _save_records(self, path: Path, records: list[BaseModel]) -> None:
        self._write_json(path, [record.model_dump() for record in records])

    # --- Product Operations ---

    def list_products(self) -> list[Product]:
        """List all products sorted by name."""
        products = self._load_records(self._products_path(), Product)
        return sorted(products, key=lambda p: p.name.lower())

    def get_product(self, product_id: UUID) -> Product | None:
        """Get a product by ID."""
        for product in self._load_records(self._products_path(), Product):
            if product.id == product_id:
                return product
        return None

    def add_product(self, product: Product) -> Product:
        """Insert a product."""
        products = self._load_records(self._products_path(), Product)
        products.append(product)
        self._save_records(self._products_path(), products)
        return product

    def update_product(self, product: Product) -> None:
        """Replace a stored product by ID."""
        products = self._load_records(self._products_path(), Product)
        product.updated_at = datetime.now()
        products = [product if p.id == product.id else p for p in products]
        self._save_records(self._products_path(), products)

    def delete_product(self, product_id: UUID) -> bool:
        """Delete a product together with its aliases and price observations.

        Returns:
            True if the product existed
        """
        products = self._load_records(self._products_path(), Product)
        remaining = [p for p in products if p.id != product_id]
        if len(remaining) == len(products):
            return False

        aliases = self._load_records(self._aliases_path(), ProductAlias)
        observations = self._load_records(self._prices_path(), PriceObservation)
        self._save_records(
            self._aliases_path(), [a for a in aliases if a.product_id != product_id]
        )
        self._save_records(
            self._prices_path(), [o for o in observations if o.product_id != product_id]
        )
        self._save_records(self._products_path(), remaining)
        return True

    # --- Alias Operations ---

    def list_aliases(self, product_id: UUID | None = None) -> list[ProductAlias]:
        """List aliases, optionally only those of one product."""
        aliases = self._load_records(self._aliases_path(), ProductAlias)
        if product_id is not None:
            aliases = [a for a in aliases if a.product_id == product_id]
        return aliases

    def get_alias(self, alias_id: UUID) -> ProductAlias | None:
        """Get an alias by ID."""
        for alias in self._load_records(self._aliases_path(), ProductAlias):
            if alias.id == alias_id:
                return alias
        return None

    def add_alias(self, alias: ProductAlias) -> ProductAlias:
        """Insert an alias."""
        aliases = self._load_records(self._aliases_path(), ProductAlias)
        aliases.append(alias)
        self._save_records(self._aliases_path(), aliases)
        return alias

    def update_alias(self, alias: ProductAlias) -> None:
        """Replace a stored alias by ID."""
        aliases = self._load_records(self._aliases_path(), ProductAlias)
        aliases = [alias if a.id == alias.id else a for a in aliases]
        self._save_records(self._aliases_path(), aliases)

    def delete_alias(self, alias_id: UUID) -> bool:
        """Delete an alias. Returns True if it existed."""
        aliases = self._load_records(self._aliases_path(), ProductAlias)
        remaining = [a for a in aliases if a.id != alias_id]
        if len(remaining) == len(aliases):
            return False
        self._save_records(self._aliases_path(), remaining)
        return True

    # --- Price Observation Operations ---

    def list_observations(
        self,
        product_ids: Iterable[UUID] | None = None,
        store: str | None = None,
    ) -> list[PriceObservation]:
        """List observations, most recent first.

        Args:
            product_ids: Only observations of these products (None = all)
            store: Only observations at this store (None = all)
        """
        observations = self._load_records(self._prices_path(), PriceObservation)
        return filter_observations(observations, product_ids, store)

    def get_observation(self, observation_id: UUID) -> PriceObservation | None:
        """Get an observation by ID."""
        for observation in self._load_records(self._prices_path(), PriceObservation):
            if observation.id == observation_id:
                return observation
        return None

    def add_observation(self, observation: PriceObservation) -> PriceObservation:
        """Append an observation."""
        observations = self._load_records(self._prices_path(), PriceObservation)
        observations.append(observation)
        self._save_records(self._prices_path(), observations)
        return observation

    def update_observation(self, observation: PriceObservation) -> None:
        """Replace a stored observation by ID, keeping its position."""
        observations = self._load_records(self._prices_path(), PriceObservation)
        observations = [observation if o.id == observation.id else o for o in observations]
        self._save_records(self._prices_path(), observations)

    def delete_observation(self, observation_id: UUID) -> bool:
        """Delete an observation. Returns True if it existed."""
        observations = self._load_records(self._prices_path(), PriceObservation)
        remaining = [o for o in observations if o.id != observation_id]
        if len(remaining) == len(observations):
            return False
        self._save_records(self._prices_path(), remaining)
        return True

    # --- Shopping List Operations ---

    def load_list(self) -> ShoppingList:
        """Load the shopping list.

        Returns:
            ShoppingList object, empty if file doesn't exist
        """
        data = self._read_json(self._list_path())
        if data is None:
            return ShoppingList()
        try:
            return ShoppingList(**data)
        except (TypeError, ValidationError) as e:
            raise StorageError(f"Corrupt shopping list: {e}") from e

    def save_list(self, shopping_list: ShoppingList) -> None:
        """Save the shopping list.

        Args:
            shopping_list: ShoppingList to save
        """
        shopping_list.last_updated = datetime.now()
        self._write_json(self._list_path(), shopping_list.model_dump())

    def get_entry(self, entry_id: UUID) -> ShoppingListEntry | None:
        """Get a specific list entry by ID."""
        for entry in self.load_list().entries:
            if entry.id == entry_id:
                return entry
        return None


def create_data_store(
    backend: BackendType = BackendType.JSON,
    data_dir: Path | None = None,
    db_path: Path | None = None,
) -> DataStoreProtocol:
    """Create a data store with the specified backend.

    Args:
        backend: Which backend to use (json, sqlite or demo)
        data_dir: Directory for data files (used by JSON backend, also used
                  as base path for SQLite if db_path not specified)
        db_path: Path to SQLite database file (only used by SQLite backend)

    Returns:
        A DataStore, SQLiteStore or DemoStore instance

    Example:
        # Use JSON backend (default)
        store = create_data_store()

        # Use SQLite with custom path
        store = create_data_store(
            BackendType.SQLITE,
            db_path=Path("./my_data/cesta.db")
        )

        # No storage configured: in-memory demo data
        store = create_data_store(BackendType.DEMO)
    """
    if backend == BackendType.SQLITE:
        from .sqlite_store import SQLiteStore

        if db_path is None and data_dir is not None:
            db_path = data_dir / "cesta.db"

        return SQLiteStore(db_path=db_path)
    if backend == BackendType.DEMO:
        from .demo_store import DemoStore

        log.info("No storage configured, using in-memory demo data")
        return DemoStore()
    return DataStore(data_dir=data_dir)
