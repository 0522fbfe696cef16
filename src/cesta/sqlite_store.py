"""SQLite-based data persistence for cesta.

This module provides SQLite database storage as an alternative to JSON files.
It implements the same interface as DataStore for seamless switching.
"""

import sqlite3
from collections.abc import Iterable
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from uuid import UUID

from .data_store import StorageError
from .logging_config import get_logger
from .models import (
    PriceObservation,
    Product,
    ProductAlias,
    ShoppingList,
    ShoppingListEntry,
)

log = get_logger(__name__)


class SQLiteStore:
    """Manages SQLite database persistence for products, prices and the list."""

    SCHEMA_VERSION = 1
    is_configured = True

    def __init__(self, db_path: Path | None = None):
        """Initialize SQLite store.

        Args:
            db_path: Path to the SQLite database file. Defaults to ./data/cesta.db
        """
        if db_path is None:
            db_path = Path.cwd() / "data" / "cesta.db"
        self.db_path = db_path
        self._ensure_directories()
        self._init_database()

    def _ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create {self.db_path.parent}: {e}") from e

    @contextmanager
    def _get_connection(self):
        """Get a database connection with proper cleanup."""
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            log.error("Database error on %s: %s", self.db_path, e)
            raise StorageError(f"Database error: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self) -> None:
        """Initialize database schema if not exists."""
        with self._get_connection() as conn:
            conn.executescript("""
                -- Schema version tracking
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                );

                -- Canonical products
                CREATE TABLE IF NOT EXISTS products (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    category TEXT,
                    image_url TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                -- Alternate names, optionally scoped to a store
                CREATE TABLE IF NOT EXISTS product_aliases (
                    id TEXT PRIMARY KEY,
                    product_id TEXT NOT NULL REFERENCES products(id) ON DELETE CASCADE,
                    alias_name TEXT NOT NULL,
                    supermarket_name TEXT,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_aliases_product
                    ON product_aliases(product_id);

                -- Price observations
                CREATE TABLE IF NOT EXISTS prices (
                    id TEXT PRIMARY KEY,
                    product_id TEXT NOT NULL REFERENCES products(id) ON DELETE CASCADE,
                    supermarket_name TEXT NOT NULL,
                    price REAL NOT NULL CHECK (price >= 0),
                    unit_price REAL,
                    date_recorded TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_prices_product_store
                    ON prices(product_id, supermarket_name);

                -- Shopping list entries
                CREATE TABLE IF NOT EXISTS shopping_list (
                    id TEXT PRIMARY KEY,
                    position INTEGER NOT NULL,
                    product_name TEXT NOT NULL,
                    quantity INTEGER NOT NULL DEFAULT 1 CHECK (quantity >= 1),
                    is_checked INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                -- List metadata
                CREATE TABLE IF NOT EXISTS list_metadata (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    version TEXT NOT NULL DEFAULT '1.0',
                    last_updated TEXT NOT NULL
                );

                -- Initialize list metadata if not exists
                INSERT OR IGNORE INTO list_metadata (id, version, last_updated)
                VALUES (1, '1.0', datetime('now'));

                -- Record schema version
                INSERT OR IGNORE INTO schema_version (version) VALUES (1);
            """)

    # --- Row conversion ---

    @staticmethod
    def _row_to_product(row: sqlite3.Row) -> Product:
        return Product(
            id=UUID(row["id"]),
            name=row["name"],
            category=row["category"],
            image_url=row["image_url"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    @staticmethod
    def _row_to_alias(row: sqlite3.Row) -> ProductAlias:
        return ProductAlias(
            id=UUID(row["id"]),
            product_id=UUID(row["product_id"]),
            alias_name=row["alias_name"],
            supermarket_name=row["supermarket_name"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _row_to_observation(row: sqlite3.Row) -> PriceObservation:
        return PriceObservation(
            id=UUID(row["id"]),
            product_id=UUID(row["product_id"]),
            supermarket_name=row["supermarket_name"],
            price=row["price"],
            unit_price=row["unit_price"],
            date_recorded=date.fromisoformat(row["date_recorded"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # --- Product Operations ---

    def list_products(self) -> list[Product]:
        """List all products sorted by name."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM products ORDER BY name COLLATE NOCASE"
            ).fetchall()
            return [self._row_to_product(row) for row in rows]

    def get_product(self, product_id: UUID) -> Product | None:
        """Get a product by ID."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM products WHERE id = ?", (str(product_id),)
            ).fetchone()
            return self._row_to_product(row) if row else None

    def add_product(self, product: Product) -> Product:
        """Insert a product."""
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO products (id, name, category, image_url, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    str(product.id),
                    product.name,
                    product.category,
                    product.image_url,
                    product.created_at.isoformat(),
                    product.updated_at.isoformat(),
                ),
            )
        return product

    def update_product(self, product: Product) -> None:
        """Replace a stored product by ID."""
        product.updated_at = datetime.now()
        with self._get_connection() as conn:
            conn.execute(
                """
                UPDATE products
                SET name = ?, category = ?, image_url = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    product.name,
                    product.category,
                    product.image_url,
                    product.updated_at.isoformat(),
                    str(product.id),
                ),
            )

    def delete_product(self, product_id: UUID) -> bool:
        """Delete a product; aliases and prices cascade."""
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM products WHERE id = ?", (str(product_id),))
            return cursor.rowcount > 0

    # --- Alias Operations ---

    def list_aliases(self, product_id: UUID | None = None) -> list[ProductAlias]:
        """List aliases, optionally only those of one product."""
        with self._get_connection() as conn:
            if product_id is None:
                rows = conn.execute(
                    "SELECT * FROM product_aliases ORDER BY rowid"
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM product_aliases WHERE product_id = ? ORDER BY rowid",
                    (str(product_id),),
                ).fetchall()
            return [self._row_to_alias(row) for row in rows]

    def get_alias(self, alias_id: UUID) -> ProductAlias | None:
        """Get an alias by ID."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM product_aliases WHERE id = ?", (str(alias_id),)
            ).fetchone()
            return self._row_to_alias(row) if row else None

    def add_alias(self, alias: ProductAlias) -> ProductAlias:
        """Insert an alias."""
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO product_aliases
                (id, product_id, alias_name, supermarket_name, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    str(alias.id),
                    str(alias.product_id),
                    alias.alias_name,
                    alias.supermarket_name,
                    alias.created_at.isoformat(),
                ),
            )
        return alias

    def update_alias(self, alias: ProductAlias) -> None:
        """Replace a stored alias by ID."""
        with self._get_connection() as conn:
            conn.execute(
                """
                UPDATE product_aliases
                SET product_id = ?, alias_name = ?, supermarket_name = ?
                WHERE id = ?
                """,
                (
                    str(alias.product_id),
                    alias.alias_name,
                    alias.supermarket_name,
                    str(alias.id),
                ),
            )

    def delete_alias(self, alias_id: UUID) -> bool:
        """Delete an alias. Returns True if it existed."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM product_aliases WHERE id = ?", (str(alias_id),)
            )
            return cursor.rowcount > 0

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
        clauses: list[str] = []
        params: list[str] = []
        if product_ids is not None:
            ids = [str(pid) for pid in product_ids]
            if not ids:
                return []
            clauses.append(f"product_id IN ({','.join('?' * len(ids))})")
            params.extend(ids)
        if store is not None:
            clauses.append("supermarket_name = ?")
            params.append(store)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._get_connection() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM prices {where}
                ORDER BY date_recorded DESC, created_at DESC, rowid DESC
                """,
                params,
            ).fetchall()
            return [self._row_to_observation(row) for row in rows]

    def get_observation(self, observation_id: UUID) -> PriceObservation | None:
        """Get an observation by ID."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM prices WHERE id = ?", (str(observation_id),)
            ).fetchone()
            return self._row_to_observation(row) if row else None

    def add_observation(self, observation: PriceObservation) -> PriceObservation:
        """Insert an observation."""
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO prices
                (id, product_id, supermarket_name, price, unit_price, date_recorded, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(observation.id),
                    str(observation.product_id),
                    observation.supermarket_name,
                    observation.price,
                    observation.unit_price,
                    observation.date_recorded.isoformat(),
                    observation.created_at.isoformat(),
                ),
            )
        return observation

    def update_observation(self, observation: PriceObservation) -> None:
        """Replace a stored observation by ID."""
        with self._get_connection() as conn:
            conn.execute(
                """
                UPDATE prices
                SET supermarket_name = ?, price = ?, unit_price = ?, date_recorded = ?
                WHERE id = ?
                """,
                (
                    observation.supermarket_name,
                    observation.price,
                    observation.unit_price,
                    observation.date_recorded.isoformat(),
                    str(observation.id),
                ),
            )

    def delete_observation(self, observation_id: UUID) -> bool:
        """Delete an observation. Returns True if it existed."""
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM prices WHERE id = ?", (str(observation_id),))
            return cursor.rowcount > 0

    # --- Shopping List Operations ---

    def load_list(self) -> ShoppingList:
        """Load the shopping list in insertion order."""
        with self._get_connection() as conn:
            meta_row = conn.execute(
                "SELECT version, last_updated FROM list_metadata WHERE id = 1"
            ).fetchone()

            version = meta_row["version"] if meta_row else "1.0"
            last_updated_str = meta_row["last_updated"] if meta_row else datetime.now().isoformat()
            last_updated = datetime.fromisoformat(last_updated_str)

            rows = conn.execute("SELECT * FROM shopping_list ORDER BY position").fetchall()
            entries = [
                ShoppingListEntry(
                    id=UUID(row["id"]),
                    product_name=row["product_name"],
                    quantity=row["quantity"],
                    is_checked=bool(row["is_checked"]),
                    created_at=datetime.fromisoformat(row["created_at"]),
                    updated_at=datetime.fromisoformat(row["updated_at"]),
                )
                for row in rows
            ]

            return ShoppingList(version=version, last_updated=last_updated, entries=entries)

    def save_list(self, shopping_list: ShoppingList) -> None:
        """Save the shopping list.

        Args:
            shopping_list: ShoppingList to save
        """
        shopping_list.last_updated = datetime.now()

        with self._get_connection() as conn:
            conn.execute(
                """
                UPDATE list_metadata
                SET version = ?, last_updated = ?
                WHERE id = 1
                """,
                (shopping_list.version, shopping_list.last_updated.isoformat()),
            )

            existing_ids = {
                row["id"] for row in conn.execute("SELECT id FROM shopping_list").fetchall()
            }
            new_ids = {str(entry.id) for entry in shopping_list.entries}

            removed_ids = existing_ids - new_ids
            if removed_ids:
                placeholders = ",".join("?" * len(removed_ids))
                conn.execute(
                    f"DELETE FROM shopping_list WHERE id IN ({placeholders})",
                    list(removed_ids),
                )

            for position, entry in enumerate(shopping_list.entries):
                conn.execute(
                    """
                    INSERT OR REPLACE INTO shopping_list
                    (id, position, product_name, quantity, is_checked, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        str(entry.id),
                        position,
                        entry.product_name,
                        entry.quantity,
                        int(entry.is_checked),
                        entry.created_at.isoformat(),
                        entry.updated_at.isoformat(),
                    ),
                )

    def get_entry(self, entry_id: UUID) -> ShoppingListEntry | None:
        """Get a specific list entry by ID."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM shopping_list WHERE id = ?", (str(entry_id),)
            ).fetchone()
            if not row:
                return None
            return ShoppingListEntry(
                id=UUID(row["id"]),
                product_name=row["product_name"],
                quantity=row["quantity"],
                is_checked=bool(row["is_checked"]),
                created_at=datetime.fromisoformat(row["created_at"]),
                updated_at=datetime.fromisoformat(row["updated_at"]),
            )

    # --- Utility Methods ---

    def get_stats(self) -> dict[str, int]:
        """Get database statistics.

        Returns:
            Dictionary with row counts for each table
        """
        with self._get_connection() as conn:
            stats = {}
            for table in ["products", "product_aliases", "prices", "shopping_list"]:
                count = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                stats[table] = count
            return stats
