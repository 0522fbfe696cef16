"""Migration from JSON to SQLite data storage.

Copies products, aliases, price observations and the shopping list from the
JSON files into the SQLite database. It can be run safely multiple times: it
skips when the database already has data unless forced, and never inserts a
record whose ID is already present.
"""

from pathlib import Path

from .data_store import DataStore
from .logging_config import get_logger
from .sqlite_store import SQLiteStore

log = get_logger(__name__)


class MigrationError(Exception):
    """Raised when migration encounters an error."""


class JSONToSQLiteMigrator:
    """Migrates data from JSON files to SQLite database."""

    def __init__(
        self,
        json_data_dir: Path | None = None,
        sqlite_db_path: Path | None = None,
    ):
        """Initialize migrator.

        Args:
            json_data_dir: Directory containing JSON data files.
                          Defaults to ./data
            sqlite_db_path: Path to SQLite database file.
                           Defaults to <json_data_dir>/cesta.db
        """
        self.json_data_dir = json_data_dir or Path.cwd() / "data"
        self.sqlite_db_path = sqlite_db_path or (self.json_data_dir / "cesta.db")

        self.json_store = DataStore(data_dir=self.json_data_dir)
        self.sqlite_store = SQLiteStore(db_path=self.sqlite_db_path)

        self.stats = {
            "products": 0,
            "aliases": 0,
            "prices": 0,
            "list_entries": 0,
        }

    def check_json_data_exists(self) -> bool:
        """Check if there is JSON data to migrate."""
        json_files = [
            self.json_store._products_path(),
            self.json_store._aliases_path(),
            self.json_store._prices_path(),
            self.json_store._list_path(),
        ]
        return any(f.exists() for f in json_files)

    def check_sqlite_has_data(self) -> bool:
        """Check if SQLite database already has data."""
        stats = self.sqlite_store.get_stats()
        return any(count > 0 for count in stats.values())

    def migrate_products(self) -> int:
        """Migrate products. Returns number of products inserted."""
        count = 0
        for product in self.json_store.list_products():
            if self.sqlite_store.get_product(product.id) is None:
                self.sqlite_store.add_product(product)
                count += 1
        self.stats["products"] = count
        return count

    def migrate_aliases(self) -> int:
        """Migrate aliases. Returns number of aliases inserted."""
        count = 0
        for alias in self.json_store.list_aliases():
            if self.sqlite_store.get_alias(alias.id) is None:
                self.sqlite_store.add_alias(alias)
                count += 1
        self.stats["aliases"] = count
        return count

    def migrate_prices(self) -> int:
        """Migrate price observations, oldest first to keep insertion order."""
        count = 0
        for observation in reversed(self.json_store.list_observations()):
            if self.sqlite_store.get_observation(observation.id) is None:
                self.sqlite_store.add_observation(observation)
                count += 1
        self.stats["prices"] = count
        return count

    def migrate_shopping_list(self) -> int:
        """Append JSON list entries missing from SQLite. Returns number inserted."""
        sqlite_list = self.sqlite_store.load_list()
        present = {entry.id for entry in sqlite_list.entries}
        missing = [e for e in self.json_store.load_list().entries if e.id not in present]
        if missing:
            sqlite_list.entries.extend(missing)
            self.sqlite_store.save_list(sqlite_list)

        count = len(missing)
        self.stats["list_entries"] = count
        return count

    def verify_migration(self) -> dict[str, bool]:
        """Verify that every JSON record is present in SQLite.

        Returns:
            Dict mapping data type to verification result
        """
        sqlite_products = {p.id for p in self.sqlite_store.list_products()}
        sqlite_aliases = {a.id for a in self.sqlite_store.list_aliases()}
        sqlite_prices = {o.id for o in self.sqlite_store.list_observations()}
        sqlite_entries = {e.id for e in self.sqlite_store.load_list().entries}

        return {
            "products": {p.id for p in self.json_store.list_products()} <= sqlite_products,
            "aliases": {a.id for a in self.json_store.list_aliases()} <= sqlite_aliases,
            "prices": {o.id for o in self.json_store.list_observations()} <= sqlite_prices,
            "list_entries": {e.id for e in self.json_store.load_list().entries}
            <= sqlite_entries,
        }

    def run_migration(self, force: bool = False) -> dict[str, int]:
        """Run the full migration.

        Args:
            force: If True, migrate even if SQLite already has data

        Returns:
            Dict with migration statistics

        Raises:
            MigrationError: If data verification fails
        """
        if not self.check_json_data_exists():
            log.info("No JSON data found to migrate in %s", self.json_data_dir)
            return self.stats

        if self.check_sqlite_has_data() and not force:
            log.warning("SQLite database already contains data; use force to merge")
            return self.stats

        log.info("Starting migration from %s to %s", self.json_data_dir, self.sqlite_db_path)

        # products first so alias and price foreign keys resolve
        log.info("Migrated %d products", self.migrate_products())
        log.info("Migrated %d aliases", self.migrate_aliases())
        log.info("Migrated %d prices", self.migrate_prices())
        log.info("Migrated %d list entries", self.migrate_shopping_list())

        verification = self.verify_migration()
        if not all(verification.values()):
            failed = [k for k, v in verification.items() if not v]
            raise MigrationError(f"Migration verification failed for: {failed}")

        log.info("Migration complete: %s", self.sqlite_db_path)
        return self.stats


def migrate(
    data_dir: Path | None = None,
    db_path: Path | None = None,
    force: bool = False,
) -> dict[str, int]:
    """Convenience function to run migration.

    Args:
        data_dir: Directory containing JSON data files
        db_path: Path to SQLite database file
        force: If True, merge into a database that already has data

    Returns:
        Migration statistics
    """
    migrator = JSONToSQLiteMigrator(
        json_data_dir=data_dir,
        sqlite_db_path=db_path,
    )
    return migrator.run_migration(force=force)
