"""Shopping list management operations."""

from datetime import datetime
from uuid import UUID

from .category import DEFAULT_CATEGORY, category_names, classify_product
from .data_store import DataStoreProtocol
from .models import ShoppingListEntry

MIN_SEARCH_LENGTH = 2
MAX_SEARCH_RESULTS = 8
MAX_RECENT_NAMES = 10


class EntryNotFoundError(Exception):
    """Raised when a list entry is not found."""

    def __init__(self, entry_id: UUID | str):
        self.entry_id = entry_id
        super().__init__(f"List entry with ID '{entry_id}' not found")


class ListManager:
    """Manages shopping list operations."""

    def __init__(self, data_store: DataStoreProtocol, default_category: str = DEFAULT_CATEGORY):
        """Initialize list manager.

        Args:
            data_store: Store holding the shopping list and product catalog
            default_category: Group for entries no category rule matches
        """
        self.data_store = data_store
        self.default_category = default_category

    def add_entry(self, name: str, quantity: int = 1) -> dict:
        """Add an entry to the shopping list.

        Args:
            name: Free-text product name
            quantity: How many units to buy

        Returns:
            Dict with success status and entry data

        Raises:
            ValueError: If the name is empty or quantity is below 1
        """
        name = name.strip()
        if not name:
            raise ValueError("Product name cannot be empty")
        if quantity < 1:
            raise ValueError("Quantity must be at least 1")

        shopping_list = self.data_store.load_list()
        entry = ShoppingListEntry(product_name=name, quantity=quantity)
        shopping_list.entries.append(entry)
        self.data_store.save_list(shopping_list)

        return {
            "success": True,
            "message": f"Added {name} to shopping list",
            "data": {"entry": entry.model_dump(mode="json")},
        }

    def set_checked(self, entry_id: UUID | str, checked: bool = True) -> dict:
        """Mark an entry as acquired (or back to pending).

        Raises:
            EntryNotFoundError: If entry not found
        """
        if isinstance(entry_id, str):
            entry_id = UUID(entry_id)

        shopping_list = self.data_store.load_list()

        for entry in shopping_list.entries:
            if entry.id == entry_id:
                entry.is_checked = checked
                entry.updated_at = datetime.now()
                self.data_store.save_list(shopping_list)
                state = "checked" if checked else "unchecked"
                return {
                    "success": True,
                    "message": f"Marked {entry.product_name} as {state}",
                    "data": {"entry": entry.model_dump(mode="json")},
                }

        raise EntryNotFoundError(entry_id)

    def remove_entry(self, entry_id: UUID | str) -> dict:
        """Remove an entry from the shopping list.

        Raises:
            EntryNotFoundError: If entry not found
        """
        if isinstance(entry_id, str):
            entry_id = UUID(entry_id)

        shopping_list = self.data_store.load_list()

        for i, entry in enumerate(shopping_list.entries):
            if entry.id == entry_id:
                removed = shopping_list.entries.pop(i)
                self.data_store.save_list(shopping_list)
                return {
                    "success": True,
                    "message": f"Removed {removed.product_name} from shopping list",
                    "data": {"entry": removed.model_dump(mode="json")},
                }

        raise EntryNotFoundError(entry_id)

    def clear_checked(self) -> dict:
        """Finalize a purchase by removing every checked entry.

        Returns:
            Dict with count of removed entries
        """
        shopping_list = self.data_store.load_list()
        original_count = len(shopping_list.entries)

        shopping_list.entries = shopping_list.pending

        removed_count = original_count - len(shopping_list.entries)
        self.data_store.save_list(shopping_list)

        return {
            "success": True,
            "message": f"Cleared {removed_count} checked entries",
            "data": {"removed_count": removed_count},
        }

    def get_list(self, include_checked: bool = True) -> dict:
        """Get the shopping list.

        Args:
            include_checked: Whether checked entries are included

        Returns:
            Dict with list data
        """
        shopping_list = self.data_store.load_list()
        entries = shopping_list.entries if include_checked else shopping_list.pending

        return {
            "success": True,
            "data": {
                "list": {
                    "version": shopping_list.version,
                    "last_updated": shopping_list.last_updated.isoformat(),
                    "entries": [entry.model_dump(mode="json") for entry in entries],
                    "total_entries": len(entries),
                    "pending_count": len(shopping_list.pending),
                    "is_demo": not self.data_store.is_configured,
                }
            },
        }

    def get_entry(self, entry_id: UUID | str) -> ShoppingListEntry:
        """Get a specific entry by ID.

        Raises:
            EntryNotFoundError: If entry not found
        """
        if isinstance(entry_id, str):
            entry_id = UUID(entry_id)

        entry = self.data_store.get_entry(entry_id)
        if not entry:
            raise EntryNotFoundError(entry_id)
        return entry

    def get_by_category(self) -> dict:
        """Get entries grouped by category, in category table order.

        Returns:
            Dict with entries grouped by category
        """
        shopping_list = self.data_store.load_list()

        grouped: dict[str, list[dict]] = {}
        for entry in shopping_list.entries:
            category = classify_product(entry.product_name, default=self.default_category)
            grouped.setdefault(category, []).append(entry.model_dump(mode="json"))

        by_category = {
            name: grouped[name]
            for name in category_names(default=self.default_category)
            if name in grouped
        }

        return {
            "success": True,
            "data": {"by_category": by_category},
        }

    def search_names(self, query: str) -> list[str]:
        """Autocomplete names from the catalog and the list.

        Case-insensitive substring match; queries shorter than two
        characters return nothing.
        """
        needle = query.strip().lower()
        if len(needle) < MIN_SEARCH_LENGTH:
            return []

        candidates = [product.name for product in self.data_store.list_products()]
        candidates += [entry.product_name for entry in self.data_store.load_list().entries]

        names: list[str] = []
        seen: set[str] = set()
        for name in candidates:
            key = name.lower()
            if needle in key and key not in seen:
                seen.add(key)
                names.append(name)
            if len(names) >= MAX_SEARCH_RESULTS:
                break
        return names

    def recent_names(self) -> list[str]:
        """Last distinct names added to the list, newest first."""
        entries = sorted(
            self.data_store.load_list().entries,
            key=lambda entry: entry.created_at,
            reverse=True,
        )

        names: list[str] = []
        seen: set[str] = set()
        for entry in entries:
            key = entry.product_name.lower()
            if key not in seen:
                seen.add(key)
                names.append(entry.product_name)
            if len(names) >= MAX_RECENT_NAMES:
                break
        return names
