"""Shopping list price comparison.

For the pending shopping list this computes per-store prices for every
entry, the cheapest single store that carries every priceable entry, and the
split basket that buys each entry wherever it is cheapest.
"""

from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor

from .data_store import DataStoreProtocol, StorageError
from .logging_config import get_logger
from .matching import ProductResolver
from .models import (
    BasketItem,
    ComparisonResult,
    ComparisonStatus,
    ProductComparison,
    ShoppingListEntry,
    StorePrice,
    StoreTotal,
)
from .price_ledger import PriceLedger

log = get_logger(__name__)

EMPTY_LIST_MESSAGE = "Tu lista está vacía"
NO_DATA_LABEL = "Sin datos"


def _cheapest(prices: list[StorePrice]) -> StorePrice:
    return min(prices, key=lambda row: (row.price, row.store))


class ListComparator:
    """Compares the cost of a shopping list across stores."""

    def __init__(
        self,
        data_store: DataStoreProtocol,
        resolver: ProductResolver | None = None,
        ledger: PriceLedger | None = None,
        max_workers: int = 4,
    ):
        self.data_store = data_store
        self.resolver = resolver or ProductResolver(data_store)
        self.ledger = ledger or PriceLedger(data_store)
        self.max_workers = max_workers

    def compare(self, entries: list[ShoppingListEntry] | None = None) -> ComparisonResult:
        """Compare the given entries, or the unchecked entries of the stored list.

        Returns:
            ComparisonResult; an empty input yields status EMPTY_LIST
        """
        is_demo = not self.data_store.is_configured
        if entries is None:
            entries = self.data_store.load_list().pending

        if not entries:
            return ComparisonResult(
                status=ComparisonStatus.EMPTY_LIST,
                success=False,
                error=EMPTY_LIST_MESSAGE,
                is_demo=is_demo,
            )

        products = self._compare_entries(entries)
        priceable = [p for p in products if p.has_data and p.error is None]

        best_single_store = self._best_single_store(priceable)
        optimized_split = self._optimized_split(priceable)
        optimized_total = round(sum(basket.total for basket in optimized_split), 2)

        total_savings = 0.0
        if best_single_store is not None:
            total_savings = max(0.0, round(best_single_store.total - optimized_total, 2))

        return ComparisonResult(
            status=ComparisonStatus.OK,
            products=products,
            best_single_store=best_single_store,
            optimized_split=optimized_split,
            optimized_total=optimized_total,
            total_savings=total_savings,
            success=all(p.error is None for p in products),
            is_demo=is_demo,
        )

    def _compare_entries(self, entries: list[ShoppingListEntry]) -> list[ProductComparison]:
        """Run per-entry lookups, returning results in list order."""
        if self.max_workers <= 1 or len(entries) == 1:
            return [self.compare_entry(entry) for entry in entries]

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(self.compare_entry, entries))

    def compare_entry(self, entry: ShoppingListEntry) -> ProductComparison:
        """Current per-store prices for one list entry, cheapest first."""
        comparison = ProductComparison(product_name=entry.product_name, quantity=entry.quantity)
        try:
            product_ids = self.resolver.match_product_ids(entry.product_name)
            if not product_ids:
                log.debug("No product matches %r", entry.product_name)
                return comparison
            current = self.ledger.current_prices_merged(product_ids)
        except StorageError as e:
            log.error("Price lookup failed for %r: %s", entry.product_name, e)
            comparison.error = str(e)
            return comparison

        comparison.product_ids = product_ids
        comparison.prices = sorted(
            (
                StorePrice(
                    store=store,
                    price=observation.price,
                    total_price=round(observation.price * entry.quantity, 2),
                    date_recorded=observation.date_recorded,
                )
                for store, observation in current.items()
            ),
            key=lambda row: (row.price, row.store),
        )
        if comparison.prices:
            best = _cheapest(comparison.prices)
            comparison.best_store = best.store
            comparison.best_price = best.price
        return comparison

    def _best_single_store(self, priceable: list[ProductComparison]) -> StoreTotal | None:
        """Cheapest store among those carrying every priceable entry."""
        if not priceable:
            return None

        eligible = set.intersection(*({row.store for row in p.prices} for p in priceable))
        if not eligible:
            return None

        baskets = []
        for store in eligible:
            items = []
            for product in priceable:
                row = next(r for r in product.prices if r.store == store)
                items.append(
                    BasketItem(name=product.product_name, price=row.price, quantity=product.quantity)
                )
            total = round(sum(row.price * row.quantity for row in items), 2)
            baskets.append(StoreTotal(store=store, total=total, items=items))

        return min(baskets, key=lambda basket: (basket.total, basket.store))

    def _optimized_split(self, priceable: list[ProductComparison]) -> list[StoreTotal]:
        """Assign each entry to its cheapest store."""
        baskets: dict[str, list[BasketItem]] = defaultdict(list)
        for product in priceable:
            best = _cheapest(product.prices)
            baskets[best.store].append(
                BasketItem(name=product.product_name, price=best.price, quantity=product.quantity)
            )

        return [
            StoreTotal(
                store=store,
                total=round(sum(item.price * item.quantity for item in items), 2),
                items=items,
            )
            for store, items in baskets.items()
        ]
