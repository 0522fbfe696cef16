"""Persisting scanned receipt prices into the ledger."""

from datetime import date

from .data_store import DataStoreProtocol, StorageError
from .logging_config import get_logger
from .matching import ProductResolver
from .models import BatchItemResult, BatchResult, RejectedRecord, ScannedPrice
from .price_ledger import (
    REASON_EMPTY_NAME,
    REASON_EMPTY_STORE,
    REASON_NON_POSITIVE_PRICE,
    PriceLedger,
    is_valid_price,
)

log = get_logger(__name__)


class ScanIngestor:
    """Resolves scanned names to products and records their prices."""

    def __init__(
        self,
        data_store: DataStoreProtocol,
        resolver: ProductResolver | None = None,
        ledger: PriceLedger | None = None,
    ):
        self.data_store = data_store
        self.resolver = resolver or ProductResolver(data_store)
        self.ledger = ledger or PriceLedger(data_store)

    def save_scanned_prices(
        self,
        items: list[ScannedPrice],
        store: str | None = None,
        date_recorded: date | None = None,
    ) -> BatchResult:
        """Save every valid scanned price, one item at a time.

        Scanned names are never trusted as canonical: each goes through the
        resolver with the store context, and a new product is created only
        when nothing matches exactly.

        Args:
            items: Records read from a receipt
            store: Store for the whole receipt; falls back to each item's store
            date_recorded: Purchase date, defaults to today

        Returns:
            BatchResult with per-item outcomes and the rejected records
        """
        result = BatchResult()
        date_recorded = date_recorded or date.today()

        for item in items:
            name = item.name.strip()
            item_store = (store or item.store or "").strip()

            if not name:
                result.rejected.append(
                    RejectedRecord(name="", reason=REASON_EMPTY_NAME, price=item.price)
                )
                continue
            if not is_valid_price(item.price):
                result.rejected.append(
                    RejectedRecord(name=name, reason=REASON_NON_POSITIVE_PRICE, price=item.price)
                )
                continue
            if not item_store:
                result.rejected.append(
                    RejectedRecord(name=name, reason=REASON_EMPTY_STORE, price=item.price)
                )
                continue

            try:
                result.results.append(self._save_one(name, item, item_store, date_recorded))
            except StorageError as e:
                log.error("Failed to save scanned price for %r: %s", name, e)
                result.results.append(BatchItemResult(name=name, success=False, error=str(e)))

        if result.rejected:
            log.warning("Rejected %d scanned records", len(result.rejected))
        result.success = all(outcome.success for outcome in result.results)
        return result

    def _save_one(
        self,
        name: str,
        item: ScannedPrice,
        store: str,
        date_recorded: date,
    ) -> BatchItemResult:
        resolution = self.resolver.resolve(name, store=store)
        created = False
        if resolution.exact_match is not None:
            product = resolution.exact_match
        else:
            product = self.resolver.create_product(name)
            created = True

        observation = self.ledger.record_observation(
            product.id,
            store,
            item.price,
            date_recorded=date_recorded,
            unit_price=item.unit_price,
        )
        if observation is None:
            return BatchItemResult(
                name=name,
                success=False,
                product_id=product.id,
                created_product=created,
                error="Price was rejected by the ledger",
            )
        return BatchItemResult(
            name=name,
            success=True,
            product_id=product.id,
            observation_id=observation.id,
            created_product=created,
        )
