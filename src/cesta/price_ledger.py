"""Price ledger: recording observations and answering current-price queries."""

import math
from collections import defaultdict
from collections.abc import Iterable
from datetime import date
from uuid import UUID

from .data_store import DataStoreProtocol, StorageError
from .logging_config import get_logger
from .models import (
    BatchItemResult,
    BatchResult,
    PriceAlert,
    PriceObservation,
    RejectedRecord,
    StoreProduct,
)

log = get_logger(__name__)

REASON_NON_POSITIVE_PRICE = "non_positive_price"
REASON_EMPTY_STORE = "empty_store"
REASON_UNKNOWN_PRODUCT = "unknown_product"
REASON_EMPTY_NAME = "empty_name"


def is_valid_price(price: float | None) -> bool:
    """True for finite prices above zero."""
    return price is not None and math.isfinite(price) and price > 0


class ObservationNotFoundError(Exception):
    """Raised when a price observation is not found."""

    def __init__(self, observation_id: UUID | str):
        self.observation_id = observation_id
        super().__init__(f"Price observation with ID '{observation_id}' not found")


class PriceLedger:
    """Stores price observations and derives current and historical prices."""

    def __init__(self, data_store: DataStoreProtocol):
        self.data_store = data_store

    def _rejection_reason(self, product_id: UUID, store: str, price: float) -> str | None:
        if not is_valid_price(price):
            return REASON_NON_POSITIVE_PRICE
        if not store or not store.strip():
            return REASON_EMPTY_STORE
        if self.data_store.get_product(product_id) is None:
            return REASON_UNKNOWN_PRODUCT
        return None

    def record_observation(
        self,
        product_id: UUID,
        store: str,
        price: float,
        date_recorded: date | None = None,
        unit_price: float | None = None,
    ) -> PriceObservation | None:
        """Store one observation.

        Returns:
            The stored observation, or None when it was dropped because the
            price is not positive, the store is empty or the product unknown
        """
        reason = self._rejection_reason(product_id, store, price)
        if reason is not None:
            log.warning(
                "Dropped price %s for product %s at %r: %s", price, product_id, store, reason
            )
            return None

        observation = PriceObservation(
            product_id=product_id,
            supermarket_name=store.strip(),
            price=price,
            unit_price=unit_price if is_valid_price(unit_price) else None,
            date_recorded=date_recorded or date.today(),
        )
        return self.data_store.add_observation(observation)

    def record_observations(self, observations: Iterable[PriceObservation]) -> BatchResult:
        """Store a batch of observations, one record at a time.

        Invalid records land in ``rejected``; storage failures are recorded per
        record and flip the batch ``success`` flag without stopping the batch.
        """
        result = BatchResult()
        for observation in observations:
            label = str(observation.product_id)
            reason = self._rejection_reason(
                observation.product_id, observation.supermarket_name, observation.price
            )
            if reason is not None:
                log.warning("Dropped observation for %s: %s", label, reason)
                result.rejected.append(
                    RejectedRecord(name=label, reason=reason, price=observation.price)
                )
                continue
            try:
                stored = self.data_store.add_observation(observation)
            except StorageError as e:
                log.error("Failed to store observation for %s: %s", label, e)
                result.results.append(BatchItemResult(name=label, success=False, error=str(e)))
                result.success = False
                continue
            result.results.append(
                BatchItemResult(
                    name=label,
                    success=True,
                    product_id=stored.product_id,
                    observation_id=stored.id,
                )
            )
        return result

    def current_prices_by_store(
        self, product_ids: Iterable[UUID]
    ) -> dict[UUID, dict[str, PriceObservation]]:
        """Most recent observation per store, for each requested product.

        Observations arrive newest first (date_recorded, then created_at, then
        insertion order), so the first one seen per store is the current one.
        """
        ids = list(product_ids)
        current: dict[UUID, dict[str, PriceObservation]] = {pid: {} for pid in ids}
        for observation in self.data_store.list_observations(product_ids=ids):
            current[observation.product_id].setdefault(observation.supermarket_name, observation)
        return current

    def current_prices_merged(self, product_ids: Iterable[UUID]) -> dict[str, PriceObservation]:
        """Most recent observation per store across a merged set of products."""
        merged: dict[str, PriceObservation] = {}
        for observation in self.data_store.list_observations(product_ids=list(product_ids)):
            merged.setdefault(observation.supermarket_name, observation)
        return merged

    def min_historical_unit_price(self, product_ids: Iterable[UUID]) -> dict[UUID, float]:
        """Lowest positive unit price (or shelf price) ever recorded per product."""
        minimums: dict[UUID, float] = {}
        for observation in self.data_store.list_observations(product_ids=list(product_ids)):
            value = observation.effective_unit_price
            if value <= 0:
                continue
            if observation.product_id not in minimums or value < minimums[observation.product_id]:
                minimums[observation.product_id] = value
        return minimums

    def price_alerts(self, product_ids: Iterable[UUID] | None = None) -> list[PriceAlert]:
        """Compare each product's cheapest current price with its all-time low."""
        if product_ids is None:
            ids = [product.id for product in self.data_store.list_products()]
        else:
            ids = list(product_ids)

        minimums = self.min_historical_unit_price(ids)
        current = self.current_prices_by_store(ids)

        alerts = []
        for product_id in ids:
            if product_id not in minimums:
                continue
            min_price = minimums[product_id]
            positive = [
                obs for obs in current[product_id].values() if obs.effective_unit_price > 0
            ]
            if not positive:
                alerts.append(PriceAlert(product_id=product_id, min_price=min_price))
                continue
            best = min(positive, key=lambda obs: (obs.effective_unit_price, obs.supermarket_name))
            current_price = best.effective_unit_price
            alerts.append(
                PriceAlert(
                    product_id=product_id,
                    min_price=round(min_price, 2),
                    current_price=round(current_price, 2),
                    current_store=best.supermarket_name,
                    is_record_low=current_price <= min_price,
                    above_min_pct=round((current_price - min_price) / min_price * 100, 1),
                )
            )
        return alerts

    def list_stores(self) -> list[str]:
        """Every store name with at least one observation, sorted."""
        return sorted({obs.supermarket_name for obs in self.data_store.list_observations()})

    def products_at_store(self, store: str) -> list[StoreProduct]:
        """Latest price of every product seen at ``store``, sorted by product name."""
        latest: dict[UUID, PriceObservation] = {}
        counts: dict[UUID, int] = defaultdict(int)
        for observation in self.data_store.list_observations(store=store):
            latest.setdefault(observation.product_id, observation)
            counts[observation.product_id] += 1

        rows = []
        for product_id, observation in latest.items():
            product = self.data_store.get_product(product_id)
            rows.append(
                StoreProduct(
                    product_id=product_id,
                    product_name=product.name if product else "Desconocido",
                    last_price=observation.price,
                    last_date=observation.date_recorded,
                    count_records=counts[product_id],
                )
            )
        return sorted(rows, key=lambda row: row.product_name.lower())

    def update_price(
        self,
        observation_id: UUID | str,
        price: float,
        unit_price: float | None = None,
    ) -> PriceObservation:
        """Correct the price of a single observation.

        Raises:
            ObservationNotFoundError: If the observation does not exist
            ValueError: If the new price is not positive
        """
        if isinstance(observation_id, str):
            observation_id = UUID(observation_id)
        if not is_valid_price(price):
            raise ValueError("Price must be greater than zero")

        observation = self.data_store.get_observation(observation_id)
        if observation is None:
            raise ObservationNotFoundError(observation_id)

        observation.price = price
        if is_valid_price(unit_price):
            observation.unit_price = unit_price
        self.data_store.update_observation(observation)
        return observation

    def delete_observation(self, observation_id: UUID | str) -> None:
        """Delete a single observation.

        Raises:
            ObservationNotFoundError: If the observation does not exist
        """
        if isinstance(observation_id, str):
            observation_id = UUID(observation_id)
        if not self.data_store.delete_observation(observation_id):
            raise ObservationNotFoundError(observation_id)
