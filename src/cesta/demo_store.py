"""In-memory store used when no storage backend is configured.

DemoStore satisfies DataStoreProtocol without touching disk so every command
has something to render. Writes live only as long as the instance.
"""

from collections.abc import Iterable
from datetime import date, datetime, timedelta
from uuid import UUID

from .data_store import filter_observations
from .models import (
    PriceObservation,
    Product,
    ProductAlias,
    ShoppingList,
    ShoppingListEntry,
)


class DemoStore:
    """Seeded in-memory store flagged as not configured."""

    is_configured = False

    def __init__(self, today: date | None = None, seed: bool = True):
        self._products: list[Product] = []
        self._aliases: list[ProductAlias] = []
        self._observations: list[PriceObservation] = []
        self._list = ShoppingList()
        if seed:
            self._seed(today or date.today())

    def _seed(self, today: date) -> None:
        leche = self.add_product(Product(name="Leche", category="Lácteos"))
        pan = self.add_product(Product(name="Pan", category="Despensa"))
        aceite = self.add_product(Product(name="Aceite de oliva virgen extra"))
        self.add_alias(ProductAlias(product_id=leche.id, alias_name="leche entera"))

        for product, store, price, days_ago in [
            (leche, "Mercadona", 0.99, 20),
            (leche, "Mercadona", 0.95, 3),
            (leche, "Lidl", 0.89, 2),
            (pan, "Mercadona", 1.20, 4),
            (pan, "Lidl", 1.35, 5),
            (aceite, "Mercadona", 5.99, 6),
            (aceite, "Lidl", 6.49, 7),
            (aceite, "Carrefour", 6.25, 1),
        ]:
            self.add_observation(
                PriceObservation(
                    product_id=product.id,
                    supermarket_name=store,
                    price=price,
                    date_recorded=today - timedelta(days=days_ago),
                )
            )

        self._list.entries = [
            ShoppingListEntry(product_name="Leche", quantity=2),
            ShoppingListEntry(product_name="Pan", quantity=1),
        ]

    # --- Products ---

    def list_products(self) -> list[Product]:
        return sorted(self._products, key=lambda p: p.name.lower())

    def get_product(self, product_id: UUID) -> Product | None:
        return next((p for p in self._products if p.id == product_id), None)

    def add_product(self, product: Product) -> Product:
        self._products.append(product)
        return product

    def update_product(self, product: Product) -> None:
        product.updated_at = datetime.now()
        self._products = [product if p.id == product.id else p for p in self._products]

    def delete_product(self, product_id: UUID) -> bool:
        before = len(self._products)
        self._products = [p for p in self._products if p.id != product_id]
        if len(self._products) == before:
            return False
        self._aliases = [a for a in self._aliases if a.product_id != product_id]
        self._observations = [o for o in self._observations if o.product_id != product_id]
        return True

    # --- Aliases ---

    def list_aliases(self, product_id: UUID | None = None) -> list[ProductAlias]:
        if product_id is None:
            return list(self._aliases)
        return [a for a in self._aliases if a.product_id == product_id]

    def get_alias(self, alias_id: UUID) -> ProductAlias | None:
        return next((a for a in self._aliases if a.id == alias_id), None)

    def add_alias(self, alias: ProductAlias) -> ProductAlias:
        self._aliases.append(alias)
        return alias

    def update_alias(self, alias: ProductAlias) -> None:
        self._aliases = [alias if a.id == alias.id else a for a in self._aliases]

    def delete_alias(self, alias_id: UUID) -> bool:
        before = len(self._aliases)
        self._aliases = [a for a in self._aliases if a.id != alias_id]
        return len(self._aliases) != before

    # --- Observations ---

    def list_observations(
        self,
        product_ids: Iterable[UUID] | None = None,
        store: str | None = None,
    ) -> list[PriceObservation]:
        return filter_observations(list(self._observations), product_ids, store)

    def get_observation(self, observation_id: UUID) -> PriceObservation | None:
        return next((o for o in self._observations if o.id == observation_id), None)

    def add_observation(self, observation: PriceObservation) -> PriceObservation:
        self._observations.append(observation)
        return observation

    def update_observation(self, observation: PriceObservation) -> None:
        self._observations = [
            observation if o.id == observation.id else o for o in self._observations
        ]

    def delete_observation(self, observation_id: UUID) -> bool:
        before = len(self._observations)
        self._observations = [o for o in self._observations if o.id != observation_id]
        return len(self._observations) != before

    # --- Shopping list ---

    def load_list(self) -> ShoppingList:
        return self._list.model_copy(deep=True)

    def save_list(self, shopping_list: ShoppingList) -> None:
        shopping_list.last_updated = datetime.now()
        self._list = shopping_list.model_copy(deep=True)

    def get_entry(self, entry_id: UUID) -> ShoppingListEntry | None:
        return next((e for e in self._list.entries if e.id == entry_id), None)
