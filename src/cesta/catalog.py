"""Catalog administration: products ("mother articles"), aliases and prices."""

from uuid import UUID

from .data_store import DataStoreProtocol
from .logging_config import get_logger
from .matching import AliasNotFoundError, ProductNotFoundError
from .models import CatalogEntry, CatalogPrice, PriceObservation, Product, ProductAlias
from .price_ledger import PriceLedger

log = get_logger(__name__)


class CatalogManager:
    """Administrative view and edits over the product catalog."""

    def __init__(self, data_store: DataStoreProtocol, ledger: PriceLedger | None = None):
        self.data_store = data_store
        self.ledger = ledger or PriceLedger(data_store)

    def get_catalog(self) -> list[CatalogEntry]:
        """Every product with its latest price per store, best price and aliases."""
        products = self.data_store.list_products()
        current = self.ledger.current_prices_by_store(product.id for product in products)

        aliases_by_product: dict[UUID, list[ProductAlias]] = {}
        for alias in self.data_store.list_aliases():
            aliases_by_product.setdefault(alias.product_id, []).append(alias)

        catalog = []
        for product in products:
            prices = sorted(
                (
                    CatalogPrice(
                        id=obs.id,
                        supermarket_name=store,
                        price=obs.price,
                        date_recorded=obs.date_recorded,
                    )
                    for store, obs in current[product.id].items()
                ),
                key=lambda row: (row.price, row.supermarket_name),
            )
            best = prices[0] if prices else None
            catalog.append(
                CatalogEntry(
                    id=product.id,
                    name=product.name,
                    category=product.category,
                    best_price=best.price if best else None,
                    best_supermarket=best.supermarket_name if best else None,
                    prices=prices,
                    aliases=aliases_by_product.get(product.id, []),
                )
            )
        return catalog

    def _require_product(self, product_id: UUID | str) -> Product:
        if isinstance(product_id, str):
            product_id = UUID(product_id)
        product = self.data_store.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def _require_alias(self, alias_id: UUID | str) -> ProductAlias:
        if isinstance(alias_id, str):
            alias_id = UUID(alias_id)
        alias = self.data_store.get_alias(alias_id)
        if alias is None:
            raise AliasNotFoundError(alias_id)
        return alias

    def rename_product(self, product_id: UUID | str, name: str) -> Product:
        """Change a product's canonical name.

        Raises:
            ProductNotFoundError: If the product does not exist
            ValueError: If the name is empty
        """
        name = name.strip()
        if not name:
            raise ValueError("Product name cannot be empty")
        product = self._require_product(product_id)
        product.name = name
        self.data_store.update_product(product)
        return product

    def set_category(self, product_id: UUID | str, category: str | None) -> Product:
        """Set or clear the explicit category of a product."""
        product = self._require_product(product_id)
        product.category = category.strip() if category and category.strip() else None
        self.data_store.update_product(product)
        return product

    def delete_product(self, product_id: UUID | str) -> Product:
        """Delete a product with its aliases and price observations.

        Raises:
            ProductNotFoundError: If the product does not exist
        """
        product = self._require_product(product_id)
        self.data_store.delete_product(product.id)
        log.info("Deleted product %s with its aliases and prices", product.name)
        return product

    def rename_alias(self, alias_id: UUID | str, alias_name: str) -> ProductAlias:
        """Change the text of an alias.

        Raises:
            AliasNotFoundError: If the alias does not exist
            ValueError: If the name is empty
        """
        alias_name = alias_name.strip()
        if not alias_name:
            raise ValueError("Alias cannot be empty")
        alias = self._require_alias(alias_id)
        alias.alias_name = alias_name
        self.data_store.update_alias(alias)
        return alias

    def delete_alias(self, alias_id: UUID | str) -> ProductAlias:
        """Delete an alias.

        Raises:
            AliasNotFoundError: If the alias does not exist
        """
        alias = self._require_alias(alias_id)
        self.data_store.delete_alias(alias.id)
        return alias

    def update_price(self, observation_id: UUID | str, price: float) -> PriceObservation:
        """Correct one recorded price."""
        return self.ledger.update_price(observation_id, price)

    def delete_price(self, observation_id: UUID | str) -> None:
        """Delete one recorded price."""
        self.ledger.delete_observation(observation_id)
