"""Product identity resolution.

Maps free-text names (typed, dictated or read off a receipt) to canonical
products: exact alias lookup first, then exact product name, then fuzzy
suggestions from a pluggable scorer.
"""

from collections.abc import Callable
from uuid import UUID

from .data_store import DataStoreProtocol
from .item_normalizer import first_significant_word, normalize_product_name, significant_words
from .logging_config import get_logger
from .models import (
    MatchSource,
    Product,
    ProductAlias,
    ProductSuggestion,
    ResolutionResult,
)

log = get_logger(__name__)

Scorer = Callable[[str, str], float]


class ProductNotFoundError(Exception):
    """Raised when a product is not found."""

    def __init__(self, product_id: UUID | str):
        self.product_id = product_id
        super().__init__(f"Product with ID '{product_id}' not found")


class AliasNotFoundError(Exception):
    """Raised when an alias is not found."""

    def __init__(self, alias_id: UUID | str):
        self.alias_id = alias_id
        super().__init__(f"Alias with ID '{alias_id}' not found")


def containment_overlap_score(candidate: str, target: str) -> float:
    """Score two normalized names on a 0-1 scale.

    Equal strings score 1.0 and containment either way scores 0.8. Otherwise
    the score is the number of significant candidate words that contain, or
    are contained in, some target word, divided by the longer word count.
    """
    if not candidate or not target:
        return 0.0
    if candidate == target:
        return 1.0
    if candidate in target or target in candidate:
        return 0.8

    search_words = significant_words(candidate)
    if not search_words:
        return 0.0
    target_words = target.split(" ")

    shared = sum(
        1
        for sw in search_words
        if any(tw in sw or sw in tw for tw in target_words if tw)
    )
    return shared / max(len(search_words), len(target_words))


def _store_matches(alias: ProductAlias, store: str | None) -> bool:
    if alias.supermarket_name is None:
        return True
    return store is not None and alias.supermarket_name.lower() == store.lower()


class ProductResolver:
    """Resolves free-text names to products and manages their aliases."""

    def __init__(
        self,
        data_store: DataStoreProtocol,
        scorer: Scorer = containment_overlap_score,
        threshold: float = 0.3,
        max_suggestions: int = 5,
    ):
        self.data_store = data_store
        self.scorer = scorer
        self.threshold = threshold
        self.max_suggestions = max_suggestions

    def find_similar(self, name: str) -> list[ProductSuggestion]:
        """Rank products whose name or aliases resemble ``name``.

        Only scores strictly above the threshold are kept. An alias hit and a
        name hit for the same product collapse into one suggestion carrying
        the higher score.
        """
        query = normalize_product_name(name)
        if not query:
            return []

        products = {product.id: product for product in self.data_store.list_products()}
        suggestions: dict[UUID, ProductSuggestion] = {}

        def consider(product: Product, score: float, alias_name: str | None) -> None:
            if score <= self.threshold:
                return
            current = suggestions.get(product.id)
            if current is None:
                current = ProductSuggestion(id=product.id, name=product.name, similarity=0.0)
                suggestions[product.id] = current
            current.similarity = max(current.similarity, round(score, 4))
            if alias_name and alias_name not in current.aliases:
                current.aliases.append(alias_name)

        for product in products.values():
            consider(product, self.scorer(query, normalize_product_name(product.name)), None)

        for alias in self.data_store.list_aliases():
            product = products.get(alias.product_id)
            if product is None:
                continue
            score = self.scorer(query, normalize_product_name(alias.alias_name))
            consider(product, score, alias.alias_name)

        ranked = sorted(
            suggestions.values(),
            key=lambda s: (-s.similarity, s.name.lower()),
        )
        return ranked[: self.max_suggestions]

    def _find_exact_alias(self, query: str, store: str | None) -> Product | None:
        hits = [
            alias
            for alias in self.data_store.list_aliases()
            if normalize_product_name(alias.alias_name) == query and _store_matches(alias, store)
        ]
        if store is not None:
            # a store-scoped alias beats one that applies everywhere
            hits.sort(key=lambda alias: alias.supermarket_name is None)
        for alias in hits:
            product = self.data_store.get_product(alias.product_id)
            if product is not None:
                return product
        return None

    def _find_exact_name(self, query: str) -> Product | None:
        for product in self.data_store.list_products():
            if normalize_product_name(product.name) == query:
                return product
        return None

    def resolve(self, name: str, store: str | None = None) -> ResolutionResult:
        """Resolve a free-text name, optionally within a store context.

        Returns an exact match when an alias or product name equals the
        normalized input, otherwise fuzzy suggestions (possibly none).
        """
        query = normalize_product_name(name)
        if not query:
            return ResolutionResult(query=name)

        product = self._find_exact_alias(query, store)
        if product is not None:
            log.debug("Resolved %r via alias to %s", name, product.id)
            return ResolutionResult(
                query=name, exact_match=product, match_source=MatchSource.ALIAS
            )

        product = self._find_exact_name(query)
        if product is not None:
            log.debug("Resolved %r via product name to %s", name, product.id)
            return ResolutionResult(
                query=name, exact_match=product, match_source=MatchSource.PRODUCT_NAME
            )

        return ResolutionResult(query=name, suggestions=self.find_similar(name))

    def create_product(
        self,
        name: str,
        alias_name: str | None = None,
        store: str | None = None,
        category: str | None = None,
    ) -> Product:
        """Create a product, attaching ``alias_name`` when it differs from ``name``.

        Raises:
            ValueError: If the name is empty
        """
        name = name.strip()
        if not name:
            raise ValueError("Product name cannot be empty")

        product = self.data_store.add_product(Product(name=name, category=category))
        if alias_name and alias_name.strip() and alias_name.strip() != name:
            self.data_store.add_alias(
                ProductAlias(
                    product_id=product.id,
                    alias_name=alias_name.strip(),
                    supermarket_name=store,
                )
            )
        log.info("Created product %s (%s)", product.name, product.id)
        return product

    def link_alias(
        self,
        product_id: UUID | str,
        alias_name: str,
        store: str | None = None,
    ) -> ProductAlias:
        """Attach an alias to an existing product without renaming it.

        Raises:
            ProductNotFoundError: If the product does not exist
            ValueError: If the alias is empty
        """
        if isinstance(product_id, str):
            product_id = UUID(product_id)

        if self.data_store.get_product(product_id) is None:
            raise ProductNotFoundError(product_id)
        alias_name = alias_name.strip()
        if not alias_name:
            raise ValueError("Alias cannot be empty")

        return self.data_store.add_alias(
            ProductAlias(product_id=product_id, alias_name=alias_name, supermarket_name=store)
        )

    def _ids_containing(self, query: str) -> list[UUID]:
        ids: list[UUID] = []
        for product in self.data_store.list_products():
            if query in normalize_product_name(product.name):
                ids.append(product.id)
        for alias in self.data_store.list_aliases():
            if query in normalize_product_name(alias.alias_name) and alias.product_id not in ids:
                ids.append(alias.product_id)
        return ids

    def match_product_ids(self, name: str) -> list[UUID]:
        """Every product whose name or alias contains ``name``.

        Falls back to the first significant word ("leche entera" -> "leche")
        when the full name matches nothing.
        """
        query = normalize_product_name(name)
        if not query:
            return []

        ids = self._ids_containing(query)
        if ids:
            return ids

        fallback = first_significant_word(name)
        if fallback and fallback != query:
            log.debug("No match for %r, retrying with %r", name, fallback)
            return self._ids_containing(fallback)
        return []
