"""Tests for saving scanned receipt prices."""

from datetime import date

from cesta.data_store import StorageError
from cesta.ingestion import ScanIngestor
from cesta.models import Product, ProductAlias, ScannedPrice
from cesta.price_ledger import REASON_EMPTY_NAME, REASON_EMPTY_STORE, REASON_NON_POSITIVE_PRICE

RECEIPT_DATE = date(2026, 3, 14)


class TestSaveScannedPrices:
    """Tests for ScanIngestor.save_scanned_prices."""

    def test_reuses_aliased_product(self, data_store):
        """'LECHE ENTERA' on a Lidl ticket lands on the existing Leche."""
        leche = data_store.add_product(Product(name="Leche"))
        data_store.add_alias(ProductAlias(product_id=leche.id, alias_name="leche entera"))

        result = ScanIngestor(data_store).save_scanned_prices(
            [ScannedPrice(name="LECHE ENTERA", price=0.89)],
            store="Lidl",
            date_recorded=RECEIPT_DATE,
        )

        assert result.success is True
        [outcome] = result.results
        assert outcome.product_id == leche.id
        assert outcome.created_product is False
        [observation] = data_store.list_observations()
        assert observation.supermarket_name == "Lidl"
        assert observation.date_recorded == RECEIPT_DATE
        assert len(data_store.list_products()) == 1

    def test_store_scoped_alias_used_with_store_context(self, data_store):
        leche = data_store.add_product(Product(name="Leche"))
        data_store.add_alias(
            ProductAlias(product_id=leche.id, alias_name="HCDO SEMI 1L", supermarket_name="Mercadona")
        )

        result = ScanIngestor(data_store).save_scanned_prices(
            [ScannedPrice(name="HCDO SEMI 1L", price=0.95)], store="Mercadona"
        )

        assert result.results[0].product_id == leche.id

    def test_creates_product_when_no_exact_match(self, data_store):
        """Fuzzy suggestions are not enough to reuse a product."""
        data_store.add_product(Product(name="Aceite de oliva virgen extra"))

        result = ScanIngestor(data_store).save_scanned_prices(
            [ScannedPrice(name="Aceite virgen", price=6.49)], store="Lidl"
        )

        assert result.results[0].created_product is True
        names = sorted(p.name for p in data_store.list_products())
        assert names == ["Aceite de oliva virgen extra", "Aceite virgen"]

    def test_invalid_records_are_rejected(self, data_store):
        items = [
            ScannedPrice(name="  ", price=1.0),
            ScannedPrice(name="Pan", price=0),
            ScannedPrice(name="Leche", price=0.89),
        ]

        result = ScanIngestor(data_store).save_scanned_prices(items, store="Lidl")

        assert [r.reason for r in result.rejected] == [
            REASON_EMPTY_NAME,
            REASON_NON_POSITIVE_PRICE,
        ]
        assert result.saved_count == 1
        assert result.success is True

    def test_non_finite_prices_do_not_stop_the_batch(self, data_store):
        items = [
            ScannedPrice(name="Leche", price=float("nan")),
            ScannedPrice(name="Aceite", price=float("inf")),
            ScannedPrice(name="Pan", price=1.20),
        ]

        result = ScanIngestor(data_store).save_scanned_prices(items, store="Lidl")

        assert [r.reason for r in result.rejected] == [REASON_NON_POSITIVE_PRICE] * 2
        assert result.saved_count == 1
        assert [p.name for p in data_store.list_products()] == ["Pan"]
        assert [o.price for o in data_store.list_observations()] == [1.20]

    def test_missing_store_is_rejected(self, data_store):
        result = ScanIngestor(data_store).save_scanned_prices(
            [ScannedPrice(name="Pan", price=1.2)]
        )

        assert result.rejected[0].reason == REASON_EMPTY_STORE
        assert data_store.list_products() == []

    def test_item_store_is_fallback(self, data_store):
        result = ScanIngestor(data_store).save_scanned_prices(
            [ScannedPrice(name="Pan", price=1.2, store="Dia")]
        )

        assert result.saved_count == 1
        assert data_store.list_observations()[0].supermarket_name == "Dia"

    def test_storage_failure_is_per_item(self, data_store):
        class FailingLedgerStore(type(data_store)):
            def add_observation(self, observation):
                if observation.price > 5:
                    raise StorageError("disk full")
                return super().add_observation(observation)

        store = FailingLedgerStore(data_dir=data_store.data_dir)
        items = [
            ScannedPrice(name="Aceite", price=6.49),
            ScannedPrice(name="Pan", price=1.20),
        ]

        result = ScanIngestor(store).save_scanned_prices(items, store="Lidl")

        assert result.success is False
        assert result.failed_count == 1
        assert result.saved_count == 1
        assert result.results[0].error == "disk full"
