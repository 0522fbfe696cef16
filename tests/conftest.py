"""Shared test fixtures for cesta."""

import os
from datetime import date, timedelta
from types import SimpleNamespace

# keep CLI JSON output free of log lines
os.environ.setdefault("LOG_LEVEL", "CRITICAL")

import pytest  # noqa: E402

from cesta.data_store import DataStore  # noqa: E402
from cesta.list_manager import ListManager  # noqa: E402
from cesta.matching import ProductResolver  # noqa: E402
from cesta.models import PriceObservation, Product, ProductAlias  # noqa: E402
from cesta.price_ledger import PriceLedger  # noqa: E402
from cesta.sqlite_store import SQLiteStore  # noqa: E402

TODAY = date(2026, 3, 15)


@pytest.fixture
def temp_data_dir(tmp_path):
    """Create a temporary data directory."""
    data_dir = tmp_path / "test_data"
    data_dir.mkdir()
    return data_dir


@pytest.fixture
def data_store(temp_data_dir):
    """Create a DataStore with temporary directory."""
    return DataStore(data_dir=temp_data_dir)


@pytest.fixture
def sqlite_store(tmp_path):
    """Create a SQLite store with a temporary database."""
    return SQLiteStore(db_path=tmp_path / "test.db")


@pytest.fixture(params=["json", "sqlite"])
def any_store(request, tmp_path):
    """Each persistent backend in turn."""
    if request.param == "json":
        return DataStore(data_dir=tmp_path / "json_data")
    return SQLiteStore(db_path=tmp_path / "cesta.db")


@pytest.fixture
def list_manager(data_store):
    """Create a ListManager with temporary storage."""
    return ListManager(data_store=data_store)


@pytest.fixture
def resolver(data_store):
    """Create a ProductResolver over temporary storage."""
    return ProductResolver(data_store)


@pytest.fixture
def ledger(data_store):
    """Create a PriceLedger over temporary storage."""
    return PriceLedger(data_store)


def add_price(store, product, supermarket, price, recorded, unit_price=None):
    """Insert an observation directly into a store."""
    return store.add_observation(
        PriceObservation(
            product_id=product.id,
            supermarket_name=supermarket,
            price=price,
            unit_price=unit_price,
            date_recorded=recorded,
        )
    )


@pytest.fixture
def milk_and_bread(data_store):
    """Leche and Pan priced at Lidl and Mercadona.

    Leche: Lidl 0.89 (most recent), Mercadona 0.95 (an older 0.99 is stale).
    Pan: Mercadona 1.20, Lidl 1.35.
    """
    leche = data_store.add_product(Product(name="Leche"))
    pan = data_store.add_product(Product(name="Pan"))
    alias = data_store.add_alias(ProductAlias(product_id=leche.id, alias_name="leche entera"))

    add_price(data_store, leche, "Mercadona", 0.99, TODAY - timedelta(days=30))
    add_price(data_store, leche, "Mercadona", 0.95, TODAY - timedelta(days=3))
    add_price(data_store, leche, "Lidl", 0.89, TODAY - timedelta(days=1))
    add_price(data_store, pan, "Mercadona", 1.20, TODAY - timedelta(days=2))
    add_price(data_store, pan, "Lidl", 1.35, TODAY - timedelta(days=2))

    return SimpleNamespace(leche=leche, pan=pan, alias=alias)
