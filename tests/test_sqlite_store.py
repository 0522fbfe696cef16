"""Tests for the SQLite storage backend."""

import sqlite3
from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from conftest import TODAY, add_price

from cesta.data_store import StorageError
from cesta.models import PriceObservation, Product, ProductAlias, ShoppingList, ShoppingListEntry


class TestSchema:
    """Tests for database initialization."""

    def test_creates_tables(self, sqlite_store):
        with sqlite3.connect(sqlite_store.db_path) as conn:
            tables = {
                row[0]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            }

        assert {
            "products",
            "product_aliases",
            "prices",
            "shopping_list",
            "list_metadata",
            "schema_version",
        } <= tables

    def test_reopen_keeps_data(self, sqlite_store):
        product = sqlite_store.add_product(Product(name="Leche"))

        reopened = type(sqlite_store)(db_path=sqlite_store.db_path)

        assert reopened.get_product(product.id).name == "Leche"

    def test_stats(self, sqlite_store):
        product = sqlite_store.add_product(Product(name="Leche"))
        add_price(sqlite_store, product, "Lidl", 0.89, TODAY)

        assert sqlite_store.get_stats() == {
            "products": 1,
            "product_aliases": 0,
            "prices": 1,
            "shopping_list": 0,
        }


class TestProductsAndAliases:
    """Tests for catalog tables."""

    def test_products_sorted_case_insensitive(self, sqlite_store):
        for name in ["pan", "Aceite", "leche"]:
            sqlite_store.add_product(Product(name=name))

        assert [p.name for p in sqlite_store.list_products()] == ["Aceite", "leche", "pan"]

    def test_alias_round_trip(self, sqlite_store):
        product = sqlite_store.add_product(Product(name="Leche"))
        alias = sqlite_store.add_alias(
            ProductAlias(product_id=product.id, alias_name="HCDO SEMI", supermarket_name="Mercadona")
        )

        loaded = sqlite_store.get_alias(alias.id)

        assert loaded.product_id == product.id
        assert loaded.supermarket_name == "Mercadona"

    def test_alias_requires_product(self, sqlite_store):
        """Foreign key violations surface as StorageError."""
        with pytest.raises(StorageError):
            sqlite_store.add_alias(ProductAlias(product_id=uuid4(), alias_name="huérfano"))

    def test_delete_product_cascades(self, sqlite_store):
        leche = sqlite_store.add_product(Product(name="Leche"))
        pan = sqlite_store.add_product(Product(name="Pan"))
        sqlite_store.add_alias(ProductAlias(product_id=leche.id, alias_name="leche entera"))
        add_price(sqlite_store, leche, "Lidl", 0.89, TODAY)
        add_price(sqlite_store, pan, "Lidl", 1.35, TODAY)

        assert sqlite_store.delete_product(leche.id) is True

        assert sqlite_store.list_aliases() == []
        assert [o.product_id for o in sqlite_store.list_observations()] == [pan.id]
        assert sqlite_store.delete_product(leche.id) is False


class TestObservations:
    """Tests for the prices table."""

    def test_order_and_filters(self, sqlite_store):
        leche = sqlite_store.add_product(Product(name="Leche"))
        pan = sqlite_store.add_product(Product(name="Pan"))
        add_price(sqlite_store, leche, "Lidl", 0.99, TODAY - timedelta(days=5))
        add_price(sqlite_store, leche, "Mercadona", 0.95, TODAY)
        add_price(sqlite_store, pan, "Lidl", 1.35, TODAY - timedelta(days=1))

        assert [o.price for o in sqlite_store.list_observations()] == [0.95, 1.35, 0.99]
        assert [o.price for o in sqlite_store.list_observations(store="Lidl")] == [1.35, 0.99]
        assert [o.price for o in sqlite_store.list_observations(product_ids=[leche.id])] == [
            0.95,
            0.99,
        ]
        assert sqlite_store.list_observations(product_ids=[]) == []

    def test_insertion_breaks_full_ties(self, sqlite_store):
        leche = sqlite_store.add_product(Product(name="Leche"))
        stamp = datetime(2026, 3, 15, 12, 0)
        for price in (0.89, 0.92):
            sqlite_store.add_observation(
                PriceObservation(
                    product_id=leche.id,
                    supermarket_name="Lidl",
                    price=price,
                    date_recorded=TODAY,
                    created_at=stamp,
                )
            )

        assert [o.price for o in sqlite_store.list_observations()] == [0.92, 0.89]

    def test_update_and_delete(self, sqlite_store):
        leche = sqlite_store.add_product(Product(name="Leche"))
        observation = add_price(sqlite_store, leche, "Lidl", 0.89, TODAY, unit_price=0.89)
        observation.price = 0.79

        sqlite_store.update_observation(observation)

        loaded = sqlite_store.get_observation(observation.id)
        assert loaded.price == 0.79
        assert loaded.unit_price == 0.89
        assert loaded.date_recorded == TODAY
        assert sqlite_store.delete_observation(observation.id) is True
        assert sqlite_store.get_observation(observation.id) is None


class TestShoppingList:
    """Tests for the shopping list tables."""

    def test_order_is_preserved(self, sqlite_store):
        names = ["Zumo", "Aceite", "Leche"]
        sqlite_store.save_list(
            ShoppingList(entries=[ShoppingListEntry(product_name=name) for name in names])
        )

        assert [e.product_name for e in sqlite_store.load_list().entries] == names

    def test_save_removes_missing_entries(self, sqlite_store):
        keep = ShoppingListEntry(product_name="Pan", quantity=2, is_checked=True)
        drop = ShoppingListEntry(product_name="Leche")
        sqlite_store.save_list(ShoppingList(entries=[keep, drop]))

        sqlite_store.save_list(ShoppingList(entries=[keep]))

        entries = sqlite_store.load_list().entries
        assert [e.id for e in entries] == [keep.id]
        assert entries[0].is_checked is True
        assert sqlite_store.get_entry(keep.id).quantity == 2
        assert sqlite_store.get_entry(drop.id) is None
