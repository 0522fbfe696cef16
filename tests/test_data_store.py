"""Tests for data persistence layer."""

import json
from datetime import date, datetime
from uuid import uuid4

import pytest
from conftest import TODAY, add_price

from cesta.data_store import (
    BackendType,
    DataStore,
    JSONEncoder,
    StorageError,
    create_data_store,
    newest_first,
)
from cesta.demo_store import DemoStore
from cesta.models import PriceObservation, Product, ProductAlias, ShoppingList, ShoppingListEntry
from cesta.sqlite_store import SQLiteStore


class TestJSONEncoder:
    """Tests for custom JSON encoder."""

    def test_encode_uuid(self):
        """UUID is encoded as string."""
        test_uuid = uuid4()
        encoded = json.dumps({"id": test_uuid}, cls=JSONEncoder)
        assert str(test_uuid) in encoded

    def test_encode_datetime(self):
        dt = datetime(2026, 3, 15, 10, 30, 0)
        encoded = json.dumps({"time": dt}, cls=JSONEncoder)
        assert "2026-03-15T10:30:00" in encoded

    def test_encode_date(self):
        encoded = json.dumps({"date": date(2026, 3, 15)}, cls=JSONEncoder)
        assert "2026-03-15" in encoded


class TestNewestFirst:
    """Tests for observation ordering."""

    def test_orders_by_date_then_created_then_insertion(self):
        pid = uuid4()
        stamp = datetime(2026, 3, 15, 12, 0)

        def obs(price, recorded):
            return PriceObservation(
                product_id=pid,
                supermarket_name="Lidl",
                price=price,
                date_recorded=recorded,
                created_at=stamp,
            )

        old = obs(1.0, date(2026, 3, 1))
        first = obs(2.0, TODAY)
        second = obs(3.0, TODAY)

        assert newest_first([old, first, second]) == [second, first, old]


class TestProducts:
    """Tests for product persistence."""

    def test_round_trip(self, data_store):
        product = data_store.add_product(Product(name="Leche", category="Lácteos"))

        loaded = data_store.get_product(product.id)

        assert loaded.name == "Leche"
        assert loaded.category == "Lácteos"

    def test_list_sorted_by_name(self, data_store):
        for name in ["pan", "Aceite", "leche"]:
            data_store.add_product(Product(name=name))

        assert [p.name for p in data_store.list_products()] == ["Aceite", "leche", "pan"]

    def test_unicode_kept_readable(self, data_store):
        data_store.add_product(Product(name="Plátano"))

        raw = (data_store.data_dir / "products.json").read_text(encoding="utf-8")
        assert "Plátano" in raw

    def test_update(self, data_store):
        product = data_store.add_product(Product(name="Leche"))
        product.name = "Leche entera"

        data_store.update_product(product)

        assert data_store.get_product(product.id).name == "Leche entera"

    def test_delete_cascades(self, data_store, milk_and_bread):
        assert data_store.delete_product(milk_and_bread.leche.id) is True

        assert data_store.list_aliases() == []
        assert {o.product_id for o in data_store.list_observations()} == {milk_and_bread.pan.id}
        assert data_store.delete_product(milk_and_bread.leche.id) is False


class TestObservations:
    """Tests for price observation persistence."""

    def test_filters(self, data_store, milk_and_bread):
        lidl = data_store.list_observations(store="Lidl")
        leche = data_store.list_observations(product_ids=[milk_and_bread.leche.id])

        assert {o.supermarket_name for o in lidl} == {"Lidl"}
        assert len(leche) == 3
        assert data_store.list_observations(product_ids=[]) == []

    def test_newest_first(self, data_store, milk_and_bread):
        dates = [o.date_recorded for o in data_store.list_observations()]

        assert dates == sorted(dates, reverse=True)

    def test_update_and_delete(self, data_store, milk_and_bread):
        observation = data_store.list_observations()[0]
        observation.price = 0.5

        data_store.update_observation(observation)
        assert data_store.get_observation(observation.id).price == 0.5

        assert data_store.delete_observation(observation.id) is True
        assert data_store.delete_observation(observation.id) is False


class TestShoppingList:
    """Tests for shopping list persistence."""

    def test_missing_file_is_empty(self, data_store):
        assert data_store.load_list().entries == []

    def test_round_trip(self, data_store):
        entry = ShoppingListEntry(product_name="Leche", quantity=2)
        data_store.save_list(ShoppingList(entries=[entry]))

        assert data_store.load_list().entries[0].id == entry.id
        assert data_store.get_entry(entry.id).quantity == 2
        assert data_store.get_entry(uuid4()) is None


class TestCorruptFiles:
    """Unreadable data is a StorageError, never an empty result."""

    def test_invalid_json(self, data_store):
        (data_store.data_dir / "products.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageError):
            data_store.list_products()

    def test_invalid_record(self, data_store):
        (data_store.data_dir / "prices.json").write_text(
            json.dumps([{"product_id": "nope", "supermarket_name": "Lidl", "price": 1}]),
            encoding="utf-8",
        )

        with pytest.raises(StorageError):
            data_store.list_observations()

    def test_invalid_list(self, data_store):
        (data_store.data_dir / "shopping_list.json").write_text(
            json.dumps({"entries": [{"quantity": 2}]}), encoding="utf-8"
        )

        with pytest.raises(StorageError):
            data_store.load_list()

    def test_no_leftover_tmp_file(self, data_store):
        data_store.add_product(Product(name="Leche"))

        assert not list(data_store.data_dir.glob("*.tmp"))


class TestCreateDataStore:
    """Tests for the backend factory."""

    def test_json_default(self, temp_data_dir):
        store = create_data_store(data_dir=temp_data_dir)

        assert isinstance(store, DataStore)
        assert store.is_configured is True

    def test_sqlite_under_data_dir(self, temp_data_dir):
        store = create_data_store(BackendType.SQLITE, data_dir=temp_data_dir)

        assert isinstance(store, SQLiteStore)
        assert store.db_path == temp_data_dir / "cesta.db"

    def test_demo(self):
        store = create_data_store(BackendType.DEMO)

        assert isinstance(store, DemoStore)
        assert store.is_configured is False


class TestAliases:
    def test_filter_by_product(self, data_store):
        leche = data_store.add_product(Product(name="Leche"))
        pan = data_store.add_product(Product(name="Pan"))
        data_store.add_alias(ProductAlias(product_id=leche.id, alias_name="leche entera"))
        data_store.add_alias(ProductAlias(product_id=pan.id, alias_name="barra"))

        assert [a.alias_name for a in data_store.list_aliases(pan.id)] == ["barra"]
        assert len(data_store.list_aliases()) == 2

    def test_price_helper(self, data_store):
        pan = data_store.add_product(Product(name="Pan"))
        observation = add_price(data_store, pan, "Dia", 1.1, TODAY)

        assert data_store.get_observation(observation.id).supermarket_name == "Dia"
