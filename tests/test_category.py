"""Tests for keyword categorization."""

import pytest

from cesta.category import (
    CATEGORY_RULES,
    DEFAULT_CATEGORY,
    CategoryRule,
    category_names,
    classify_product,
)


class TestClassifyProduct:
    """Tests for classify_product."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Leche desnatada", "Lácteos"),
            ("Pechuga de pollo", "Carne"),
            ("Zumo de piña", "Otros"),
            ("Detergente líquido", "Limpieza e Higiene"),
            ("Merluza fresca", "Pescadería"),
            ("Arroz bomba", "Despensa"),
            ("Lechuga iceberg", "Fruta y Verdura"),
        ],
    )
    def test_known_names(self, name, expected):
        assert classify_product(name) == expected

    def test_accents_are_ignored(self):
        """'Jamon' and 'Jamón' land in the same category."""
        assert classify_product("Jamon serrano") == "Carne"
        assert classify_product("JAMÓN SERRANO") == "Carne"
        assert classify_product("Champu anticaspa") == "Limpieza e Higiene"

    def test_first_rule_wins(self):
        """'Pan con tomate' hits Despensa before Fruta y Verdura."""
        assert classify_product("Pan con tomate") == "Despensa"

    def test_deterministic(self):
        assert {classify_product("Yogur natural") for _ in range(5)} == {"Lácteos"}

    def test_empty_name_is_default(self):
        assert classify_product("") == DEFAULT_CATEGORY

    def test_custom_rules(self):
        rules = (CategoryRule("Bebidas", ("zumo", "agua")),)

        assert classify_product("Zumo de piña", rules=rules) == "Bebidas"
        assert classify_product("Leche", rules=rules, default="Varios") == "Varios"


class TestCategoryNames:
    """Tests for the category ordering helper."""

    def test_rule_order_then_default(self):
        names = category_names()

        assert names[: len(CATEGORY_RULES)] == [rule.category for rule in CATEGORY_RULES]
        assert names[-1] == DEFAULT_CATEGORY
        assert names[0] == "Lácteos"

    def test_custom_default(self):
        assert category_names(default="Varios")[-1] == "Varios"

    def test_default_already_in_rules_is_not_repeated(self):
        names = category_names(default="Despensa")

        assert names.count("Despensa") == 1
        assert len(names) == len(CATEGORY_RULES)
