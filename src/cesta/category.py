"""Keyword based product categorization.

A single ordered rule table drives both shopping list grouping and the
dashboard breakdown, so the two can never disagree on a category.
"""

from dataclasses import dataclass

from .item_normalizer import strip_accents

DEFAULT_CATEGORY = "Otros"


@dataclass(frozen=True)
class CategoryRule:
    """Maps any of its keywords (substring match) to a category."""

    category: str
    keywords: tuple[str, ...]


CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule("Lácteos", ("llet", "leche", "yogur", "queso", "manteca", "kefir")),
    CategoryRule(
        "Carne",
        ("ternera", "pollo", "cerdo", "carne", "jamón", "pavo", "salchicha"),
    ),
    CategoryRule(
        "Limpieza e Higiene",
        ("papel", "detergente", "lejía", "fregasuelos", "gel", "champú"),
    ),
    CategoryRule(
        "Pescadería",
        ("pescado", "atún", "merluza", "salmón", "calamar", "gamba"),
    ),
    CategoryRule(
        "Despensa",
        ("pan", "arroz", "pasta", "tomate frito", "galleta", "cereal", "legumbres"),
    ),
    CategoryRule(
        "Fruta y Verdura",
        (
            "manzana",
            "plátano",
            "patata",
            "cebolla",
            "tomate",
            "lechuga",
            "zanahoria",
            "fruta",
            "verdura",
        ),
    ),
)


def _fold(text: str) -> str:
    return strip_accents(text.lower())


def classify_product(
    name: str,
    rules: tuple[CategoryRule, ...] = CATEGORY_RULES,
    default: str = DEFAULT_CATEGORY,
) -> str:
    """Return the category of the first rule with a keyword contained in ``name``.

    Both sides are lowercased and accent-stripped, so "Jamon" and "Jamón"
    classify the same way.
    """
    folded = _fold(name)
    for rule in rules:
        for keyword in rule.keywords:
            if _fold(keyword) in folded:
                return rule.category
    return default


def category_names(
    rules: tuple[CategoryRule, ...] = CATEGORY_RULES,
    default: str = DEFAULT_CATEGORY,
) -> list[str]:
    """All categories the rules can produce, in rule order, plus the default."""
    names = [rule.category for rule in rules]
    return names if default in names else names + [default]
