"""Shared product name normalization utilities."""

import re
import unicodedata

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")

MIN_SIGNIFICANT_LENGTH = 3


def strip_accents(text: str) -> str:
    """Remove combining diacritics ("plátano" -> "platano")."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_product_name(name: str) -> str:
    """Normalize a product name into the form every matcher compares.

    Lowercases, strips accents, turns punctuation into spaces and collapses
    whitespace.
    """
    cleaned = _NON_ALNUM.sub(" ", strip_accents(name.lower()))
    return _WHITESPACE.sub(" ", cleaned).strip()


def significant_words(name: str) -> list[str]:
    """Words of the normalized name long enough to carry meaning."""
    return [
        word
        for word in normalize_product_name(name).split(" ")
        if len(word) >= MIN_SIGNIFICANT_LENGTH
    ]


def first_significant_word(name: str) -> str | None:
    """First significant word, used as a looser fallback key ("leche entera" -> "leche")."""
    words = significant_words(name)
    return words[0] if words else None
