"""Tests for product identity resolution."""

import pytest

from cesta.data_store import DataStore, StorageError
from cesta.item_normalizer import first_significant_word, normalize_product_name, significant_words
from cesta.matching import ProductNotFoundError, ProductResolver, containment_overlap_score
from cesta.models import MatchSource, Product, ProductAlias


class TestNormalization:
    """Tests for name normalization helpers."""

    def test_normalize_strips_accents_and_punctuation(self):
        """Lowercase, drop accents, punctuation becomes whitespace."""
        assert normalize_product_name("  Plátano  de Canarias!! ") == "platano de canarias"

    def test_normalize_collapses_whitespace(self):
        assert normalize_product_name("Leche\t  Entera\n1L") == "leche entera 1l"

    def test_significant_words_drop_short_words(self):
        """Words of two characters or fewer are not significant."""
        assert significant_words("Aceite de oliva") == ["aceite", "oliva"]

    def test_first_significant_word(self):
        assert first_significant_word("la leche entera") == "leche"
        assert first_significant_word("de la") is None


class TestContainmentOverlapScore:
    """Tests for the default scorer."""

    def test_equal_strings_score_one(self):
        assert containment_overlap_score("leche", "leche") == 1.0

    def test_containment_scores_high(self):
        """Containment in either direction scores 0.8."""
        assert containment_overlap_score("leche", "leche entera") == 0.8
        assert containment_overlap_score("leche entera", "leche") == 0.8

    def test_word_overlap_uses_longer_word_count(self):
        """Shared words divided by the larger of the two word counts."""
        score = containment_overlap_score("aceite virgen", "aceite de oliva virgen extra")
        assert score == pytest.approx(2 / 5)

        score = containment_overlap_score("aceite virgen", "aceite de girasol")
        assert score == pytest.approx(1 / 3)

    def test_no_significant_words_scores_zero(self):
        assert containment_overlap_score("de la", "aceite de girasol") == 0.0

    def test_empty_scores_zero(self):
        assert containment_overlap_score("", "leche") == 0.0


class TestResolve:
    """Tests for exact and fuzzy resolution."""

    def test_alias_resolves_exactly_in_any_case(self, data_store, resolver):
        """'Leche Entera' hits the alias of Leche, not the fuzzy path."""
        leche = data_store.add_product(Product(name="Leche"))
        data_store.add_alias(ProductAlias(product_id=leche.id, alias_name="leche entera"))

        for query in ["Leche Entera", "LECHE ENTERA", "  leche   entera "]:
            result = resolver.resolve(query)
            assert result.is_exact
            assert result.exact_match.id == leche.id
            assert result.match_source == MatchSource.ALIAS
            assert result.suggestions == []

    def test_product_name_resolves_exactly(self, data_store, resolver):
        pan = data_store.add_product(Product(name="Pan de molde"))

        result = resolver.resolve("pan de MOLDE")

        assert result.exact_match.id == pan.id
        assert result.match_source == MatchSource.PRODUCT_NAME

    def test_no_match_is_not_an_error(self, data_store, resolver):
        """Unknown names give neither a match nor suggestions."""
        data_store.add_product(Product(name="Leche"))

        result = resolver.resolve("Detergente")

        assert result.exact_match is None
        assert result.match_source == MatchSource.NONE
        assert result.suggestions == []

    def test_store_scoped_alias_requires_matching_store(self, data_store, resolver):
        leche = data_store.add_product(Product(name="Leche"))
        data_store.add_alias(
            ProductAlias(
                product_id=leche.id, alias_name="Hacendado semi", supermarket_name="Mercadona"
            )
        )

        assert resolver.resolve("hacendado semi", store="mercadona").exact_match.id == leche.id
        assert resolver.resolve("hacendado semi", store="Lidl").exact_match is None

    def test_store_scoped_alias_preferred_over_unscoped(self, data_store, resolver):
        generic = data_store.add_product(Product(name="Arroz"))
        lidl_rice = data_store.add_product(Product(name="Arroz redondo"))
        data_store.add_alias(ProductAlias(product_id=generic.id, alias_name="marca blanca"))
        data_store.add_alias(
            ProductAlias(product_id=lidl_rice.id, alias_name="marca blanca", supermarket_name="Lidl")
        )

        assert resolver.resolve("Marca blanca", store="Lidl").exact_match.id == lidl_rice.id
        assert resolver.resolve("Marca blanca").exact_match.id == generic.id

    def test_fuzzy_fallback_returns_suggestions(self, data_store, resolver):
        oliva = data_store.add_product(Product(name="Aceite de oliva virgen extra"))
        girasol = data_store.add_product(Product(name="Aceite de girasol"))

        result = resolver.resolve("aceite virgen")

        assert result.exact_match is None
        assert [s.id for s in result.suggestions] == [oliva.id, girasol.id]

    def test_storage_failure_propagates(self, temp_data_dir):
        """A failing store is an error, not an empty result."""

        class BrokenStore(DataStore):
            def list_aliases(self, product_id=None):
                raise StorageError("disk on fire")

        resolver = ProductResolver(BrokenStore(data_dir=temp_data_dir))
        with pytest.raises(StorageError):
            resolver.resolve("leche")


class TestFindSimilar:
    """Tests for fuzzy suggestions."""

    def test_ranks_by_token_overlap(self, data_store, resolver):
        """'aceite virgen' ranks the olive oil above sunflower oil."""
        oliva = data_store.add_product(Product(name="Aceite de oliva virgen extra"))
        girasol = data_store.add_product(Product(name="Aceite de girasol"))
        data_store.add_product(Product(name="Leche"))

        suggestions = resolver.find_similar("aceite virgen")

        assert [s.id for s in suggestions] == [oliva.id, girasol.id]
        assert suggestions[0].similarity > suggestions[1].similarity

    def test_alias_and_name_hits_collapse(self, data_store, resolver):
        """One suggestion per product, keeping the higher score."""
        leche = data_store.add_product(Product(name="Leche"))
        data_store.add_alias(ProductAlias(product_id=leche.id, alias_name="Leche entera"))

        suggestions = resolver.find_similar("leche entera")

        assert len(suggestions) == 1
        assert suggestions[0].id == leche.id
        assert suggestions[0].similarity == 1.0
        assert suggestions[0].aliases == ["Leche entera"]

    def test_truncates_to_max_suggestions(self, data_store, resolver):
        for i in range(1, 8):
            data_store.add_product(Product(name=f"Yogur {i}"))

        suggestions = resolver.find_similar("yogur")

        assert len(suggestions) == 5
        assert [s.name for s in suggestions] == [f"Yogur {i}" for i in range(1, 6)]

    def test_threshold_is_strict(self, data_store):
        """A score equal to the threshold is not kept."""
        data_store.add_product(Product(name="Leche"))
        resolver = ProductResolver(data_store, scorer=lambda a, b: 0.3)

        assert resolver.find_similar("cualquier cosa") == []

    def test_custom_scorer_is_used(self, data_store):
        leche = data_store.add_product(Product(name="Leche"))
        resolver = ProductResolver(data_store, scorer=lambda a, b: 0.9)

        suggestions = resolver.find_similar("zzz")

        assert [s.id for s in suggestions] == [leche.id]
        assert suggestions[0].similarity == pytest.approx(0.9)

    def test_empty_query(self, data_store, resolver):
        data_store.add_product(Product(name="Leche"))
        assert resolver.find_similar("  !! ") == []


class TestCreateAndLink:
    """Tests for creating products and aliases."""

    def test_create_attaches_differing_alias(self, data_store, resolver):
        product = resolver.create_product("Leche", alias_name="LECHE ENT. 1L", store="Lidl")

        aliases = data_store.list_aliases(product.id)
        assert len(aliases) == 1
        assert aliases[0].alias_name == "LECHE ENT. 1L"
        assert aliases[0].supermarket_name == "Lidl"

    def test_create_skips_identical_alias(self, data_store, resolver):
        product = resolver.create_product("Leche", alias_name="Leche")

        assert data_store.list_aliases(product.id) == []

    def test_create_rejects_empty_name(self, resolver):
        with pytest.raises(ValueError):
            resolver.create_product("   ")

    def test_link_alias_keeps_canonical_name(self, data_store, resolver):
        product = resolver.create_product("Leche")

        alias = resolver.link_alias(str(product.id), "leche semidesnatada", store="Mercadona")

        assert alias.product_id == product.id
        assert data_store.get_product(product.id).name == "Leche"
        assert resolver.resolve("Leche semidesnatada", store="Mercadona").exact_match.id == product.id

    def test_link_alias_unknown_product(self, resolver):
        with pytest.raises(ProductNotFoundError):
            resolver.link_alias("00000000-0000-0000-0000-000000000000", "algo")


class TestMatchProductIds:
    """Tests for the loose lookup used by list comparison."""

    def test_contains_on_names_and_aliases(self, data_store, resolver):
        leche = data_store.add_product(Product(name="Leche"))
        batido = data_store.add_product(Product(name="Batido de cacao"))
        data_store.add_alias(ProductAlias(product_id=batido.id, alias_name="leche con cacao"))

        assert resolver.match_product_ids("leche") == [leche.id, batido.id]

    def test_falls_back_to_first_significant_word(self, data_store, resolver):
        """'leche entera desnatada' matches nothing, 'leche' does."""
        leche = data_store.add_product(Product(name="Leche"))

        assert resolver.match_product_ids("Leche entera desnatada") == [leche.id]

    def test_no_match(self, data_store, resolver):
        data_store.add_product(Product(name="Leche"))

        assert resolver.match_product_ids("Zumo de piña") == []
        assert resolver.match_product_ids("") == []
