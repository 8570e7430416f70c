"""Tests for slug generation."""
from readowl.utils.slug import slugify, unique_slug


def test_slugify_strips_accents_and_punctuation():
    assert slugify("Ação Épica!") == "acao-epica"
    assert slugify("  O Livro -- da Coruja  ") == "o-livro-da-coruja"
    assert slugify("???") == ""


def test_unique_slug_appends_counter():
    taken = {"coruja", "coruja-2"}
    assert unique_slug("coruja", taken.__contains__) == "coruja-3"
    assert unique_slug("livro", taken.__contains__) == "livro"
