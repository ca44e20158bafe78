"""
Name normalization tests
"""
import pytest

from app.services.billing.normalizer import normalize_name


@pytest.mark.unit
def test_trims_and_collapses_whitespace():
    assert normalize_name("  דנה   כהן \t") == "דנה כהן"


@pytest.mark.unit
def test_lowercases_latin_letters():
    assert normalize_name("Dana Cohen") == "dana cohen"


@pytest.mark.unit
def test_strips_hebrew_points():
    # shin + shin dot + qamats, lamed, vav + holam, final mem
    pointed = "שָׁלוֹם"
    assert normalize_name(pointed) == "שלום"


@pytest.mark.unit
def test_collapses_repeated_characters():
    assert normalize_name("יוססי") == "יוסי"
    assert normalize_name("Annna") == "ana"


@pytest.mark.unit
def test_repeat_collapse_happens_after_lowercasing():
    assert normalize_name("AAa") == "a"


@pytest.mark.unit
def test_unicode_composition_is_unified():
    assert normalize_name("e\u0301") == normalize_name("\u00e9")


@pytest.mark.unit
@pytest.mark.parametrize("text", ["", "   ", None])
def test_empty_input_gives_empty_key(text):
    assert normalize_name(text) == ""


@pytest.mark.unit
def test_is_idempotent():
    once = normalize_name("  Shaaron   לֵוִי ")
    assert normalize_name(once) == once
