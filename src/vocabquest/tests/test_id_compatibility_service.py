"""Tests for legacy and module-qualified id resolution."""
from vocabquest.services.catalog_service import WordCatalog
from vocabquest.services.id_compatibility_service import (
    WordIdCompatibilityService,
    effective_id_for,
    progress_for_word,
)
from vocabquest.tests.factories import make_progress, make_word


def test_find_legacy_id(compat: WordIdCompatibilityService):
    result = compat.find_word_by_id("de", "186")
    assert result.found
    assert result.word.term == "Katze"
    assert result.module_id == "grundwortschatz"
    assert result.effective_id == "grundwortschatz:186"


def test_find_colliding_legacy_id_uses_first_module(compat: WordIdCompatibilityService):
    """Test that "185" resolves to the first module that has it."""
    result = compat.find_word_by_id("de", "185")
    assert result.word.term == "Hund"
    assert result.effective_id == "grundwortschatz:185"


def test_find_qualified_id(compat: WordIdCompatibilityService):
    result = compat.find_word_by_id("de", "reisen:185")
    assert result.word.term == "Bahnhof"
    assert result.module_id == "reisen"
    assert result.effective_id == "reisen:185"


def test_find_unknown_ids(compat: WordIdCompatibilityService):
    for word_id in ("999", "reisen:999", "missing:185"):
        result = compat.find_word_by_id("de", word_id)
        assert not result.found
        assert result.effective_id == word_id


def test_get_progress_from_either_format(compat: WordIdCompatibilityService):
    """Test reading a legacy record by qualified id and the other way round."""
    legacy = {"186": make_progress("186", xp=10)}
    assert compat.get_word_progress(legacy, "grundwortschatz:186", "de").xp == 10
    assert compat.get_word_progress(legacy, "186", "de").xp == 10

    qualified = {"grundwortschatz:186": make_progress("grundwortschatz:186", xp=20)}
    assert compat.get_word_progress(qualified, "186", "de").xp == 20


def test_colliding_legacy_record_belongs_to_first_module(compat: WordIdCompatibilityService):
    progress = {"185": make_progress("185", xp=50)}
    assert compat.get_word_progress(progress, "grundwortschatz:185", "de").xp == 50
    assert compat.get_word_progress(progress, "reisen:185", "de") is None


def test_update_writes_effective_id_and_drops_legacy_key(compat: WordIdCompatibilityService):
    """Test that a write through a legacy id leaves exactly one record."""
    progress = {"186": make_progress("186", xp=10)}
    record = make_progress("186", xp=22)

    updated = compat.update_word_progress(progress, "186", record, "de")

    assert list(updated) == ["grundwortschatz:186"]
    assert updated["grundwortschatz:186"].word_id == "grundwortschatz:186"
    assert updated["grundwortschatz:186"].xp == 22
    assert list(progress) == ["186"]


def test_update_second_module_keeps_other_legacy_record(compat: WordIdCompatibilityService):
    progress = {"185": make_progress("185", xp=50)}
    updated = compat.update_word_progress(progress, "reisen:185", make_progress("reisen:185", xp=12), "de")
    assert set(updated) == {"185", "reisen:185"}


def test_update_unknown_word_stores_as_given(compat: WordIdCompatibilityService):
    updated = compat.update_word_progress({}, "999", make_progress("999", xp=1), "de")
    assert list(updated) == ["999"]


def test_all_words_with_effective_ids(compat: WordIdCompatibilityService):
    words = compat.get_all_words_with_effective_ids("de")
    assert [w.effective_id for w in words] == [
        "grundwortschatz:185",
        "grundwortschatz:186",
        "grundwortschatz:187",
        "grundwortschatz:188",
        "reisen:185",
        "reisen:201",
    ]
    assert words[4].original_id == "185"


def test_effective_id_for_words(catalog: WordCatalog):
    bahnhof = catalog.get_words_for_module("de", "reisen")[0]
    assert effective_id_for(bahnhof) == "reisen:185"
    assert effective_id_for(make_word("7", "sieben", "seven")) == "7"
    assert effective_id_for(make_word("m:7", "sieben", "seven", module_id="m")) == "m:7"


def test_progress_for_word_prefers_effective_id(catalog: WordCatalog):
    hund = catalog.get_words_for_module("de", "grundwortschatz")[0]
    progress = {
        "185": make_progress("185", xp=1),
        "grundwortschatz:185": make_progress("grundwortschatz:185", xp=2),
    }
    assert progress_for_word(progress, hund).xp == 2
    del progress["grundwortschatz:185"]
    assert progress_for_word(progress, hund).xp == 1
    assert progress_for_word({}, hund) is None
