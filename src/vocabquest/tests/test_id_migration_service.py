"""Tests for word id migration."""
from unittest.mock import Mock

import pytest

from vocabquest.models.catalog_models import Module
from vocabquest.services.catalog_service import WordCatalog
from vocabquest.services.id_migration_service import (
    WordIdMigrationService,
    create_robust_word_id,
    merge_progress_records,
    needs_id_migration,
    parse_robust_word_id,
)
from vocabquest.services.storage_service import ProgressStore
from vocabquest.tests.factories import make_word


def raw(word_id: str, xp: int = 10, correct: int = 1, incorrect: int = 0,
        last_practiced: str = "2026-01-01T00:00:00+00:00") -> dict:
    return {
        "wordId": word_id,
        "xp": xp,
        "lastPracticed": last_practiced,
        "timesCorrect": correct,
        "timesIncorrect": incorrect,
    }


def test_create_and_parse_robust_ids():
    assert create_robust_word_id("grundwortschatz", "185") == "grundwortschatz:185"
    assert parse_robust_word_id("grundwortschatz:185") == ("grundwortschatz", "185")
    assert parse_robust_word_id("m:a:b") == ("m", "a:b")


@pytest.mark.parametrize("word_id", ["185", ":185", "grundwortschatz:", ""])
def test_parse_rejects_legacy_and_malformed_ids(word_id):
    assert parse_robust_word_id(word_id) is None


def test_needs_id_migration():
    assert needs_id_migration("185") is True
    assert needs_id_migration("grundwortschatz:185") is False


def test_migration_map_first_module_wins(migration: WordIdMigrationService):
    """Test that a legacy id shared by two modules maps to the first one."""
    migration_map = migration.generate_id_migration_map("de")
    assert migration_map == {
        "185": "grundwortschatz:185",
        "186": "grundwortschatz:186",
        "187": "grundwortschatz:187",
        "188": "grundwortschatz:188",
        "201": "reisen:201",
    }


def test_migration_map_is_cached_until_catalog_reload(catalog: WordCatalog, migration: WordIdMigrationService):
    """Test that reloading the catalog invalidates the cached map."""
    assert "301" not in migration.generate_id_migration_map("de")

    catalog.add_module("de", Module(id="essen", name="Essen", words=[make_word("301", "Brot", "bread")]))
    assert "301" not in migration.generate_id_migration_map("de")

    catalog.reload()
    assert migration.generate_id_migration_map("de")["301"] == "essen:301"


def test_migrate_word_progress_ids(migration: WordIdMigrationService):
    """Test legacy, qualified, orphaned and malformed records in one run."""
    progress = {
        "186": raw("186", xp=30),
        "reisen:201": raw("reisen:201", xp=5),
        "999": raw("999"),
        "187": "garbage",
    }
    snapshot = {key: (dict(value) if isinstance(value, dict) else value) for key, value in progress.items()}

    result = migration.migrate_word_progress_ids("de", progress)

    assert result.success is True
    assert result.migrated_count == 1
    assert result.skipped_count == 2
    assert result.error_count == 1
    assert result.progress["grundwortschatz:186"]["wordId"] == "grundwortschatz:186"
    assert result.progress["grundwortschatz:186"]["xp"] == 30
    assert "186" not in result.progress
    assert result.progress["reisen:201"]["xp"] == 5
    assert result.progress["999"] == raw("999")
    assert result.progress["187"] == "garbage"
    assert progress == snapshot


def test_migration_merges_into_existing_record(migration: WordIdMigrationService):
    """Test that a legacy record is folded into an existing qualified one."""
    progress = {
        "185": raw("185", xp=30, correct=3, incorrect=1, last_practiced="2026-01-02T00:00:00+00:00"),
        "grundwortschatz:185": raw("grundwortschatz:185", xp=20, correct=2, incorrect=0),
    }
    result = migration.migrate_word_progress_ids("de", progress)

    merged = result.progress["grundwortschatz:185"]
    assert list(result.progress) == ["grundwortschatz:185"]
    assert merged["xp"] == 30
    assert merged["timesCorrect"] == 5
    assert merged["timesIncorrect"] == 1
    assert merged["lastPracticed"] == "2026-01-02T00:00:00+00:00"


def test_merge_keeps_newer_existing_timestamp():
    existing = raw("m:1", xp=50, last_practiced="2026-03-01T00:00:00+00:00")
    legacy = raw("1", xp=10, last_practiced="2026-01-01T00:00:00+00:00")
    merged = merge_progress_records(existing, legacy)
    assert merged["lastPracticed"] == "2026-03-01T00:00:00+00:00"
    assert merged["xp"] == 50


def test_safe_id_migration_persists_and_is_idempotent(store: ProgressStore, migration: WordIdMigrationService):
    """Test that a second run finds nothing left to migrate."""
    store.save_raw("de", {"186": raw("186", xp=40), "201": raw("201", xp=12)})

    result = migration.safe_id_migration("de")
    assert result.success is True
    assert result.migrated_count == 2
    assert set(store.load_raw("de")) == {"grundwortschatz:186", "reisen:201"}

    assert migration.safe_id_migration("de") is None
    assert store.load("de")["grundwortschatz:186"].xp == 40


def test_safe_id_migration_noop_without_legacy_ids(store: ProgressStore, migration: WordIdMigrationService):
    store.save_raw("de", {"grundwortschatz:186": raw("grundwortschatz:186")})
    assert migration.safe_id_migration("de") is None


def test_safe_id_migration_keeps_orphans_without_saving(catalog: WordCatalog):
    """Test that a run with only orphaned ids does not write."""
    progress_store = Mock()
    progress_store.load_raw.return_value = {"999": raw("999")}
    service = WordIdMigrationService(catalog, progress_store)

    result = service.safe_id_migration("de")
    assert result.success is True
    assert result.migrated_count == 0
    assert result.skipped_count == 1
    progress_store.save_raw.assert_not_called()


def test_safe_id_migration_reports_failed_save(catalog: WordCatalog):
    progress_store = Mock()
    progress_store.load_raw.return_value = {"186": raw("186")}
    progress_store.save_raw.return_value = False
    service = WordIdMigrationService(catalog, progress_store)

    result = service.safe_id_migration("de")
    assert result.success is False
    assert "Failed to save migrated progress" in result.errors


def test_safe_id_migration_never_raises(catalog: WordCatalog):
    """Test that unexpected errors become a failed result."""
    progress_store = Mock()
    progress_store.load_raw.side_effect = RuntimeError("backend gone")
    service = WordIdMigrationService(catalog, progress_store)

    result = service.safe_id_migration("de")
    assert result.success is False
    assert result.error_count == 1
    assert "backend gone" in result.errors[0]


def test_get_id_migration_stats(store: ProgressStore, migration: WordIdMigrationService):
    store.save_raw("de", {"186": raw("186"), "reisen:201": raw("reisen:201"), "188": raw("188")})
    stats = migration.get_id_migration_stats("de")
    assert stats.total_words == 3
    assert stats.old_format_words == 2
    assert stats.new_format_words == 1
    assert stats.needs_migration is True


def test_migrate_all_languages(store: ProgressStore, migration: WordIdMigrationService):
    store.save_raw("de", {"186": raw("186")})
    store.save_raw("es", {"es-modulo:1": raw("es-modulo:1")})

    results = migration.migrate_all_languages()

    assert set(results) == {"de", "es"}
    assert results["de"].migrated_count == 1
    assert results["es"] is None
