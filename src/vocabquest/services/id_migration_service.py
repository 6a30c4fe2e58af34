"""Migration of word progress keys from flat ids to module-qualified ids.

Legacy progress is keyed by the catalog word id ("185"). Since words were
grouped into modules, ids are only unique inside a module, so progress is now
keyed as "<moduleId>:<originalId>" ("grundwortschatz:185").
"""
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from vocabquest import monitoring
from vocabquest.services.catalog_service import WordCatalog
from vocabquest.services.storage_service import ProgressStore

logger = logging.getLogger(__name__)

ID_SEPARATOR = ":"

IdMigrationMap = Dict[str, str]


@dataclass
class WordIdMigrationResult:
    """Outcome of one migration run, kept for auditing."""
    success: bool = True
    migrated_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    migration_map: IdMigrationMap = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    progress: Dict[str, Any] = field(default_factory=dict)


@dataclass
class IdMigrationStats:
    total_words: int
    old_format_words: int
    new_format_words: int

    @property
    def needs_migration(self) -> bool:
        return self.old_format_words > 0


def create_robust_word_id(module_id: str, original_id: str) -> str:
    return f"{module_id}{ID_SEPARATOR}{original_id}"


def parse_robust_word_id(word_id: str) -> Optional[Tuple[str, str]]:
    """Split a qualified id into (module_id, original_id); None for legacy or malformed ids."""
    if ID_SEPARATOR not in word_id:
        return None
    module_id, original_id = word_id.split(ID_SEPARATOR, 1)
    if not module_id or not original_id:
        return None
    return module_id, original_id


def needs_id_migration(word_id: str) -> bool:
    return ID_SEPARATOR not in word_id


def _practiced_at(record: Mapping[str, Any]) -> datetime:
    value = record.get("lastPracticed")
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=UTC)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def merge_progress_records(existing: Mapping[str, Any], legacy: Mapping[str, Any]) -> Dict[str, Any]:
    """Fold a legacy record into the qualified record for the same word."""
    merged = dict(existing)
    merged["xp"] = max(int(existing.get("xp", 0)), int(legacy.get("xp", 0)))
    merged["timesCorrect"] = int(existing.get("timesCorrect", 0)) + int(legacy.get("timesCorrect", 0))
    merged["timesIncorrect"] = int(existing.get("timesIncorrect", 0)) + int(legacy.get("timesIncorrect", 0))
    if _practiced_at(legacy) > _practiced_at(existing):
        merged["lastPracticed"] = legacy.get("lastPracticed")
    return merged


class WordIdMigrationService:
    """Builds id maps from the catalog and rewrites stored progress keys."""

    def __init__(self, catalog: WordCatalog, progress_store: ProgressStore):
        self.catalog = catalog
        self.progress_store = progress_store
        self._migration_cache: Dict[str, IdMigrationMap] = {}
        # A reloaded catalog may move words between modules
        catalog.add_reload_listener(self.clear_migration_cache)

    def clear_migration_cache(self, language_code: Optional[str] = None) -> None:
        if language_code is None:
            self._migration_cache.clear()
        else:
            self._migration_cache.pop(language_code, None)
        logger.debug(f"Cleared id migration cache for {language_code or 'all languages'}")

    def generate_id_migration_map(self, language_code: str) -> IdMigrationMap:
        """Map every legacy catalog id of a language to its module-qualified id.

        The map is cached per language until clear_migration_cache() is called.
        When two modules share a legacy id the first module wins, matching the
        lookup order of the compatibility layer.
        """
        if language_code in self._migration_cache:
            return self._migration_cache[language_code]

        migration_map: IdMigrationMap = {}
        for module in self.catalog.get_modules_for_language(language_code):
            for word in module.words:
                if not needs_id_migration(word.id):
                    continue
                if word.id in migration_map:
                    logger.warning(
                        f"Word id {word.id} appears in several {language_code} modules, "
                        f"keeping {migration_map[word.id]}"
                    )
                    continue
                migration_map[word.id] = create_robust_word_id(module.id, word.id)

        self._migration_cache[language_code] = migration_map
        logger.debug(f"Generated id migration map for {language_code}: {len(migration_map)} mappings")
        return migration_map

    def migrate_word_progress_ids(self, language_code: str, progress: Mapping[str, Any]) -> WordIdMigrationResult:
        """Rewrite legacy keys of one language's raw progress.

        Pure: the input is not modified and nothing is persisted. The migrated
        mapping is returned in result.progress.
        """
        result = WordIdMigrationResult()
        migration_map = self.generate_id_migration_map(language_code)
        result.migration_map = dict(migration_map)

        migrated: Dict[str, Any] = {}
        legacy_entries = []

        # Qualified and malformed records pass through first so that legacy
        # records can be merged into them regardless of key order
        for word_id, record in progress.items():
            if not isinstance(record, Mapping):
                migrated[word_id] = record
                result.error_count += 1
                result.errors.append(f"Record for {word_id} is not an object")
                logger.error(f"Cannot migrate {language_code} word {word_id}: record is not an object")
            elif needs_id_migration(word_id):
                legacy_entries.append((word_id, record))
            else:
                migrated[word_id] = dict(record)
                result.skipped_count += 1

        for word_id, record in legacy_entries:
            new_id = migration_map.get(word_id)
            if new_id is None:
                # Orphaned id: keep the record where it is
                migrated[word_id] = dict(record)
                result.skipped_count += 1
                logger.warning(f"No migration mapping for {language_code} word id {word_id}")
                continue

            try:
                moved = dict(record)
                moved["wordId"] = new_id
                if new_id in migrated:
                    moved = merge_progress_records(migrated[new_id], moved)
                    moved["wordId"] = new_id
                    logger.info(f"Merged legacy progress {word_id} into existing {new_id}")
                migrated[new_id] = moved
                result.migrated_count += 1
                logger.debug(f"Migrated word progress: {word_id} -> {new_id}")
            except (TypeError, ValueError) as e:
                migrated[word_id] = record
                result.error_count += 1
                result.errors.append(f"Error migrating {word_id}: {e}")
                logger.error(f"Error migrating {language_code} word id {word_id}: {e}")

        result.progress = migrated
        return result

    def get_id_migration_stats(self, language_code: str) -> IdMigrationStats:
        current = self.progress_store.load_raw(language_code)
        old_format = sum(1 for word_id in current if needs_id_migration(word_id))
        return IdMigrationStats(
            total_words=len(current),
            old_format_words=old_format,
            new_format_words=len(current) - old_format,
        )

    def safe_id_migration(self, language_code: str) -> Optional[WordIdMigrationResult]:
        """Migrate stored progress for one language if it still has legacy keys.

        Returns None when nothing needs migrating. Never raises: failures come
        back as a result with success=False and the stored data untouched.
        """
        try:
            stats = self.get_id_migration_stats(language_code)
            if not stats.needs_migration:
                logger.debug(f"No word id migration needed for {language_code}")
                return None

            logger.info(f"Starting word id migration for {language_code}: {stats.old_format_words} legacy ids")
            current = self.progress_store.load_raw(language_code)
            result = self.migrate_word_progress_ids(language_code, current)

            if result.migrated_count > 0:
                if self.progress_store.save_raw(language_code, result.progress):
                    monitoring.words_migrated.labels(language=language_code).inc(result.migrated_count)
                else:
                    result.success = False
                    result.errors.append("Failed to save migrated progress")

            if result.success:
                monitoring.id_migrations.labels(language=language_code, outcome="success").inc()
                logger.info(
                    f"Word id migration completed for {language_code}: {result.migrated_count} migrated, "
                    f"{result.skipped_count} skipped, {result.error_count} errors"
                )
            else:
                monitoring.id_migrations.labels(language=language_code, outcome="failure").inc()
                logger.error(f"Word id migration failed for {language_code}: {result.errors}")
            return result

        except Exception as e:
            monitoring.id_migrations.labels(language=language_code, outcome="failure").inc()
            logger.error(f"Safe id migration failed for {language_code}: {e}")
            return WordIdMigrationResult(success=False, error_count=1, errors=[f"Safe migration failed: {e}"])

    def migrate_all_languages(self) -> Dict[str, Optional[WordIdMigrationResult]]:
        """Run safe_id_migration for every language that has stored progress."""
        return {
            language_code: self.safe_id_migration(language_code)
            for language_code in self.progress_store.load_all()
        }
