"""Command line entry point for maintenance tasks."""
import argparse
import logging
import sys
from typing import List, Optional

from vocabquest.config import ensure_directories, settings
from vocabquest.logging_config import setup_logging
from vocabquest.models.base import SessionLocal, init_db
from vocabquest.monitoring import start_monitoring
from vocabquest.services.catalog_service import WordCatalog
from vocabquest.services.challenge_orchestrator import ChallengeOrchestrator
from vocabquest.services.id_migration_service import WordIdMigrationService
from vocabquest.services.storage_service import KeyValueStorage, ProgressStore

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vocabquest", description="VocabQuest maintenance commands")
    subparsers = parser.add_subparsers(dest="command", required=True)

    migrate = subparsers.add_parser("migrate", help="Move stored progress to module-qualified word ids")
    migrate.add_argument("--language", help="Only migrate this language code")

    subparsers.add_parser("health", help="Show registered challenge types and their health")
    subparsers.add_parser("languages", help="List catalog languages and their modules")
    return parser


def run_migrate(catalog: WordCatalog, store: ProgressStore, language: Optional[str]) -> int:
    migration = WordIdMigrationService(catalog, store)
    if language:
        results = {language: migration.safe_id_migration(language)}
    else:
        results = migration.migrate_all_languages()

    failed = False
    for language_code, result in results.items():
        if result is None:
            print(f"{language_code}: nothing to migrate")
            continue
        print(
            f"{language_code}: migrated {result.migrated_count}, skipped {result.skipped_count}, "
            f"errors {result.error_count}"
        )
        for error in result.errors:
            print(f"  - {error}")
        failed = failed or not result.success
    return 1 if failed else 0


def run_health(catalog: WordCatalog) -> int:
    orchestrator = ChallengeOrchestrator(catalog)
    for session_type, health in orchestrator.get_services_health().items():
        status = "available" if health.is_available else "unavailable"
        print(f"{session_type}: {status}, {health.success_count} ok / {health.error_count} errors")
    return 0


def run_languages(catalog: WordCatalog) -> int:
    languages = catalog.get_available_languages()
    if not languages:
        print(f"No languages found in {settings.paths.catalog_dir}")
        return 1
    for language_code in languages:
        modules = catalog.get_modules_for_language(language_code)
        print(f"{language_code}: {len(modules)} modules")
        for module in modules:
            print(f"  {module.id} ({module.name}): {len(module.words)} words")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    ensure_directories()
    setup_logging("Starting VocabQuest maintenance ...")
    if settings.monitoring.enabled:
        start_monitoring(settings.monitoring.port)
        logger.info(f"Metrics exposed on port {settings.monitoring.port}")

    init_db()
    store = ProgressStore(KeyValueStorage(SessionLocal))
    catalog = WordCatalog.from_directory(settings.paths.catalog_dir)

    if args.command == "migrate":
        return run_migrate(catalog, store, args.language)
    if args.command == "health":
        return run_health(catalog)
    return run_languages(catalog)


if __name__ == "__main__":
    sys.exit(main())
