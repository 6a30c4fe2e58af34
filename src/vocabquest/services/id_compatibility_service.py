"""Key resolution between legacy and module-qualified word ids.

Every progress read and write goes through the effective id resolved here, so
that the key a record is read from is always the key it is written back to.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, TypeVar

from vocabquest.models.catalog_models import Word
from vocabquest.services.catalog_service import WordCatalog
from vocabquest.services.id_migration_service import (
    create_robust_word_id,
    needs_id_migration,
    parse_robust_word_id,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class WordLookupResult:
    word: Optional[Word]
    module_id: Optional[str]
    effective_id: str  # key to use for any new progress write

    @property
    def found(self) -> bool:
        return self.word is not None


@dataclass
class EffectiveWord:
    word: Word
    module_id: str
    original_id: str
    effective_id: str


def effective_id_for(word: Word) -> str:
    """Progress key of a catalog word; qualified whenever its module is known."""
    if word.module_id is None or not needs_id_migration(word.id):
        return word.id
    return create_robust_word_id(word.module_id, word.id)


def progress_for_word(progress: Mapping[str, T], word: Word) -> Optional[T]:
    """Record for a catalog word under its effective id, else its legacy id."""
    record = progress.get(effective_id_for(word))
    if record is None and needs_id_migration(word.id):
        record = progress.get(word.id)
    return record


class WordIdCompatibilityService:
    """Resolves words and progress records by legacy or qualified id."""

    def __init__(self, catalog: WordCatalog):
        self.catalog = catalog

    def find_word_by_id(self, language_code: str, word_id: str) -> WordLookupResult:
        """Find a catalog word from either id format.

        Qualified ids are looked up directly in their module. Legacy ids are
        matched by scanning the language's modules in order; the first match
        decides the module and therefore the effective id.
        """
        parsed = parse_robust_word_id(word_id)
        if parsed:
            module_id, original_id = parsed
            module = self.catalog.get_module(language_code, module_id)
            if module:
                for word in module.words:
                    if word.id in (word_id, original_id):
                        return WordLookupResult(word=word, module_id=module_id, effective_id=word_id)
            return WordLookupResult(word=None, module_id=None, effective_id=word_id)

        for module in self.catalog.get_modules_for_language(language_code):
            qualified = create_robust_word_id(module.id, word_id)
            for word in module.words:
                if word.id in (word_id, qualified):
                    return WordLookupResult(word=word, module_id=module.id, effective_id=qualified)

        return WordLookupResult(word=None, module_id=None, effective_id=word_id)

    def get_word_progress(self, progress: Mapping[str, T], word_id: str, language_code: str) -> Optional[T]:
        """Progress for a word, whichever id format it is stored under."""
        if word_id in progress:
            return progress[word_id]

        lookup = self.find_word_by_id(language_code, word_id)
        if not lookup.found:
            return None

        if lookup.effective_id in progress:
            return progress[lookup.effective_id]

        # Queried by qualified id while the record still sits under the legacy key
        legacy_id = self._legacy_key_for(language_code, lookup.effective_id)
        if legacy_id and legacy_id in progress:
            return progress[legacy_id]
        return None

    def _legacy_key_for(self, language_code: str, effective_id: str) -> Optional[str]:
        """Legacy id that resolves to effective_id, if any.

        A legacy id shared by several modules belongs to the first of them only.
        """
        parsed = parse_robust_word_id(effective_id)
        if not parsed:
            return None
        legacy_id = parsed[1]
        if self.find_word_by_id(language_code, legacy_id).effective_id != effective_id:
            return None
        return legacy_id

    def update_word_progress(
        self,
        progress: Mapping[str, T],
        word_id: str,
        record: T,
        language_code: str,
    ) -> Dict[str, T]:
        """Return a copy of progress with record stored under the effective id.

        A legacy entry for the same word is dropped so only one record survives.
        Unknown words are stored under the id given.
        """
        updated = dict(progress)
        lookup = self.find_word_by_id(language_code, word_id)

        if not lookup.found:
            logger.warning(f"Could not find {language_code} word {word_id}, storing progress as is")
            updated[word_id] = record
            return updated

        effective_id = lookup.effective_id
        if hasattr(record, "word_id"):
            record.word_id = effective_id
        updated[effective_id] = record

        legacy_id = self._legacy_key_for(language_code, effective_id)
        if legacy_id and legacy_id in updated:
            del updated[legacy_id]
            logger.debug(f"Migrated word progress on write: {legacy_id} -> {effective_id}")
        return updated

    def get_all_words_with_effective_ids(self, language_code: str) -> List[EffectiveWord]:
        results: List[EffectiveWord] = []
        for module in self.catalog.get_modules_for_language(language_code):
            for word in module.words:
                parsed = parse_robust_word_id(word.id)
                if parsed:
                    results.append(EffectiveWord(word, module.id, parsed[1], word.id))
                else:
                    results.append(EffectiveWord(word, module.id, word.id, create_robust_word_id(module.id, word.id)))
        return results
