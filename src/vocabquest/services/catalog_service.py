"""Read-only word catalog organised by language and module."""
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from vocabquest.models.catalog_models import Module, Word

logger = logging.getLogger(__name__)


class WordCatalog:
    """Per-language, per-module word lists.

    Languages keep their modules in insertion order, which is also the order
    used by every lookup that scans "all modules" of a language.
    """

    def __init__(self, modules: Optional[Dict[str, Iterable[Module]]] = None):
        self._modules: Dict[str, Dict[str, Module]] = {}
        self._source_dir: Optional[Path] = None
        self._reload_listeners: List[Callable[[], None]] = []
        for language_code, language_modules in (modules or {}).items():
            for module in language_modules:
                self.add_module(language_code, module)

    @classmethod
    def from_directory(cls, directory: Path) -> "WordCatalog":
        """Load a catalog laid out as <dir>/<lang>/index.json plus one JSON file per module."""
        catalog = cls()
        catalog._source_dir = Path(directory)
        catalog._load_directory(catalog._source_dir)
        return catalog

    def _load_directory(self, directory: Path) -> None:
        if not directory.exists():
            logger.warning(f"Catalog directory {directory} does not exist")
            return

        for language_dir in sorted(p for p in directory.iterdir() if p.is_dir()):
            index_file = language_dir / "index.json"
            if not index_file.exists():
                logger.warning(f"Skipping {language_dir.name}: no index.json")
                continue

            index = json.loads(index_file.read_text(encoding="utf-8"))
            for module_info in index.get("modules", []):
                module_file = language_dir / f"{module_info['id']}.json"
                if not module_file.exists():
                    logger.warning(f"Module file {module_file} listed in index but missing")
                    continue
                module = Module.from_dict(json.loads(module_file.read_text(encoding="utf-8")))
                self.add_module(language_dir.name, module)

        logger.info(f"Loaded catalog from {directory}: {', '.join(self.get_available_languages()) or 'empty'}")

    def add_module(self, language_code: str, module: Module) -> None:
        # Words always know which module they were loaded from
        module.words = [
            word if word.module_id == module.id else replace(word, module_id=module.id)
            for word in module.words
        ]
        self._modules.setdefault(language_code, {})[module.id] = module

    def add_reload_listener(self, listener: Callable[[], None]) -> None:
        """Register a callback that runs after every reload()."""
        self._reload_listeners.append(listener)

    def reload(self) -> None:
        """Re-read the source directory and notify listeners (e.g. id-map caches)."""
        if self._source_dir is not None:
            self._modules = {}
            self._load_directory(self._source_dir)
        for listener in self._reload_listeners:
            listener()

    def get_available_languages(self) -> List[str]:
        return list(self._modules.keys())

    def get_modules_for_language(self, language_code: str) -> List[Module]:
        return list(self._modules.get(language_code, {}).values())

    def get_module(self, language_code: str, module_id: str) -> Optional[Module]:
        module = self._modules.get(language_code, {}).get(module_id)
        if module is None:
            logger.warning(f"Module {module_id} not found for language {language_code}")
        return module

    def get_words_for_module(self, language_code: str, module_id: str) -> List[Word]:
        module = self.get_module(language_code, module_id)
        return list(module.words) if module else []

    def get_words_for_language(self, language_code: str) -> List[Word]:
        words: List[Word] = []
        for module in self.get_modules_for_language(language_code):
            words.extend(module.words)
        return words
