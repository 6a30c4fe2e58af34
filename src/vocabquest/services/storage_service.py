"""Durable key-value storage and the per-language word progress store."""
import json
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from vocabquest import monitoring
from vocabquest.config import settings
from vocabquest.exceptions import StorageError
from vocabquest.models.catalog_models import WordProgress
from vocabquest.models.models import StorageEntry

logger = logging.getLogger(__name__)


class KeyValueStorage:
    """Synchronous, size-bounded get/set/delete by string key."""

    def __init__(self, session_factory: sessionmaker, max_value_bytes: Optional[int] = None):
        """Initialize the storage with a SQLAlchemy session factory."""
        self.session_factory = session_factory
        self.max_value_bytes = settings.storage.max_value_bytes if max_value_bytes is None else max_value_bytes

    def get(self, key: str) -> Optional[str]:
        db: Session = self.session_factory()
        try:
            entry = db.query(StorageEntry).filter(StorageEntry.key == key).first()
            return entry.value if entry else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e
        finally:
            db.close()

    def set(self, key: str, value: str) -> None:
        size = len(value.encode("utf-8"))
        if size > self.max_value_bytes:
            raise StorageError(f"Value for {key} is {size} bytes, limit is {self.max_value_bytes}")

        db: Session = self.session_factory()
        try:
            entry = db.query(StorageEntry).filter(StorageEntry.key == key).first()
            if entry:
                entry.value = value
            else:
                db.add(StorageEntry(key=key, value=value))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError(f"Failed to write {key}: {e}") from e
        finally:
            db.close()

    def delete(self, key: str) -> None:
        db: Session = self.session_factory()
        try:
            db.query(StorageEntry).filter(StorageEntry.key == key).delete()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError(f"Failed to delete {key}: {e}") from e
        finally:
            db.close()


class ProgressStore:
    """Word progress persisted as {languageCode: {wordId: record}} under one key.

    Every failure is logged and turned into a safe default; callers never see
    a StorageError from this class.
    """

    def __init__(self, storage: KeyValueStorage, storage_key: Optional[str] = None):
        self.storage = storage
        self.storage_key = storage_key or settings.storage.progress_key

    def _read_all(self) -> Dict[str, Dict[str, Any]]:
        raw = self.storage.get(self.storage_key)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Stored progress is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise StorageError("Stored progress is not an object")
        return data

    def _write_language(self, language_code: str, records: Dict[str, Any]) -> None:
        data = self._read_all()
        # Only the requested language is replaced
        data[language_code] = records
        self.storage.set(self.storage_key, json.dumps(data, ensure_ascii=False))

    def load_all(self) -> Dict[str, Dict[str, Any]]:
        try:
            return self._read_all()
        except StorageError as e:
            monitoring.storage_errors.labels(operation="load_all").inc()
            logger.error(f"Failed to load all word progress: {e}")
            return {}

    def load_raw(self, language_code: str) -> Dict[str, Any]:
        """Untyped records for one language, exactly as stored."""
        try:
            records = self._read_all().get(language_code) or {}
            return dict(records) if isinstance(records, dict) else {}
        except StorageError as e:
            monitoring.storage_errors.labels(operation="load_raw").inc()
            logger.error(f"Failed to load raw word progress for {language_code}: {e}")
            return {}

    def save_raw(self, language_code: str, records: Dict[str, Any]) -> bool:
        try:
            self._write_language(language_code, records)
            return True
        except StorageError as e:
            monitoring.storage_errors.labels(operation="save_raw").inc()
            logger.error(f"Failed to save raw word progress for {language_code}: {e}")
            return False

    @staticmethod
    def _parse(word_id: str, record: Any) -> Optional[WordProgress]:
        try:
            return WordProgress.from_dict(record, word_id=word_id)
        except (KeyError, TypeError, ValueError, AttributeError):
            return None

    def load(self, language_code: str) -> Dict[str, WordProgress]:
        """Typed records for one language; malformed entries are skipped."""
        progress: Dict[str, WordProgress] = {}
        for word_id, record in self.load_raw(language_code).items():
            parsed = self._parse(word_id, record)
            if parsed is None:
                logger.warning(f"Skipping malformed progress record {word_id} for {language_code}")
                continue
            progress[word_id] = parsed
        return progress

    def save(self, language_code: str, progress: Dict[str, WordProgress]) -> bool:
        """Replace the typed records of a language.

        Stored entries that `load` could not parse are not part of `progress`;
        they are written back unchanged.
        """
        records = {word_id: record.to_dict() for word_id, record in progress.items()}
        for word_id, record in self.load_raw(language_code).items():
            if word_id not in records and self._parse(word_id, record) is None:
                records[word_id] = record
        saved = self.save_raw(language_code, records)
        if saved:
            logger.debug(f"Saved progress for {language_code}: {len(records)} entries")
        return saved

    def clear(self, language_code: Optional[str] = None) -> bool:
        try:
            if language_code is None:
                self.storage.delete(self.storage_key)
                return True
            data = self._read_all()
            data.pop(language_code, None)
            self.storage.set(self.storage_key, json.dumps(data, ensure_ascii=False))
            return True
        except StorageError as e:
            monitoring.storage_errors.labels(operation="clear").inc()
            logger.error(f"Failed to clear word progress: {e}")
            return False
