"""Generic front end over the registered challenge adapters."""
import inspect
import logging
import time
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any, Dict, List, Mapping, Optional

from vocabquest import monitoring
from vocabquest.config import settings
from vocabquest.exceptions import AdapterCallError, EmptyResult, UnknownSessionType
from vocabquest.models.catalog_models import Word
from vocabquest.models.challenge_models import (
    ChallengeConfig,
    ChallengeContext,
    ChallengeResult,
    CompletionResult,
    ProgressMap,
    ServiceHealth,
)
from vocabquest.services.catalog_service import WordCatalog
from vocabquest.services.challenge_adapters import BaseChallengeAdapter, create_default_adapters

logger = logging.getLogger(__name__)


def _option(options: Mapping[str, Any], key: str, default: int) -> int:
    value = options.get(key)
    return default if value is None else value


class ChallengeOrchestrator:
    """Dispatches every session step to the adapter registered for its type.

    Callers never branch on the session type. Each adapter has a
    ServiceHealth record that only _record_service_call() mutates; the
    availability flag is informational and never stops a call.
    """

    def __init__(
        self,
        catalog: WordCatalog,
        adapters: Optional[Mapping[str, BaseChallengeAdapter]] = None,
        error_threshold: Optional[int] = None,
    ):
        self.catalog = catalog
        self.error_threshold = (
            settings.challenge.unavailable_error_threshold if error_threshold is None else error_threshold
        )
        self._registry: Dict[str, BaseChallengeAdapter] = {}
        self._health: Dict[str, ServiceHealth] = {}

        for session_id, adapter in (adapters if adapters is not None else create_default_adapters()).items():
            self.register_adapter(session_id, adapter)

    def register_adapter(self, session_id: str, adapter: BaseChallengeAdapter) -> None:
        """Add or replace a challenge mode; its health starts fresh."""
        self._registry[session_id] = adapter
        self._health[session_id] = ServiceHealth(service_name=session_id)
        monitoring.adapter_available.labels(session_type=session_id).set(1)
        logger.debug(f"Registered challenge adapter {session_id}")

    def _get_adapter(self, session_id: str) -> BaseChallengeAdapter:
        adapter = self._registry.get(session_id)
        if adapter is None:
            raise UnknownSessionType(session_id, self._registry.keys())
        return adapter

    def _resolve_words(self, language_code: str, module_id: Optional[str]) -> List[Word]:
        if module_id:
            return self.catalog.get_words_for_module(language_code, module_id)
        return self.catalog.get_words_for_language(language_code)

    def _default_target_words(self, session_id: str) -> int:
        return settings.challenge.default_target_words.get(session_id, settings.challenge.fallback_target_words)

    async def initialize_session(
        self,
        session_id: str,
        language_code: str,
        word_progress: ProgressMap,
        options: Optional[Mapping[str, Any]] = None,
        module_id: Optional[str] = None,
    ) -> ChallengeConfig:
        adapter = self._get_adapter(session_id)
        options = options or {}
        started = time.perf_counter()

        config = ChallengeConfig(
            language_code=language_code,
            word_progress=word_progress,
            target_words=_option(options, "target_words", self._default_target_words(session_id)),
            time_limit=_option(options, "time_limit", settings.challenge.default_time_limit),
            difficulty=_option(options, "difficulty", settings.challenge.default_difficulty),
            all_words=self._resolve_words(language_code, module_id),
            module_id=module_id,
        )

        try:
            await adapter.initialize(config)
        except Exception as e:
            self._record_service_call(session_id, started, success=False)
            logger.error(f"Failed to initialize {session_id} for {language_code}: {e}")
            raise AdapterCallError(session_id, "initialize", e) from e

        self._record_service_call(session_id, started, success=True)
        logger.info(f"Challenge session initialized: {session_id}" + (f" (module: {module_id})" if module_id else ""))
        return config

    async def get_next_word(self, session_id: str, context: ChallengeContext) -> ChallengeResult:
        adapter = self._get_adapter(session_id)
        started = time.perf_counter()

        if not context.all_words:
            context.all_words = self._resolve_words(context.language_code, context.module_id)

        try:
            result = await adapter.get_next_word(context)
        except Exception as e:
            self._record_service_call(session_id, started, success=False)
            logger.error(f"Failed to get next word from {session_id}: {e}")
            raise AdapterCallError(session_id, "get_next_word", e) from e

        if result is None or result.word is None:
            self._record_service_call(session_id, started, success=False)
            logger.error(f"{session_id} returned no word after {context.words_completed} words")
            raise EmptyResult(session_id)

        self._record_service_call(session_id, started, success=True)
        logger.debug(f"{session_id} provided word {result.word.id} ({result.quiz_mode.value})")
        return result

    async def record_completion(
        self,
        session_id: str,
        word_id: str,
        correct: bool,
        time_spent: float,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Tell the adapter about an answer; returns whether the session continues.

        Errors are logged and treated as "continue" so a failing adapter
        cannot end a running session.
        """
        adapter = self._get_adapter(session_id)
        started = time.perf_counter()

        try:
            result = adapter.record_completion(word_id, correct, time_spent, metadata)
            if inspect.isawaitable(result):
                result = await result
            session_continues = self._normalize_completion(result)
        except Exception as e:
            self._record_service_call(session_id, started, success=False)
            logger.error(f"Failed to record completion of {word_id} in {session_id}: {e}")
            return True

        self._record_service_call(session_id, started, success=True)
        return session_continues

    @staticmethod
    def _normalize_completion(result: Any) -> bool:
        if isinstance(result, bool):
            return result
        if isinstance(result, CompletionResult):
            return result.session_continues
        if isinstance(result, Mapping):
            if "sessionContinues" in result:
                return bool(result["sessionContinues"])
            return bool(result.get("session_continues", True))
        return True

    def reset_session(self, session_id: str) -> None:
        try:
            self._get_adapter(session_id).reset()
            logger.debug(f"Challenge session reset: {session_id}")
        except Exception as e:
            logger.error(f"Failed to reset {session_id}: {e}")

    def has_session_failed(self, session_id: str) -> bool:
        try:
            adapter = self._get_adapter(session_id)
            check = getattr(adapter, "has_session_failed", None)
            return bool(check()) if callable(check) else False
        except Exception as e:
            logger.error(f"Failed to check session failure for {session_id}: {e}")
            return False

    def get_service_health(self, session_id: str) -> Optional[ServiceHealth]:
        health = self._health.get(session_id)
        return replace(health) if health else None

    def get_services_health(self) -> Dict[str, ServiceHealth]:
        return {session_id: replace(health) for session_id, health in self._health.items()}

    def get_supported_session_types(self) -> List[str]:
        return list(self._registry.keys())

    def is_session_type_supported(self, session_id: str) -> bool:
        return session_id in self._registry

    def _record_service_call(self, session_id: str, started: float, success: bool) -> None:
        health = self._health.get(session_id)
        if health is None:
            return

        elapsed = time.perf_counter() - started
        health.last_call = datetime.now(UTC)
        health.response_time = (health.response_time + elapsed * 1000) / 2
        if success:
            health.success_count += 1
        else:
            health.error_count += 1
        health.error_rate = health.error_count / (health.success_count + health.error_count)
        health.is_available = health.error_count < self.error_threshold

        monitoring.adapter_calls.labels(session_type=session_id, outcome="success" if success else "error").inc()
        monitoring.adapter_response_time.labels(session_type=session_id).observe(elapsed)
        monitoring.adapter_available.labels(session_type=session_id).set(1 if health.is_available else 0)
