"""Drives one challenge session from start to completion."""
import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from vocabquest import monitoring
from vocabquest.config import settings
from vocabquest.exceptions import AdapterCallError, EmptyResult, UnknownSessionType
from vocabquest.models.catalog_models import Word, WordProgress
from vocabquest.models.challenge_models import (
    ChallengeContext,
    ChallengeResult,
    ChallengeSession,
    QuizMode,
    SessionBonuses,
)
from vocabquest.services.catalog_service import WordCatalog
from vocabquest.services.challenge_orchestrator import ChallengeOrchestrator
from vocabquest.services.id_compatibility_service import WordIdCompatibilityService
from vocabquest.services.id_migration_service import WordIdMigrationService
from vocabquest.services.option_generation import generate_multiple_choice_options
from vocabquest.services.session.mode_handler import ModeHandler
from vocabquest.services.session.progress_tracker import FeedbackInfo, ProgressTracker
from vocabquest.services.session.state_manager import SessionState, StateManager, StateSnapshot
from vocabquest.services.storage_service import ProgressStore

logger = logging.getLogger(__name__)

BASE_POINTS = 10
OPEN_ANSWER_MULTIPLIER = 2
STREAK_STEP = 5

MAX_TIME_BONUS = 50
TIME_BONUS_SECONDS_PER_POINT = 6
MAX_STREAK_BONUS = 100
STREAK_BONUS_PER_WORD = 5

CONTEXT_BONUS = {
    "deep-dive": 30,
    "boss-battle": 25,
    "fill-in-the-blank": 20,
}
PERFECT_RECALL_BONUS = {
    "precision-mode": 40,
}

REASON_TARGET_REACHED = "target-reached"
REASON_FAILED = "failed"
REASON_STOPPED = "stopped"
REASON_TIME_EXPIRED = "time-expired"
REASON_NO_WORDS = "no-words"
REASON_ABANDONED = "abandoned"


@dataclass
class SessionSummary:
    session_type: str
    language_code: str
    words_completed: int
    correct_answers: int
    incorrect_answers: int
    best_streak: int
    score: int
    accuracy: float
    duration: float  # seconds
    reason: str


@dataclass
class AnswerOutcome:
    """Everything the caller needs to show after an answer."""
    correct: bool
    feedback: FeedbackInfo
    capitalization_penalty: float = 1.0
    points: int = 0
    bonuses: SessionBonuses = field(default_factory=SessionBonuses)
    xp_gained: int = 0
    next_word: Optional[ChallengeResult] = None
    used_fallback: bool = False
    session_completed: bool = False
    summary: Optional[SessionSummary] = None


class SessionManager:
    """Coordinates the orchestrator, progress writes and the state machine.

    One session at a time. Answers are serialized so the next word is only
    requested after the previous completion has been recorded.
    """

    def __init__(
        self,
        orchestrator: ChallengeOrchestrator,
        progress_store: ProgressStore,
        catalog: WordCatalog,
        migration_service: WordIdMigrationService,
        clock: Callable[[], float] = time.monotonic,
        auto_migrate: Optional[bool] = None,
    ):
        self.orchestrator = orchestrator
        self.progress_store = progress_store
        self.catalog = catalog
        self.migration_service = migration_service
        self.clock = clock
        self.auto_migrate = (
            settings.migration.auto_migrate_on_session_start if auto_migrate is None else auto_migrate
        )

        self.compatibility = WordIdCompatibilityService(catalog)
        self.progress_tracker = ProgressTracker(progress_store, self.compatibility)
        self.state_manager = StateManager()
        self._lock = asyncio.Lock()

        self.session: Optional[ChallengeSession] = None
        self.current: Optional[ChallengeResult] = None
        self.mode_handler: Optional[ModeHandler] = None
        self.word_progress: Dict[str, WordProgress] = {}
        self.last_summary: Optional[SessionSummary] = None
        self._word_started_at = 0.0
        self._last_answer_correct: Optional[bool] = None

    @property
    def state(self) -> SessionState:
        return self.state_manager.state

    @property
    def is_active(self) -> bool:
        return self.session is not None

    async def start_session(
        self,
        session_type: str,
        language_code: str,
        module_id: Optional[str] = None,
        target_words: Optional[int] = None,
        time_limit: Optional[int] = None,
        difficulty: Optional[int] = None,
    ) -> ChallengeResult:
        """Set up a session and return its first word.

        Any failure here is fatal: the error reaches the caller and the
        manager goes back to IDLE.
        """
        if not self.orchestrator.is_session_type_supported(session_type):
            raise UnknownSessionType(session_type, self.orchestrator.get_supported_session_types())

        self.state_manager.transition(SessionState.INITIALIZING)
        try:
            if self.auto_migrate:
                self.migration_service.safe_id_migration(language_code)
            self.word_progress = self.progress_store.load(language_code)

            config = await self.orchestrator.initialize_session(
                session_type,
                language_code,
                self.word_progress,
                {"target_words": target_words, "time_limit": time_limit, "difficulty": difficulty},
                module_id,
            )
            self.session = ChallengeSession(
                session_id=session_type,
                language_code=language_code,
                target_words=config.target_words,
                time_limit=config.time_limit,
                difficulty=config.difficulty,
                module_id=module_id,
                started_at=self.clock(),
            )
            self.mode_handler = ModeHandler(language_code)
            first = await self.orchestrator.get_next_word(session_type, self._build_context())
        except Exception:
            logger.exception(f"Failed to start {session_type} session for {language_code}")
            self.orchestrator.reset_session(session_type)
            self._discard()
            raise

        self._present(first)
        self._last_answer_correct = None
        monitoring.sessions_started.labels(session_type=session_type).inc()
        logger.info(
            f"Started {session_type} session for {language_code}: target {self.session.target_words} words"
        )
        return first

    async def submit_answer(self, answer: str, time_spent: Optional[float] = None) -> AnswerOutcome:
        """Check an answer, persist progress and move to the next word or finish."""
        async with self._lock:
            self.state_manager.require(SessionState.WORD_PRESENTED)
            session = self.session
            word = self.current.word
            quiz_mode = self.current.quiz_mode
            if time_spent is None:
                time_spent = self.clock() - self._word_started_at

            validation = self.mode_handler.check_answer(word, quiz_mode, answer)
            correct = validation.is_correct
            self.state_manager.transition(SessionState.ANSWERED)

            update = self.progress_tracker.record_answer(
                session.language_code, self.word_progress, word, correct, quiz_mode
            )
            self.word_progress = update.progress

            outcome = AnswerOutcome(
                correct=correct,
                feedback=ProgressTracker.prepare_feedback(word, quiz_mode, self.mode_handler),
                capitalization_penalty=validation.capitalization_penalty,
                xp_gained=update.xp_gained,
            )
            self._update_counters(session, correct)

            if correct:
                outcome.bonuses = self.calculate_session_bonuses(session, self.clock() - session.started_at)
                outcome.points = (
                    self.calculate_base_score(quiz_mode, session.current_streak, validation.capitalization_penalty)
                    + outcome.bonuses.total
                )
                session.score += outcome.points

            continues = await self.orchestrator.record_completion(
                session.session_id,
                update.record.word_id,
                correct,
                time_spent,
                {"quiz_mode": quiz_mode.value, "error_type": None if correct else "incorrect"},
            )
            monitoring.answers_recorded.labels(session_type=session.session_id, correct=str(correct).lower()).inc()
            self._last_answer_correct = correct
            if self._was_abandoned(session, outcome):
                return outcome

            reason = self._completion_reason(session, continues)
            if reason:
                outcome.session_completed = True
                outcome.summary = self._complete(reason)
                return outcome

            self.state_manager.transition(SessionState.PROGRESSING)
            next_word, used_fallback = await self._next_word()
            if self._was_abandoned(session, outcome):
                return outcome
            if next_word is None:
                outcome.session_completed = True
                outcome.summary = self._complete(REASON_NO_WORDS)
                return outcome

            self._present(next_word)
            outcome.next_word = next_word
            outcome.used_fallback = used_fallback
            return outcome

    def abandon_session(self) -> Optional[SessionSummary]:
        """Drop the running session; progress already saved stays saved.

        Safe to call while an answer is still awaiting its adapter: that
        answer then returns as completed with this summary.
        """
        if self.session is None:
            self.state_manager.reset()
            return None
        logger.info(f"Abandoning {self.session.session_id} after {self.session.words_completed} words")
        return self._complete(REASON_ABANDONED)

    @staticmethod
    def calculate_session_bonuses(session: ChallengeSession, elapsed_seconds: float) -> SessionBonuses:
        """Mode-specific points added to a correct answer."""
        bonuses = SessionBonuses()
        if session.session_id == "quick-dash":
            remaining = max(0.0, session.time_limit * 60 - elapsed_seconds)
            bonuses.time_bonus = min(MAX_TIME_BONUS, int(remaining // TIME_BONUS_SECONDS_PER_POINT))
        elif session.session_id == "streak-challenge":
            bonuses.streak_bonus = min(MAX_STREAK_BONUS, session.current_streak * STREAK_BONUS_PER_WORD)
        bonuses.context_bonus = CONTEXT_BONUS.get(session.session_id, 0)
        bonuses.perfect_recall_bonus = PERFECT_RECALL_BONUS.get(session.session_id, 0)
        return bonuses

    @staticmethod
    def calculate_base_score(quiz_mode: QuizMode, current_streak: int, capitalization_penalty: float = 1.0) -> int:
        multiplier = OPEN_ANSWER_MULTIPLIER if quiz_mode == QuizMode.OPEN_ANSWER else 1
        points = BASE_POINTS * multiplier * (1 + current_streak // STREAK_STEP)
        return int(round(points * capitalization_penalty))

    def get_state_snapshot(self) -> StateSnapshot:
        now = self.clock()
        return self.state_manager.create_snapshot(
            word=self.current.word if self.current else None,
            quiz_mode=self.current.quiz_mode if self.current else None,
            session_elapsed=now - self.session.started_at if self.session else 0.0,
            word_elapsed=now - self._word_started_at if self.current else 0.0,
            last_answer_correct=self._last_answer_correct,
        )

    def time_remaining(self) -> Optional[float]:
        if self.session is None:
            return None
        return max(0.0, self.session.time_limit * 60 - (self.clock() - self.session.started_at))

    def _build_context(self) -> ChallengeContext:
        session = self.session
        return ChallengeContext(
            words_completed=session.words_completed,
            current_streak=session.current_streak,
            target_words=session.target_words,
            word_progress=self.word_progress,
            language_code=session.language_code,
            time_remaining=self.time_remaining(),
            module_id=session.module_id,
        )

    def _present(self, result: ChallengeResult) -> None:
        self.current = result
        self._word_started_at = self.clock()
        self.state_manager.transition(SessionState.WORD_PRESENTED)

    @staticmethod
    def _update_counters(session: ChallengeSession, correct: bool) -> None:
        if correct:
            session.correct_answers += 1
            session.words_completed += 1
            session.current_streak += 1
            session.best_streak = max(session.best_streak, session.current_streak)
        else:
            session.incorrect_answers += 1
            session.current_streak = 0

    def _completion_reason(self, session: ChallengeSession, continues: bool) -> Optional[str]:
        if session.words_completed >= session.target_words:
            return REASON_TARGET_REACHED
        if self.orchestrator.has_session_failed(session.session_id):
            return REASON_FAILED
        if not continues:
            return REASON_STOPPED
        if session.session_id == "quick-dash" and self.time_remaining() <= 0:
            return REASON_TIME_EXPIRED
        return None

    async def _next_word(self) -> tuple:
        """Next word from the adapter, or a plain catalog word if the adapter fails."""
        session_type = self.session.session_id
        try:
            return await self.orchestrator.get_next_word(session_type, self._build_context()), False
        except (EmptyResult, AdapterCallError) as e:
            if self.session is None:
                return None, False
            logger.warning(f"{session_type} could not provide a word, advancing without it: {e}")
            monitoring.fallback_words.labels(session_type=session_type).inc()
            return self._fallback_word(), True

    def _session_words(self) -> List[Word]:
        session = self.session
        if session.module_id:
            return self.catalog.get_words_for_module(session.language_code, session.module_id)
        return self.catalog.get_words_for_language(session.language_code)

    def _fallback_word(self) -> Optional[ChallengeResult]:
        words = self._session_words()
        if not words:
            return None
        current = self.current.word if self.current else None
        candidates = [w for w in words if w != current] or words
        word = random.choice(candidates)
        module_words = [w for w in words if w.module_id == word.module_id]
        return ChallengeResult(
            word=word,
            quiz_mode=QuizMode.MULTIPLE_CHOICE,
            options=generate_multiple_choice_options(word, module_words, words),
            metadata={"fallback": True},
        )

    def _was_abandoned(self, session: ChallengeSession, outcome: AnswerOutcome) -> bool:
        """True when the session was abandoned while this answer was awaiting an adapter."""
        if self.session is session:
            return False
        logger.info(f"{session.session_id} session was abandoned while an answer was being recorded")
        outcome.session_completed = True
        outcome.summary = self.last_summary
        return True

    def _complete(self, reason: str) -> SessionSummary:
        session = self.session
        summary = SessionSummary(
            session_type=session.session_id,
            language_code=session.language_code,
            words_completed=session.words_completed,
            correct_answers=session.correct_answers,
            incorrect_answers=session.incorrect_answers,
            best_streak=session.best_streak,
            score=session.score,
            accuracy=session.accuracy,
            duration=self.clock() - session.started_at,
            reason=reason,
        )
        if reason != REASON_ABANDONED:
            self.state_manager.transition(SessionState.COMPLETED)
        self.orchestrator.reset_session(session.session_id)
        monitoring.sessions_completed.labels(session_type=session.session_id, reason=reason).inc()
        logger.info(
            f"{session.session_id} session ended ({reason}): {session.words_completed}/{session.target_words} "
            f"words, score {session.score}"
        )
        self.last_summary = summary
        self._discard()
        return summary

    def _discard(self) -> None:
        self.session = None
        self.current = None
        self.mode_handler = None
        self.state_manager.reset()
