"""Writes learner progress after each answer."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from vocabquest.models.catalog_models import Word, WordDirection, WordProgress, utc_now_iso
from vocabquest.models.challenge_models import QuizMode
from vocabquest.services.id_compatibility_service import WordIdCompatibilityService, effective_id_for
from vocabquest.services.mastery_service import calculate_xp_gain, get_current_mastery
from vocabquest.services.session.mode_handler import ModeHandler, is_unidirectional_mode
from vocabquest.services.storage_service import ProgressStore

logger = logging.getLogger(__name__)


@dataclass
class ProgressUpdate:
    """Result of recording one answer."""
    progress: Dict[str, WordProgress]
    record: WordProgress
    mastery_before: float
    xp_gained: int
    saved: bool


@dataclass
class WordTiming:
    time_spent: float  # seconds
    performance_score: float


@dataclass
class FeedbackInfo:
    original_word: str
    correct_answer: str
    context: str


class ProgressTracker:
    """Decay-aware mastery reads and effective-id progress writes."""

    def __init__(self, progress_store: ProgressStore, compatibility: WordIdCompatibilityService):
        self.progress_store = progress_store
        self.compatibility = compatibility

    def calculate_word_mastery(
        self,
        word_progress: Dict[str, WordProgress],
        word_id: str,
        language_code: str,
        now: Optional[datetime] = None,
    ) -> float:
        record = self.compatibility.get_word_progress(word_progress, word_id, language_code)
        return get_current_mastery(record, now)

    def record_answer(
        self,
        language_code: str,
        word_progress: Dict[str, WordProgress],
        word: Word,
        correct: bool,
        quiz_mode: QuizMode,
    ) -> ProgressUpdate:
        """Update and persist the word's record under its effective id.

        Stored XP only grows: the gain is computed from the decayed mastery
        but added to the stored value.
        """
        word_id = effective_id_for(word)
        existing = self.compatibility.get_word_progress(word_progress, word_id, language_code)
        mastery = get_current_mastery(existing)
        gain = calculate_xp_gain(mastery, correct, quiz_mode)
        now = utc_now_iso()

        record = WordProgress(
            word_id=word_id,
            xp=(existing.xp if existing else 0) + gain,
            last_practiced=now,
            times_correct=(existing.times_correct if existing else 0) + (1 if correct else 0),
            times_incorrect=(existing.times_incorrect if existing else 0) + (0 if correct else 1),
            version=existing.version if existing else None,
            directions=self._update_directions(existing, word, quiz_mode, correct, now),
        )

        updated = self.compatibility.update_word_progress(word_progress, word_id, record, language_code)
        saved = self.progress_store.save(language_code, updated)
        if not saved:
            logger.warning(f"Progress for {record.word_id} kept in memory only, save failed")

        logger.debug(
            f"Recorded {'correct' if correct else 'incorrect'} answer for {record.word_id}: "
            f"+{gain} xp (mastery {mastery:.1f})"
        )
        return ProgressUpdate(progress=updated, record=record, mastery_before=mastery, xp_gained=gain, saved=saved)

    @staticmethod
    def _update_directions(
        existing: Optional[WordProgress],
        word: Word,
        quiz_mode: QuizMode,
        correct: bool,
        now: str,
    ) -> Dict[str, Dict]:
        directions = {key: dict(value) for key, value in ((existing.directions if existing else None) or {}).items()}
        if is_unidirectional_mode(quiz_mode):
            direction = WordDirection.DEFINITION_TO_TERM
        else:
            direction = word.direction or WordDirection.TERM_TO_DEFINITION

        entry = directions.setdefault(direction.value, {"timesCorrect": 0, "timesIncorrect": 0})
        if correct:
            entry["timesCorrect"] = entry.get("timesCorrect", 0) + 1
        else:
            entry["timesIncorrect"] = entry.get("timesIncorrect", 0) + 1
        entry["lastPracticed"] = now
        return directions

    @staticmethod
    def track_word_timing(started_at: float, finished_at: float) -> WordTiming:
        """Faster answers score higher: 100 at once, 0 after ten seconds."""
        time_spent = max(0.0, finished_at - started_at)
        return WordTiming(time_spent=time_spent, performance_score=max(0.0, min(100.0, 100 - time_spent * 10)))

    @staticmethod
    def prepare_feedback(word: Word, quiz_mode: QuizMode, mode_handler: ModeHandler) -> FeedbackInfo:
        return FeedbackInfo(
            original_word=mode_handler.get_quiz_question(word, quiz_mode),
            correct_answer=mode_handler.get_quiz_answer(word, quiz_mode),
            context=word.context.sentence if word.has_context else "",
        )
