"""Word selection shared by all challenge adapters."""
import logging
import random
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Dict, List, Optional, Sequence

from vocabquest.config import settings
from vocabquest.models.catalog_models import Word, WordProgress
from vocabquest.services.id_compatibility_service import effective_id_for, progress_for_word
from vocabquest.services.mastery_service import get_current_mastery

logger = logging.getLogger(__name__)

DIFFICULTY_EASY = "easy"
DIFFICULTY_MEDIUM = "medium"
DIFFICULTY_HARD = "hard"
DIFFICULTY_ADAPTIVE = "adaptive"

# Used-word sets are trimmed once they grow past this size
MAX_USED_WORDS = 100
USED_WORDS_TRIM = 20


@dataclass
class SelectionCriteria:
    """What a challenge wants from the next word."""
    difficulty: str = DIFFICULTY_ADAPTIVE
    exclude_word_ids: Sequence[str] = ()
    min_mastery: Optional[float] = None
    max_mastery: Optional[float] = None
    require_context: bool = False
    prioritize_struggling: bool = False
    prioritize_low_accuracy: bool = False
    prefer_unseen: bool = False
    prefer_context: bool = False
    top_candidates_count: int = 3


@dataclass
class SelectionResult:
    word: Word
    reason: str
    mastery: float
    pool_size: int
    algorithm: str
    alternatives: List[Word] = field(default_factory=list)


@dataclass
class _Candidate:
    word: Word
    mastery: float
    progress: Optional[WordProgress]
    score: float = 0.0


@dataclass
class SessionTracker:
    """Words already shown in one session."""
    session_id: str
    max_recent: int
    used: "OrderedDict[str, None]" = field(default_factory=OrderedDict)
    recent: List[str] = field(default_factory=list)
    started_at: float = field(default_factory=time.monotonic)

    def mark_used(self, word_key: str) -> None:
        self.used.pop(word_key, None)
        self.used[word_key] = None
        self.recent = [word_key] + [key for key in self.recent if key != word_key]
        del self.recent[self.max_recent:]
        if len(self.used) > MAX_USED_WORDS:
            for _ in range(USED_WORDS_TRIM):
                self.used.popitem(last=False)


def _hours_since(timestamp: Optional[str], now: datetime) -> Optional[float]:
    if not timestamp:
        return None
    try:
        practiced = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except ValueError:
        return None
    if practiced.tzinfo is None:
        practiced = practiced.replace(tzinfo=UTC)
    return (now - practiced).total_seconds() / 3600


class WordSelectionManager:
    """Scores candidate words and picks one, avoiding repeats within a session.

    Scores are priorities: lower is picked first. The pick is a weighted draw
    among the best few candidates so sessions do not replay in the same order.
    """

    def __init__(self, max_recent: Optional[int] = None):
        self.max_recent = settings.challenge.recent_words_window if max_recent is None else max_recent
        self._trackers: Dict[str, SessionTracker] = {}

    def create_session(self, session_id: str) -> SessionTracker:
        tracker = SessionTracker(session_id=session_id, max_recent=self.max_recent)
        self._trackers[session_id] = tracker
        logger.debug(f"Created word selection session {session_id}")
        return tracker

    def get_session(self, session_id: str) -> Optional[SessionTracker]:
        return self._trackers.get(session_id)

    def reset_session(self, session_id: str) -> None:
        if self._trackers.pop(session_id, None) is not None:
            logger.debug(f"Reset word selection session {session_id}")

    def mark_word_as_used(self, session_id: str, word: Word) -> None:
        tracker = self._trackers.get(session_id) or self.create_session(session_id)
        tracker.mark_used(effective_id_for(word))

    def get_session_stats(self, session_id: str) -> Optional[Dict[str, float]]:
        tracker = self._trackers.get(session_id)
        if tracker is None:
            return None
        return {
            "used_words": len(tracker.used),
            "recent_words": len(tracker.recent),
            "session_age_minutes": (time.monotonic() - tracker.started_at) / 60,
        }

    def select_word(
        self,
        words: Sequence[Word],
        word_progress: Dict[str, WordProgress],
        criteria: SelectionCriteria,
        session_id: Optional[str] = None,
    ) -> Optional[SelectionResult]:
        """Pick the next word from `words`, or None if no word qualifies."""
        if not words:
            logger.warning("No words available for selection")
            return None

        tracker = None
        if session_id:
            tracker = self._trackers.get(session_id) or self.create_session(session_id)

        now = datetime.now(UTC)
        candidates = []
        for word in words:
            record = progress_for_word(word_progress, word)
            candidates.append(_Candidate(word, get_current_mastery(record, now), record))

        excluded = set(criteria.exclude_word_ids)
        if tracker:
            excluded.update(tracker.recent)
            excluded.update(tracker.used)

        pool = self._filter(candidates, criteria, excluded)
        if not pool and tracker:
            logger.debug("No candidates left, allowing previously used words")
            pool = self._filter(candidates, criteria, set(criteria.exclude_word_ids) | set(tracker.recent[:3]))
        if not pool:
            pool = self._filter(candidates, criteria, set())
        if not pool:
            logger.warning(f"No word satisfies the selection criteria ({len(words)} words)")
            return None

        for candidate in pool:
            candidate.score = self._score(candidate, criteria, now)
        pool.sort(key=lambda c: c.score)

        top_count = min(criteria.top_candidates_count, max(1, int(len(pool) * 0.2)))
        top = pool[:top_count]
        chosen = top[self._weighted_index(len(top))]

        if session_id:
            self.mark_word_as_used(session_id, chosen.word)

        logger.debug(f"Selected word {chosen.word.id} (mastery {chosen.mastery:.1f}, pool {len(pool)})")
        return SelectionResult(
            word=chosen.word,
            reason=self._reason(chosen.mastery),
            mastery=chosen.mastery,
            pool_size=len(pool),
            algorithm=self._algorithm_name(criteria),
            alternatives=[c.word for c in top[:5]],
        )

    def _filter(
        self,
        candidates: List[_Candidate],
        criteria: SelectionCriteria,
        excluded: set,
    ) -> List[_Candidate]:
        pool = []
        for candidate in candidates:
            if effective_id_for(candidate.word) in excluded or candidate.word.id in excluded:
                continue
            if criteria.require_context and not candidate.word.has_context:
                continue
            if criteria.min_mastery is not None and candidate.mastery < criteria.min_mastery:
                continue
            if criteria.max_mastery is not None and candidate.mastery > criteria.max_mastery:
                continue
            pool.append(candidate)
        return pool

    def _score(self, candidate: _Candidate, criteria: SelectionCriteria, now: datetime) -> float:
        progress = candidate.progress

        if criteria.prioritize_low_accuracy:
            score = progress.accuracy * 100 if progress else 0.0
        else:
            score = candidate.mastery

        if criteria.prioritize_struggling and candidate.mastery < 30:
            score *= 0.1

        if progress:
            attempts = progress.times_correct + progress.times_incorrect
            if attempts and progress.times_incorrect / attempts > 0.5:
                score *= 0.2
            hours = _hours_since(progress.last_practiced, now)
            if hours is not None and hours > 24:
                score *= 0.5

        # Difficulty buckets shift whole groups of words behind the preferred band
        if criteria.difficulty == DIFFICULTY_EASY and candidate.mastery >= 50:
            score += 100
        elif criteria.difficulty == DIFFICULTY_MEDIUM and not 20 <= candidate.mastery <= 80:
            score += 50
        elif criteria.difficulty == DIFFICULTY_HARD:
            score = (100 - candidate.mastery) if candidate.mastery >= 50 else 200 - candidate.mastery

        if criteria.prefer_context and not candidate.word.has_context:
            score += 150
        if criteria.prefer_unseen and progress is None:
            score -= 1000

        return score

    @staticmethod
    def _weighted_index(count: int) -> int:
        if count == 1:
            return 0
        weights = [0.5 ** index for index in range(count)]
        return random.choices(range(count), weights=weights)[0]

    @staticmethod
    def _reason(mastery: float) -> str:
        if mastery < 30:
            return "Struggling word - needs attention"
        if mastery < 50:
            return "Learning word - building familiarity"
        if mastery < 80:
            return "Practicing word - reinforcing knowledge"
        return "Mastered word - maintenance review"

    @staticmethod
    def _algorithm_name(criteria: SelectionCriteria) -> str:
        if criteria.prioritize_low_accuracy:
            return "accuracy-priority"
        if criteria.prioritize_struggling:
            return "struggle-priority"
        if criteria.difficulty == DIFFICULTY_HARD:
            return "difficulty-adaptive"
        return "mastery-balanced"
