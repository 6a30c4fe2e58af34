"""Models for challenge sessions and adapter exchange."""
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from vocabquest.models.catalog_models import Word, WordProgress


class QuizMode(Enum):
    """Question formats a challenge can present."""
    MULTIPLE_CHOICE = "multiple-choice"
    LETTER_SCRAMBLE = "letter-scramble"
    OPEN_ANSWER = "open-answer"
    FILL_IN_THE_BLANK = "fill-in-the-blank"
    CONTEXTUAL_ANALYSIS = "contextual-analysis"
    USAGE_EXAMPLE = "usage-example"
    SYNONYM_ANTONYM = "synonym-antonym"


# Deep-dive modes that are presented as multiple choice
ENHANCED_QUIZ_MODES = (
    QuizMode.CONTEXTUAL_ANALYSIS,
    QuizMode.USAGE_EXAMPLE,
    QuizMode.SYNONYM_ANTONYM,
)


ProgressMap = Dict[str, WordProgress]


@dataclass
class ChallengeConfig:
    """Configuration handed to an adapter's initialize()."""
    language_code: str
    word_progress: ProgressMap
    target_words: int
    time_limit: int  # minutes
    difficulty: int
    all_words: List[Word] = field(default_factory=list)
    module_id: Optional[str] = None


@dataclass
class ChallengeContext:
    """Per-word context handed to an adapter's get_next_word()."""
    words_completed: int
    current_streak: int
    target_words: int
    word_progress: ProgressMap
    language_code: str
    time_remaining: Optional[float] = None  # seconds
    module_id: Optional[str] = None
    all_words: List[Word] = field(default_factory=list)


@dataclass
class ChallengeResult:
    """A word chosen by an adapter, ready to be presented."""
    word: Optional[Word]
    quiz_mode: QuizMode = QuizMode.MULTIPLE_CHOICE
    options: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CompletionResult:
    """Structured answer to record_completion()."""
    session_continues: bool
    session_failed: bool = False
    session_completed: bool = False


@dataclass
class ServiceHealth:
    """Runtime telemetry for one adapter."""
    service_name: str
    is_available: bool = True
    response_time: float = 0.0  # milliseconds, running average
    error_rate: float = 0.0
    last_call: Optional[datetime] = None
    success_count: int = 0
    error_count: int = 0


@dataclass
class SessionBonuses:
    """Mode-specific points awarded for a correct answer."""
    time_bonus: int = 0
    streak_bonus: int = 0
    context_bonus: int = 0
    perfect_recall_bonus: int = 0

    @property
    def total(self) -> int:
        return self.time_bonus + self.streak_bonus + self.context_bonus + self.perfect_recall_bonus


@dataclass
class ChallengeSession:
    """Transient state of one running challenge."""
    session_id: str
    language_code: str
    target_words: int
    time_limit: int
    difficulty: int
    module_id: Optional[str] = None
    words_completed: int = 0
    current_streak: int = 0
    best_streak: int = 0
    score: int = 0
    correct_answers: int = 0
    incorrect_answers: int = 0
    started_at: float = field(default_factory=time.monotonic)

    @property
    def accuracy(self) -> float:
        answered = self.correct_answers + self.incorrect_answers
        return self.correct_answers / answered if answered else 0.0
