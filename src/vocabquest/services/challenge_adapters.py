"""Challenge modes behind one uniform adapter interface."""
import logging
import random
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Union

from vocabquest.config import settings
from vocabquest.models.catalog_models import Word
from vocabquest.models.challenge_models import (
    ENHANCED_QUIZ_MODES,
    ChallengeConfig,
    ChallengeContext,
    ChallengeResult,
    CompletionResult,
    QuizMode,
)
from vocabquest.services import option_generation
from vocabquest.services.id_compatibility_service import progress_for_word
from vocabquest.services.mastery_service import (
    QUIZ_CONTEXT_BOSS_BATTLE,
    QUIZ_CONTEXT_HIGH_PRESSURE,
    QUIZ_CONTEXT_NORMAL,
    generate_quiz_mode_for_mastery,
    get_word_mastery_tier,
    select_quiz_mode,
)
from vocabquest.services.session.mode_handler import extract_question_answer
from vocabquest.services.word_selection import (
    DIFFICULTY_ADAPTIVE,
    DIFFICULTY_EASY,
    DIFFICULTY_HARD,
    DIFFICULTY_MEDIUM,
    SelectionCriteria,
    SelectionResult,
    WordSelectionManager,
)

logger = logging.getLogger(__name__)

STREAK_CHALLENGE = "streak-challenge"
BOSS_BATTLE = "boss-battle"
PRECISION_MODE = "precision-mode"
QUICK_DASH = "quick-dash"
DEEP_DIVE = "deep-dive"
FILL_IN_THE_BLANK = "fill-in-the-blank"

# Above this XP a boss word uses the mastery-based boss formats
BOSS_WELL_KNOWN_XP = 100


class BaseChallengeAdapter(ABC):
    """Base class for all challenge modes.

    Subclasses implement get_next_word(); everything else has a sensible
    default. Adapters with a failure state also define has_session_failed().
    """

    session_type: str = ""

    def __init__(self, selection: Optional[WordSelectionManager] = None):
        self.selection = selection or WordSelectionManager()
        self.config: Optional[ChallengeConfig] = None

    async def initialize(self, config: ChallengeConfig) -> None:
        self.config = config
        self.selection.create_session(self.session_type)
        self._on_initialize(config)
        logger.info(
            f"Initialized {self.session_type} for {config.language_code}: "
            f"{len(config.all_words)} words, target {config.target_words}"
        )

    def _on_initialize(self, config: ChallengeConfig) -> None:
        """Hook for mode-specific state."""

    @abstractmethod
    async def get_next_word(self, context: ChallengeContext) -> ChallengeResult:
        """Choose the next word to present."""
        raise NotImplementedError("Subclasses must implement this method")

    def record_completion(
        self,
        word_id: str,
        correct: bool,
        time_spent: float,
        metadata: Optional[Dict] = None,
    ) -> Union[bool, CompletionResult]:
        return CompletionResult(session_continues=True)

    def reset(self) -> None:
        self.config = None
        self.selection.reset_session(self.session_type)
        self._on_reset()

    def _on_reset(self) -> None:
        """Hook for mode-specific state."""

    # Shared helpers

    def _require_config(self) -> ChallengeConfig:
        if self.config is None:
            raise RuntimeError(f"{self.session_type} must be initialized first")
        return self.config

    def _words(self, context: ChallengeContext) -> List[Word]:
        return list(context.all_words or self._require_config().all_words)

    def _select(self, context: ChallengeContext, criteria: SelectionCriteria) -> Optional[SelectionResult]:
        return self.selection.select_word(
            self._words(context),
            context.word_progress,
            criteria,
            session_id=self.session_type,
        )

    def _xp(self, context: ChallengeContext, word: Word) -> int:
        progress = progress_for_word(context.word_progress, word)
        return progress.xp if progress else 0

    def _options(
        self,
        word: Word,
        quiz_mode: QuizMode,
        words: List[Word],
        scramble_difficulty: str = "medium",
    ) -> List[str]:
        language_code = self._require_config().language_code
        _, answer = extract_question_answer(word, quiz_mode, language_code)

        if quiz_mode == QuizMode.MULTIPLE_CHOICE:
            module_words = [w for w in words if w.module_id == word.module_id]
            return option_generation.generate_multiple_choice_options(word, module_words, words)
        if quiz_mode == QuizMode.LETTER_SCRAMBLE:
            return option_generation.generate_scrambled_versions(answer, scramble_difficulty)
        if quiz_mode == QuizMode.FILL_IN_THE_BLANK:
            if answer == word.term:
                return option_generation.generate_fill_in_the_blank_options(word, words)
            return option_generation.generate_fill_in_the_blank_options(
                word, words, answer_of=lambda w: w.definition
            )
        return []

    def _result(
        self,
        word: Word,
        quiz_mode: QuizMode,
        context: ChallengeContext,
        metadata: Optional[Dict] = None,
        scramble_difficulty: str = "medium",
    ) -> ChallengeResult:
        # A blank needs a sentence to sit in
        if quiz_mode == QuizMode.FILL_IN_THE_BLANK and not word.has_context:
            quiz_mode = QuizMode.MULTIPLE_CHOICE
        words = self._words(context)
        return ChallengeResult(
            word=word,
            quiz_mode=quiz_mode,
            options=self._options(word, quiz_mode, words, scramble_difficulty),
            metadata=metadata or {},
        )


class StreakChallengeAdapter(BaseChallengeAdapter):
    """Answer as many words in a row as possible; unseen words come first."""

    session_type = STREAK_CHALLENGE

    async def get_next_word(self, context: ChallengeContext) -> ChallengeResult:
        streak = context.current_streak
        if streak < 5:
            difficulty, tier = DIFFICULTY_EASY, 1
        elif streak < 15:
            difficulty, tier = DIFFICULTY_MEDIUM, 3
        else:
            difficulty, tier = DIFFICULTY_HARD, 5

        selected = self._select(context, SelectionCriteria(
            difficulty=difficulty,
            prefer_unseen=True,
            prioritize_struggling=difficulty == DIFFICULTY_EASY,
        ))
        if selected is None:
            return ChallengeResult(word=None)

        quiz_mode = generate_quiz_mode_for_mastery(tier)
        return self._result(selected.word, quiz_mode, context, {
            "difficulty": difficulty,
            "tier": tier,
            "reasoning": [selected.reason],
        })

    def record_completion(self, word_id, correct, time_spent, metadata=None) -> bool:
        # The streak itself is kept by the session; this mode never ends early
        return True


class BossBattleAdapter(BaseChallengeAdapter):
    """A long run that gets harder towards a final word; lives limit mistakes."""

    session_type = BOSS_BATTLE

    def __init__(self, selection: Optional[WordSelectionManager] = None, lives: Optional[int] = None):
        super().__init__(selection)
        self.max_lives = settings.challenge.boss_battle_lives if lives is None else lives
        self.lives = self.max_lives

    def _on_initialize(self, config: ChallengeConfig) -> None:
        self.lives = self.max_lives

    def _on_reset(self) -> None:
        self.lives = self.max_lives

    @staticmethod
    def get_boss_phase(progress_ratio: float, is_final_word: bool) -> str:
        if is_final_word:
            return "final-boss"
        if progress_ratio < 0.3:
            return "early-boss"
        if progress_ratio < 0.7:
            return "mid-boss"
        return "late-boss"

    @staticmethod
    def generate_boss_quiz_mode(difficulty_level: float, is_final_word: bool) -> QuizMode:
        if is_final_word:
            return QuizMode.OPEN_ANSWER
        rand = random.random()
        if difficulty_level >= 85:
            return QuizMode.OPEN_ANSWER if rand < 0.7 else QuizMode.FILL_IN_THE_BLANK
        if difficulty_level >= 65:
            return QuizMode.FILL_IN_THE_BLANK if rand < 0.5 else QuizMode.LETTER_SCRAMBLE
        return QuizMode.LETTER_SCRAMBLE if rand < 0.6 else QuizMode.MULTIPLE_CHOICE

    async def get_next_word(self, context: ChallengeContext) -> ChallengeResult:
        target = max(1, context.target_words)
        progress_ratio = context.words_completed / target
        is_final_word = context.words_completed >= target - 1
        phase = self.get_boss_phase(progress_ratio, is_final_word)
        difficulty = DIFFICULTY_MEDIUM if progress_ratio < 0.3 else DIFFICULTY_HARD

        selected = self._select(context, SelectionCriteria(difficulty=difficulty))
        if selected is None:
            logger.error(f"No words available for boss battle in phase {phase}")
            return ChallengeResult(word=None, metadata={"boss_phase": phase})

        quiz_mode = self.generate_boss_quiz_mode(progress_ratio * 100, is_final_word)
        if not is_final_word and self._xp(context, selected.word) > BOSS_WELL_KNOWN_XP:
            quiz_mode = select_quiz_mode(selected.word, context.word_progress, QUIZ_CONTEXT_BOSS_BATTLE)
        return self._result(selected.word, quiz_mode, context, {
            "boss_phase": phase,
            "is_final_word": is_final_word,
            "lives_remaining": self.lives,
            "reasoning": [selected.reason],
        }, scramble_difficulty="boss")

    def record_completion(self, word_id, correct, time_spent, metadata=None) -> CompletionResult:
        if not correct:
            self.lives = max(0, self.lives - 1)
            logger.info(f"Boss battle lost a life on {word_id}, {self.lives} left")
        failed = self.has_session_failed()
        return CompletionResult(session_continues=not failed, session_failed=failed)

    def has_session_failed(self) -> bool:
        return self.lives <= 0


class PrecisionModeAdapter(BaseChallengeAdapter):
    """No mistakes allowed; words the learner gets wrong most come first."""

    session_type = PRECISION_MODE

    def __init__(self, selection: Optional[WordSelectionManager] = None):
        super().__init__(selection)
        self.failed = False

    def _on_initialize(self, config: ChallengeConfig) -> None:
        self.failed = False

    def _on_reset(self) -> None:
        self.failed = False

    async def get_next_word(self, context: ChallengeContext) -> ChallengeResult:
        selected = self._select(context, SelectionCriteria(
            difficulty=DIFFICULTY_EASY,
            prioritize_low_accuracy=True,
        ))
        if selected is None:
            return ChallengeResult(word=None)

        tier = min(2, get_word_mastery_tier(self._xp(context, selected.word)))
        quiz_mode = generate_quiz_mode_for_mastery(tier, allow_open_answer=False)
        return self._result(selected.word, quiz_mode, context, {
            "reasoning": [selected.reason],
            "mistakes_allowed": 0,
        }, scramble_difficulty="easy")

    def record_completion(self, word_id, correct, time_spent, metadata=None) -> CompletionResult:
        if not correct:
            self.failed = True
            error_type = (metadata or {}).get("error_type", "incorrect")
            logger.info(f"Precision mode ended on {word_id} ({error_type})")
        return CompletionResult(session_continues=correct, session_failed=not correct)

    def has_session_failed(self) -> bool:
        return self.failed


class QuickDashAdapter(BaseChallengeAdapter):
    """As many words as possible inside a time limit."""

    session_type = QUICK_DASH

    def __init__(self, selection: Optional[WordSelectionManager] = None):
        super().__init__(selection)
        self.time_limit_seconds = 0.0
        self.answer_times: List[float] = []

    def _on_initialize(self, config: ChallengeConfig) -> None:
        self.time_limit_seconds = config.time_limit * 60
        self.answer_times = []

    def _on_reset(self) -> None:
        self.time_limit_seconds = 0.0
        self.answer_times = []

    def calculate_time_pressure(self, time_remaining: float, words_completed: int, target_words: int) -> float:
        """0 means plenty of time, 1 means out of time relative to progress."""
        if self.time_limit_seconds <= 0:
            return 0.0
        time_ratio = max(0.0, time_remaining) / self.time_limit_seconds
        progress_ratio = words_completed / max(1, target_words)
        if progress_ratio > time_ratio:
            return min(1.0, (progress_ratio - time_ratio) * 2)
        return max(0.0, 1 - time_ratio)

    @staticmethod
    def calculate_time_allocation(time_remaining: float, words_left: int) -> float:
        return round(max(0.0, time_remaining) / max(1, words_left), 1)

    async def get_next_word(self, context: ChallengeContext) -> ChallengeResult:
        time_remaining = context.time_remaining
        if time_remaining is None:
            time_remaining = self.time_limit_seconds
        pressure = self.calculate_time_pressure(time_remaining, context.words_completed, context.target_words)

        if pressure > 0.7 or time_remaining < 60:
            difficulty = DIFFICULTY_EASY
        elif pressure > 0.4:
            difficulty = DIFFICULTY_MEDIUM
        else:
            difficulty = DIFFICULTY_HARD

        selected = self._select(context, SelectionCriteria(difficulty=difficulty))
        if selected is None:
            return ChallengeResult(word=None)

        if difficulty == DIFFICULTY_EASY:
            quiz_mode = QuizMode.MULTIPLE_CHOICE
        else:
            quiz_context = QUIZ_CONTEXT_HIGH_PRESSURE if pressure > 0.4 else QUIZ_CONTEXT_NORMAL
            quiz_mode = select_quiz_mode(selected.word, context.word_progress, quiz_context, allow_open_answer=False)

        return self._result(selected.word, quiz_mode, context, {
            "time_pressure": round(pressure, 2),
            "time_allocated": self.calculate_time_allocation(
                time_remaining, context.target_words - context.words_completed
            ),
            "reasoning": [selected.reason],
        }, scramble_difficulty="easy")

    def record_completion(self, word_id, correct, time_spent, metadata=None) -> CompletionResult:
        self.answer_times.append(time_spent)
        return CompletionResult(session_continues=True)

    @property
    def average_answer_time(self) -> float:
        return sum(self.answer_times) / len(self.answer_times) if self.answer_times else 0.0


class DeepDiveAdapter(BaseChallengeAdapter):
    """Slow, context-heavy practice with sentence-based question formats."""

    session_type = DEEP_DIVE

    # Chance that a word with a sentence gets one of the context formats
    ENHANCED_MODE_PROBABILITY = 0.6

    async def get_next_word(self, context: ChallengeContext) -> ChallengeResult:
        selected = self._select(context, SelectionCriteria(
            difficulty=DIFFICULTY_ADAPTIVE,
            prefer_context=True,
        ))
        if selected is None:
            return ChallengeResult(word=None)

        word = selected.word
        if word.has_context and random.random() < self.ENHANCED_MODE_PROBABILITY:
            original_mode = random.choice(ENHANCED_QUIZ_MODES)
        else:
            original_mode = select_quiz_mode(word, context.word_progress)

        # Context formats are presented as multiple choice
        quiz_mode = QuizMode.MULTIPLE_CHOICE if original_mode in ENHANCED_QUIZ_MODES else original_mode
        return self._result(word, quiz_mode, context, {
            "original_quiz_mode": original_mode.value,
            "enhancement_level": "advanced" if original_mode in ENHANCED_QUIZ_MODES else "standard",
            "reasoning": [selected.reason],
        })


class FillInTheBlankAdapter(BaseChallengeAdapter):
    """Every question is a blank in the word's example sentence."""

    session_type = FILL_IN_THE_BLANK

    async def get_next_word(self, context: ChallengeContext) -> ChallengeResult:
        selected = self._select(context, SelectionCriteria(require_context=True))
        if selected is None:
            logger.warning("No words with a context sentence for fill-in-the-blank")
            return ChallengeResult(word=None, quiz_mode=QuizMode.FILL_IN_THE_BLANK)

        return self._result(selected.word, QuizMode.FILL_IN_THE_BLANK, context, {
            "reasoning": [selected.reason],
        })


def create_default_adapters() -> Dict[str, BaseChallengeAdapter]:
    """One instance of each built-in mode keyed by session type."""
    adapters = [
        StreakChallengeAdapter(),
        BossBattleAdapter(),
        PrecisionModeAdapter(),
        QuickDashAdapter(),
        DeepDiveAdapter(),
        FillInTheBlankAdapter(),
    ]
    return {adapter.session_type: adapter for adapter in adapters}
