"""XP tiers, read-time mastery decay and quiz mode selection."""
import logging
import math
import random
from datetime import UTC, datetime
from typing import Dict, Optional

from vocabquest.models.catalog_models import Word, WordProgress
from vocabquest.models.challenge_models import QuizMode
from vocabquest.services.id_compatibility_service import progress_for_word

logger = logging.getLogger(__name__)

# Mastery bands
MASTERY_BEGINNER = 0
MASTERY_FAMILIAR = 30
MASTERY_INTERMEDIATE = 60
MASTERY_ADVANCED = 80
MASTERY_MASTERED = 100

# Hours per decay interval for each band
DECAY_INTERVAL_HOURS = {
    MASTERY_BEGINNER: 4,
    MASTERY_FAMILIAR: 24,
    MASTERY_INTERMEDIATE: 72,
    MASTERY_ADVANCED: 168,
    MASTERY_MASTERED: 720,
}

QUIZ_CONTEXT_NORMAL = "normal"
QUIZ_CONTEXT_HIGH_PRESSURE = "high-pressure"
QUIZ_CONTEXT_BOSS_BATTLE = "boss-battle"


def get_word_mastery_tier(xp: int) -> int:
    """Map XP to a tier from 1 (new) to 5 (expert)."""
    if xp <= 20:
        return 1
    if xp <= 50:
        return 2
    if xp <= 100:
        return 3
    if xp <= 200:
        return 4
    return 5


def generate_quiz_mode_for_mastery(tier: int, allow_open_answer: bool = True) -> QuizMode:
    """Pick a quiz mode for a tier; harder modes get likelier as the tier grows."""
    rand = random.random()
    if tier <= 1:
        return QuizMode.MULTIPLE_CHOICE if rand < 0.8 else QuizMode.LETTER_SCRAMBLE
    if tier == 2:
        return QuizMode.MULTIPLE_CHOICE if rand < 0.6 else QuizMode.LETTER_SCRAMBLE
    if tier == 3:
        if rand < 0.4:
            return QuizMode.MULTIPLE_CHOICE
        if rand < 0.7:
            return QuizMode.LETTER_SCRAMBLE
        return QuizMode.OPEN_ANSWER if allow_open_answer else QuizMode.LETTER_SCRAMBLE
    if tier == 4:
        if rand < 0.2:
            return QuizMode.MULTIPLE_CHOICE
        if rand < 0.4:
            return QuizMode.LETTER_SCRAMBLE
        if rand < 0.7:
            return QuizMode.OPEN_ANSWER if allow_open_answer else QuizMode.FILL_IN_THE_BLANK
        return QuizMode.FILL_IN_THE_BLANK
    if rand < 0.1:
        return QuizMode.MULTIPLE_CHOICE
    if rand < 0.2:
        return QuizMode.LETTER_SCRAMBLE
    if rand < 0.5:
        return QuizMode.OPEN_ANSWER if allow_open_answer else QuizMode.FILL_IN_THE_BLANK
    return QuizMode.FILL_IN_THE_BLANK


def select_quiz_mode(
    word: Word,
    word_progress: Dict[str, WordProgress],
    context: str = QUIZ_CONTEXT_NORMAL,
    allow_open_answer: bool = True,
) -> QuizMode:
    """Mastery-based quiz mode with simple situational modifiers."""
    progress = progress_for_word(word_progress, word)
    xp = progress.xp if progress else 0
    tier = get_word_mastery_tier(xp)
    mode = generate_quiz_mode_for_mastery(tier, allow_open_answer)

    if context == QUIZ_CONTEXT_HIGH_PRESSURE and xp < 50:
        mode = QuizMode.MULTIPLE_CHOICE
    elif context == QUIZ_CONTEXT_BOSS_BATTLE and xp > 100:
        rand = random.random()
        if rand < 0.3:
            mode = QuizMode.FILL_IN_THE_BLANK
        elif rand < 0.6 and allow_open_answer:
            mode = QuizMode.OPEN_ANSWER

    # Fill-in-the-blank needs a sentence to blank out
    if mode == QuizMode.FILL_IN_THE_BLANK and not word.has_context:
        mode = QuizMode.MULTIPLE_CHOICE

    logger.debug(f"Quiz mode for {word.id}: {mode.value} (xp={xp}, tier={tier}, context={context})")
    return mode


def _parse_timestamp(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def calculate_mastery_decay(
    last_practiced: Optional[str],
    current_mastery: float,
    now: Optional[datetime] = None,
) -> float:
    """Return mastery after time-based decay.

    Decay is a read transform only: the stored XP is never rewritten with the
    decayed value. Each full interval without practice keeps (1 - rate) of
    the mastery, so a word practiced within the current interval is unchanged.
    """
    if not last_practiced or current_mastery <= 0:
        return current_mastery

    practiced_at = _parse_timestamp(last_practiced)
    if practiced_at is None:
        logger.warning(f"Unparseable lastPracticed value: {last_practiced}")
        return current_mastery

    now = now or datetime.now(UTC)
    hours_since = max(0.0, (now - practiced_at).total_seconds() / 3600)

    if current_mastery >= MASTERY_ADVANCED:
        decay_rate = 0.1
    elif current_mastery >= MASTERY_INTERMEDIATE:
        decay_rate = 0.15
    else:
        decay_rate = 0.2

    if current_mastery >= MASTERY_MASTERED:
        interval = DECAY_INTERVAL_HOURS[MASTERY_MASTERED]
    elif current_mastery >= MASTERY_ADVANCED:
        interval = DECAY_INTERVAL_HOURS[MASTERY_ADVANCED]
    elif current_mastery >= MASTERY_INTERMEDIATE:
        interval = DECAY_INTERVAL_HOURS[MASTERY_INTERMEDIATE]
    elif current_mastery >= MASTERY_FAMILIAR:
        interval = DECAY_INTERVAL_HOURS[MASTERY_FAMILIAR]
    else:
        interval = DECAY_INTERVAL_HOURS[MASTERY_BEGINNER]

    intervals = math.floor(hours_since / interval)
    return max(float(MASTERY_BEGINNER), current_mastery * (1 - decay_rate) ** intervals)


def get_current_mastery(progress: Optional[WordProgress], now: Optional[datetime] = None) -> float:
    """Decay-aware mastery of a stored record (0 for unseen words)."""
    if progress is None:
        return 0.0
    return calculate_mastery_decay(progress.last_practiced, progress.xp, now)


def calculate_xp_gain(current_mastery: float, correct: bool, quiz_mode: QuizMode) -> int:
    """XP earned for one answer; wrong answers earn nothing and never subtract."""
    if not correct:
        return 0

    base_gain = 15 if quiz_mode == QuizMode.OPEN_ANSWER else 10
    if current_mastery < 50:
        factor = 1.2
    elif current_mastery < 70:
        factor = 1.0
    elif current_mastery < 90:
        factor = 0.7
    else:
        factor = 0.3
    return max(1, int(base_gain * factor))


def should_switch_quiz_mode(current_mastery: float, current_mode: QuizMode) -> bool:
    """Multiple choice graduates at 50; other modes fall back below 40."""
    if current_mode == QuizMode.MULTIPLE_CHOICE:
        return current_mastery >= 50
    return current_mastery < 40


def is_word_learned(current_mastery: float) -> bool:
    return current_mastery >= 70


def is_word_mastered(current_mastery: float) -> bool:
    return current_mastery >= 90
