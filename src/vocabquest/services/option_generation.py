"""Answer options for multiple choice, letter scramble and fill-in-the-blank."""
import logging
import random
from typing import Callable, List, Optional, Sequence

from vocabquest.config import settings
from vocabquest.models.catalog_models import Word

logger = logging.getLogger(__name__)

# Share of characters moved for each scramble difficulty
SCRAMBLE_INTENSITY = {
    "easy": 0.3,
    "medium": 0.6,
    "hard": 0.9,
    "boss": 0.95,
}


def _term(word: Word) -> str:
    return word.term


def _key(word: Word) -> tuple:
    return word.module_id, word.id


def _collect_distractors(
    word: Word,
    candidates: Sequence[Word],
    correct: str,
    needed: int,
    answer_of: Callable[[Word], str],
    taken: List[str],
) -> None:
    for candidate in candidates:
        if len(taken) >= needed:
            return
        if _key(candidate) == _key(word):
            continue
        answer = answer_of(candidate)
        if answer and answer != correct and answer not in taken:
            taken.append(answer)


def generate_multiple_choice_options(
    word: Word,
    module_words: Sequence[Word],
    all_words: Optional[Sequence[Word]] = None,
    answer_of: Callable[[Word], str] = _term,
    count: Optional[int] = None,
) -> List[str]:
    """Correct answer plus distinct distractors, shuffled.

    Distractors come from the word's own module first and are padded from
    the wider pool; the list is shorter than `count` only when the pool runs dry.
    """
    count = settings.challenge.options_count if count is None else count
    correct = answer_of(word)
    distractors: List[str] = []

    pool = list(module_words)
    random.shuffle(pool)
    _collect_distractors(word, pool, correct, count - 1, answer_of, distractors)

    if len(distractors) < count - 1 and all_words:
        module_keys = {_key(w) for w in module_words}
        wider = [w for w in all_words if _key(w) not in module_keys]
        random.shuffle(wider)
        _collect_distractors(word, wider, correct, count - 1, answer_of, distractors)

    if len(distractors) < count - 1:
        logger.warning(f"Only {len(distractors)} distractors available for {word.id}")

    options = distractors + [correct]
    random.shuffle(options)
    return options


def _scramble_adjacent(chars: List[str], swaps: int) -> str:
    for _ in range(min(swaps, len(chars) - 1)):
        pos = random.randrange(len(chars) - 1)
        chars[pos], chars[pos + 1] = chars[pos + 1], chars[pos]
    return "".join(chars)


def _scramble_random(chars: List[str], swaps: int, keep_edges: bool) -> str:
    for _ in range(swaps):
        if keep_edges and len(chars) > 3 and random.random() < 0.7:
            pos1 = random.randint(1, len(chars) - 2)
            pos2 = random.randint(1, len(chars) - 2)
        else:
            pos1 = random.randrange(len(chars))
            pos2 = random.randrange(len(chars))
        chars[pos1], chars[pos2] = chars[pos2], chars[pos1]
    return "".join(chars)


def scramble_word(text: str, difficulty: str = "medium") -> str:
    """Scramble one string; words of two characters or fewer are returned as is."""
    if len(text) <= 2:
        return text

    intensity = SCRAMBLE_INTENSITY.get(difficulty, SCRAMBLE_INTENSITY["medium"])
    chars = list(text)
    swaps = max(1, int(intensity * len(chars)))

    if difficulty == "easy":
        return _scramble_adjacent(chars, swaps)
    if difficulty == "hard":
        return _scramble_random(chars, swaps, keep_edges=False)
    if difficulty == "boss":
        scrambled = _scramble_random(chars, int(swaps * 1.5), keep_edges=False)
        chars = list(scrambled)
        if len(chars) > 4 and random.random() < 0.4:
            start = random.randrange(len(chars) - 2)
            end = min(len(chars), start + 2 + random.randrange(3))
            chars[start:end] = reversed(chars[start:end])
        return "".join(chars)
    return _scramble_random(chars, swaps, keep_edges=True)


def generate_scrambled_versions(text: str, difficulty: str = "medium", count: int = 3) -> List[str]:
    """Up to `count` distinct scrambles that differ from the original."""
    scrambled: List[str] = []
    for _ in range(count + 2):
        candidate = scramble_word(text, difficulty)
        if candidate != text and candidate not in scrambled:
            scrambled.append(candidate)
        if len(scrambled) >= count:
            break
    return scrambled


def generate_fill_in_the_blank_options(
    word: Word,
    candidates: Sequence[Word],
    answer_of: Callable[[Word], str] = _term,
    count: Optional[int] = None,
) -> List[str]:
    """Options for a blank; distractors of similar length read more plausibly."""
    count = settings.challenge.options_count if count is None else count
    correct = answer_of(word)
    ranked = sorted(
        (w for w in candidates if _key(w) != _key(word)),
        key=lambda w: abs(len(answer_of(w)) - len(correct)),
    )
    distractors: List[str] = []
    _collect_distractors(word, ranked, correct, count - 1, answer_of, distractors)
    options = distractors + [correct]
    random.shuffle(options)
    return options
