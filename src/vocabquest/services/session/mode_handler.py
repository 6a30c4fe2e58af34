"""Quiz mode rules: which side of a word is asked, and how answers are checked."""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from vocabquest.models.catalog_models import Word, WordDirection
from vocabquest.models.challenge_models import QuizMode

logger = logging.getLogger(__name__)

BLANK_MARKER = "{BLANK}"

# Modes that always ask the definition and expect the term
UNIDIRECTIONAL_MODES = frozenset({
    QuizMode.MULTIPLE_CHOICE,
    QuizMode.FILL_IN_THE_BLANK,
    QuizMode.LETTER_SCRAMBLE,
    QuizMode.CONTEXTUAL_ANALYSIS,
    QuizMode.USAGE_EXAMPLE,
    QuizMode.SYNONYM_ANTONYM,
})

ARTICLES: Dict[str, Tuple[str, ...]] = {
    "de": ("der", "die", "das", "den", "dem", "des", "ein", "eine", "einen", "einem", "einer"),
    "es": ("el", "la", "los", "las", "un", "una"),
    "nl": ("de", "het", "een"),
}

# Languages where a right answer with wrong capitalization scores less
CAPITALIZED_NOUN_LANGUAGES = frozenset({"de"})

MIN_CAPITALIZATION_PENALTY = 0.5

MODE_DIFFICULTY = {
    QuizMode.MULTIPLE_CHOICE: 1,
    QuizMode.LETTER_SCRAMBLE: 2,
    QuizMode.FILL_IN_THE_BLANK: 3,
    QuizMode.CONTEXTUAL_ANALYSIS: 4,
    QuizMode.USAGE_EXAMPLE: 4,
    QuizMode.SYNONYM_ANTONYM: 5,
}

RECOMMENDED_MODES = {
    "quick-dash": [QuizMode.MULTIPLE_CHOICE, QuizMode.LETTER_SCRAMBLE],
    "precision-mode": [QuizMode.FILL_IN_THE_BLANK, QuizMode.CONTEXTUAL_ANALYSIS],
    "deep-dive": [QuizMode.CONTEXTUAL_ANALYSIS, QuizMode.USAGE_EXAMPLE, QuizMode.SYNONYM_ANTONYM],
    "streak-challenge": [QuizMode.MULTIPLE_CHOICE, QuizMode.FILL_IN_THE_BLANK],
    "boss-battle": [QuizMode.MULTIPLE_CHOICE, QuizMode.LETTER_SCRAMBLE, QuizMode.FILL_IN_THE_BLANK],
    "fill-in-the-blank": [QuizMode.FILL_IN_THE_BLANK],
}
STANDARD_RECOMMENDED_MODES = [QuizMode.MULTIPLE_CHOICE, QuizMode.FILL_IN_THE_BLANK, QuizMode.LETTER_SCRAMBLE]

# Feedback display time in milliseconds: (correct, incorrect)
OPTIMAL_TIMING_MS = {
    QuizMode.MULTIPLE_CHOICE: (1200, 3000),
    QuizMode.LETTER_SCRAMBLE: (1500, 3500),
    QuizMode.FILL_IN_THE_BLANK: (2500, 4500),
    QuizMode.CONTEXTUAL_ANALYSIS: (3000, 5000),
    QuizMode.USAGE_EXAMPLE: (3000, 5000),
    QuizMode.SYNONYM_ANTONYM: (2000, 4000),
    QuizMode.OPEN_ANSWER: (2000, 4500),
}


@dataclass
class AnswerValidation:
    is_correct: bool
    capitalization_correct: bool = True
    capitalization_penalty: float = 1.0  # 1.0 means full points


@dataclass
class ModeValidation:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)


def is_unidirectional_mode(quiz_mode: QuizMode) -> bool:
    return quiz_mode in UNIDIRECTIONAL_MODES


def strip_article(text: str, language_code: str) -> str:
    """Drop a leading article ("der Hund" -> "Hund") for the given language."""
    articles = ARTICLES.get(language_code)
    if not articles:
        return text.strip()
    pattern = r"^(?:" + "|".join(articles) + r")\s+"
    return re.sub(pattern, "", text.strip(), count=1, flags=re.IGNORECASE)


def _find_in_sentence(text: str, sentence: str, language_code: str) -> Optional[Tuple[int, int]]:
    """(start, length) of text inside sentence, retrying without the article."""
    sentence_lower = sentence.lower()
    needle = text.strip().lower()
    if needle:
        index = sentence_lower.find(needle)
        if index != -1:
            return index, len(needle)

    bare = strip_article(text, language_code).lower()
    if bare and bare != needle:
        index = sentence_lower.find(bare)
        if index != -1:
            return index, len(bare)
    return None


def locate_blank_field(word: Word, language_code: str) -> str:
    """Which field of the word the context sentence contains: "term" or "definition".

    Falls back to "term" when neither appears in the sentence.
    """
    if not word.has_context:
        return "term"
    sentence = word.context.sentence
    if _find_in_sentence(word.term, sentence, language_code):
        return "term"
    if _find_in_sentence(word.definition, sentence, language_code):
        return "definition"
    logger.debug(f"Neither side of {word.id} found in its sentence, blanking the term")
    return "term"


def get_blank_parts(word: Word, language_code: str) -> Tuple[str, str]:
    """Text before and after the blank of a fill-in-the-blank question."""
    if not word.has_context:
        return "", ""

    marked = word.context.sentence_with_blank
    if marked and marked.count(BLANK_MARKER) == 1:
        before, after = marked.split(BLANK_MARKER)
        return before.strip(), after.strip()

    sentence = word.context.sentence
    answer = word.term if locate_blank_field(word, language_code) == "term" else word.definition
    found = _find_in_sentence(answer, sentence, language_code)
    if found is None:
        return sentence, ""
    start, length = found
    return sentence[:start].strip(), sentence[start + length:].strip()


def extract_question_answer(word: Word, quiz_mode: QuizMode, language_code: str) -> Tuple[str, str]:
    """(question, expected answer) for a word shown in the given mode."""
    if quiz_mode == QuizMode.FILL_IN_THE_BLANK:
        if locate_blank_field(word, language_code) == "definition":
            return word.term, word.definition
        return word.definition, word.term

    if is_unidirectional_mode(quiz_mode):
        return word.definition, word.term

    if word.direction == WordDirection.DEFINITION_TO_TERM:
        return word.definition, word.term
    return word.term, word.definition


def _main_noun(phrase: str, language_code: str) -> str:
    words = phrase.split()
    articles = ARTICLES.get(language_code, ())
    for index, token in enumerate(words[:-1]):
        if token.lower() in articles:
            return words[index + 1]
    return words[0] if words else ""


def validate_answer(user_answer: str, correct_answer: str, language_code: str) -> AnswerValidation:
    """Case-insensitive match; German answers lose points for lower-cased nouns."""
    user = user_answer.strip()
    correct = correct_answer.strip()

    if user.lower() != correct.lower():
        return AnswerValidation(is_correct=False, capitalization_correct=False)

    if language_code not in CAPITALIZED_NOUN_LANGUAGES or user == correct:
        return AnswerValidation(is_correct=True, capitalization_correct=user == correct)

    user_noun = _main_noun(user, language_code)
    correct_noun = _main_noun(correct, language_code)
    if user_noun.lower() == correct_noun.lower():
        penalty = 0.9 if user_noun[:1].isupper() else 0.7
    else:
        penalty = 0.6

    wrong_words = sum(
        1 for given, expected in zip(user.split(), correct.split())
        if given.lower() == expected.lower() and given != expected
    )
    if wrong_words > 1:
        penalty *= 0.8

    return AnswerValidation(
        is_correct=True,
        capitalization_correct=False,
        capitalization_penalty=max(MIN_CAPITALIZATION_PENALTY, penalty),
    )


class ModeHandler:
    """Per-language view of the quiz mode rules."""

    def __init__(self, language_code: str):
        self.language_code = language_code

    def get_quiz_question(self, word: Word, quiz_mode: QuizMode) -> str:
        return extract_question_answer(word, quiz_mode, self.language_code)[0]

    def get_quiz_answer(self, word: Word, quiz_mode: QuizMode) -> str:
        return extract_question_answer(word, quiz_mode, self.language_code)[1]

    def check_answer(self, word: Word, quiz_mode: QuizMode, user_answer: str) -> AnswerValidation:
        return validate_answer(user_answer, self.get_quiz_answer(word, quiz_mode), self.language_code)

    def validate_quiz_mode_config(self, session_id: str, quiz_mode: QuizMode, word: Optional[Word]) -> ModeValidation:
        """Check that a word can be shown in a mode; suggestions never invalidate."""
        if word is None:
            return ModeValidation(is_valid=False, errors=["No current word available"])

        errors: List[str] = []
        suggestions: List[str] = []
        if quiz_mode == QuizMode.MULTIPLE_CHOICE and not (word.term and word.definition):
            errors.append("Multiple choice requires both term and definition")
        elif quiz_mode == QuizMode.FILL_IN_THE_BLANK and not word.has_context:
            suggestions.append("Fill-in-the-blank works best with context sentences")
        elif quiz_mode == QuizMode.LETTER_SCRAMBLE and len(word.term) < 3:
            errors.append("Letter scramble requires terms with at least 3 characters")
        elif quiz_mode in (QuizMode.CONTEXTUAL_ANALYSIS, QuizMode.USAGE_EXAMPLE) and not word.has_context:
            errors.append("Contextual modes require context sentences")

        if session_id == "deep-dive" and quiz_mode not in RECOMMENDED_MODES["deep-dive"]:
            suggestions.append("Deep dive sessions work best with advanced quiz modes")

        return ModeValidation(is_valid=not errors, errors=errors, suggestions=suggestions)

    @staticmethod
    def get_recommended_quiz_modes(session_id: str) -> List[QuizMode]:
        return list(RECOMMENDED_MODES.get(session_id, STANDARD_RECOMMENDED_MODES))

    @staticmethod
    def get_quiz_mode_difficulty(quiz_mode: QuizMode) -> int:
        return MODE_DIFFICULTY.get(quiz_mode, 3)

    @staticmethod
    def supports_options(quiz_mode: QuizMode) -> bool:
        return quiz_mode in (QuizMode.MULTIPLE_CHOICE, QuizMode.SYNONYM_ANTONYM)

    @staticmethod
    def requires_context(quiz_mode: QuizMode) -> bool:
        return quiz_mode in (QuizMode.FILL_IN_THE_BLANK, QuizMode.CONTEXTUAL_ANALYSIS, QuizMode.USAGE_EXAMPLE)

    @staticmethod
    def get_optimal_timing(quiz_mode: QuizMode, correct: bool) -> int:
        correct_ms, incorrect_ms = OPTIMAL_TIMING_MS.get(quiz_mode, OPTIMAL_TIMING_MS[QuizMode.MULTIPLE_CHOICE])
        return correct_ms if correct else incorrect_ms
