"""Tests for mastery, decay and quiz mode selection."""
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest

from vocabquest.models.challenge_models import QuizMode
from vocabquest.services.mastery_service import (
    QUIZ_CONTEXT_HIGH_PRESSURE,
    calculate_mastery_decay,
    calculate_xp_gain,
    generate_quiz_mode_for_mastery,
    get_current_mastery,
    get_word_mastery_tier,
    is_word_learned,
    is_word_mastered,
    select_quiz_mode,
    should_switch_quiz_mode,
)
from vocabquest.tests.factories import make_progress, make_word

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)


def hours_ago(hours: float) -> str:
    return (NOW - timedelta(hours=hours)).isoformat()


@pytest.mark.parametrize("xp,tier", [
    (0, 1), (20, 1), (21, 2), (50, 2), (51, 3), (100, 3), (101, 4), (200, 4), (201, 5),
])
def test_mastery_tiers(xp, tier):
    assert get_word_mastery_tier(xp) == tier


def test_no_decay_within_first_interval():
    """Test that mastery is unchanged until a full interval has passed."""
    assert calculate_mastery_decay(hours_ago(23), 50, NOW) == 50


def test_decay_per_interval():
    # Familiar band: 20% per 24 hours
    assert calculate_mastery_decay(hours_ago(48), 50, NOW) == pytest.approx(32)
    # Mastered band: 10% per 30 days
    assert calculate_mastery_decay(hours_ago(1440), 100, NOW) == pytest.approx(81)
    # Beginner band: 20% per 4 hours
    assert calculate_mastery_decay(hours_ago(4), 20, NOW) == pytest.approx(16)


def test_decay_never_goes_below_zero():
    assert calculate_mastery_decay(hours_ago(24 * 365), 10, NOW) >= 0


def test_decay_ignores_missing_or_invalid_timestamps():
    assert calculate_mastery_decay(None, 40, NOW) == 40
    assert calculate_mastery_decay("yesterday", 40, NOW) == 40
    assert calculate_mastery_decay(hours_ago(100), 0, NOW) == 0


def test_current_mastery():
    assert get_current_mastery(None) == 0
    assert get_current_mastery(make_progress("a:1", xp=70, last_practiced=hours_ago(1)), NOW) == 70


@pytest.mark.parametrize("mastery,mode,gain", [
    (10, QuizMode.MULTIPLE_CHOICE, 12),
    (10, QuizMode.OPEN_ANSWER, 18),
    (60, QuizMode.LETTER_SCRAMBLE, 10),
    (80, QuizMode.MULTIPLE_CHOICE, 7),
    (95, QuizMode.MULTIPLE_CHOICE, 3),
    (95, QuizMode.OPEN_ANSWER, 4),
])
def test_xp_gain(mastery, mode, gain):
    assert calculate_xp_gain(mastery, True, mode) == gain


def test_wrong_answers_earn_nothing():
    assert calculate_xp_gain(10, False, QuizMode.OPEN_ANSWER) == 0


@pytest.mark.parametrize("rand", [0.0, 0.15, 0.35, 0.45, 0.55, 0.65, 0.75, 0.95])
@pytest.mark.parametrize("tier", [1, 2, 3, 4, 5])
def test_open_answer_can_be_disallowed(tier, rand):
    with patch("vocabquest.services.mastery_service.random.random", return_value=rand):
        assert generate_quiz_mode_for_mastery(tier, allow_open_answer=False) != QuizMode.OPEN_ANSWER


def test_low_tier_is_mostly_multiple_choice():
    with patch("vocabquest.services.mastery_service.random.random", return_value=0.5):
        assert generate_quiz_mode_for_mastery(1) == QuizMode.MULTIPLE_CHOICE


def test_fill_in_the_blank_needs_context():
    """Test that a word without a sentence is never shown as a blank."""
    word = make_word("188", "Baum", "tree", module_id="grundwortschatz")
    progress = {"grundwortschatz:188": make_progress("grundwortschatz:188", xp=300)}
    with patch("vocabquest.services.mastery_service.random.random", return_value=0.9):
        assert select_quiz_mode(word, progress) == QuizMode.MULTIPLE_CHOICE


def test_fill_in_the_blank_with_context():
    word = make_word("185", "Hund", "dog", "Der Hund bellt.", module_id="grundwortschatz")
    progress = {"grundwortschatz:185": make_progress("grundwortschatz:185", xp=300)}
    with patch("vocabquest.services.mastery_service.random.random", return_value=0.9):
        assert select_quiz_mode(word, progress) == QuizMode.FILL_IN_THE_BLANK


def test_high_pressure_forces_multiple_choice_for_new_words():
    word = make_word("185", "Hund", "dog", module_id="grundwortschatz")
    with patch("vocabquest.services.mastery_service.random.random", return_value=0.95):
        assert select_quiz_mode(word, {}, QUIZ_CONTEXT_HIGH_PRESSURE) == QuizMode.MULTIPLE_CHOICE


def test_mode_switching_and_thresholds():
    assert should_switch_quiz_mode(50, QuizMode.MULTIPLE_CHOICE) is True
    assert should_switch_quiz_mode(49, QuizMode.MULTIPLE_CHOICE) is False
    assert should_switch_quiz_mode(39, QuizMode.OPEN_ANSWER) is True
    assert should_switch_quiz_mode(40, QuizMode.OPEN_ANSWER) is False
    assert is_word_learned(70) and not is_word_learned(69)
    assert is_word_mastered(90) and not is_word_mastered(89)
