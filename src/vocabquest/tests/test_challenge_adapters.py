"""Tests for the challenge mode adapters."""
from typing import List, Optional
from unittest.mock import patch

import pytest

from vocabquest.models.catalog_models import Word
from vocabquest.models.challenge_models import ChallengeConfig, ChallengeContext, CompletionResult, QuizMode
from vocabquest.services.catalog_service import WordCatalog
from vocabquest.services.challenge_adapters import (
    BossBattleAdapter,
    DeepDiveAdapter,
    FillInTheBlankAdapter,
    PrecisionModeAdapter,
    QuickDashAdapter,
    StreakChallengeAdapter,
    create_default_adapters,
)
from vocabquest.tests.factories import make_progress

RANDOM = "vocabquest.services.challenge_adapters.random.random"


def make_context(
    words: List[Word],
    streak: int = 0,
    completed: int = 0,
    target: int = 10,
    progress: Optional[dict] = None,
    time_remaining: Optional[float] = None,
) -> ChallengeContext:
    return ChallengeContext(
        words_completed=completed,
        current_streak=streak,
        target_words=target,
        word_progress=progress or {},
        language_code="de",
        time_remaining=time_remaining,
        all_words=list(words),
    )


async def initialize(adapter, words: List[Word], target: int = 10, time_limit: int = 5):
    await adapter.initialize(ChallengeConfig(
        language_code="de",
        word_progress={},
        target_words=target,
        time_limit=time_limit,
        difficulty=3,
        all_words=list(words),
    ))
    return adapter


@pytest.fixture
def words(catalog: WordCatalog) -> List[Word]:
    return catalog.get_words_for_language("de")


def test_default_adapters():
    assert set(create_default_adapters()) == {
        "streak-challenge", "boss-battle", "precision-mode", "quick-dash", "deep-dive", "fill-in-the-blank",
    }


@pytest.mark.asyncio
async def test_adapter_requires_initialize(words):
    with pytest.raises(RuntimeError):
        await StreakChallengeAdapter().get_next_word(make_context(words))


@pytest.mark.asyncio
@pytest.mark.parametrize("streak,difficulty,tier", [(0, "easy", 1), (7, "medium", 3), (20, "hard", 5)])
async def test_streak_difficulty_follows_streak(words, streak, difficulty, tier):
    adapter = await initialize(StreakChallengeAdapter(), words)
    result = await adapter.get_next_word(make_context(words, streak=streak))
    assert result.word is not None
    assert result.metadata["difficulty"] == difficulty
    assert result.metadata["tier"] == tier


@pytest.mark.asyncio
async def test_streak_prefers_unseen_words(words):
    progress = {
        f"{w.module_id}:{w.id}": make_progress(f"{w.module_id}:{w.id}", xp=10)
        for w in words if w.id != "201"
    }
    adapter = await initialize(StreakChallengeAdapter(), words)
    result = await adapter.get_next_word(make_context(words, progress=progress))
    assert result.word.term == "Flughafen"


def test_streak_never_ends_early():
    assert StreakChallengeAdapter().record_completion("a:1", False, 3.0) is True


def test_boss_phases():
    assert BossBattleAdapter.get_boss_phase(0.1, False) == "early-boss"
    assert BossBattleAdapter.get_boss_phase(0.5, False) == "mid-boss"
    assert BossBattleAdapter.get_boss_phase(0.8, False) == "late-boss"
    assert BossBattleAdapter.get_boss_phase(0.1, True) == "final-boss"
    assert BossBattleAdapter.generate_boss_quiz_mode(0, True) == QuizMode.OPEN_ANSWER


@pytest.mark.asyncio
async def test_boss_final_word_is_open_answer(words):
    adapter = await initialize(BossBattleAdapter(), words, target=25)
    result = await adapter.get_next_word(make_context(words, completed=24, target=25))
    assert result.quiz_mode == QuizMode.OPEN_ANSWER
    assert result.metadata["boss_phase"] == "final-boss"
    assert result.metadata["is_final_word"] is True
    assert result.metadata["lives_remaining"] == 3
    assert result.options == []


@pytest.mark.asyncio
async def test_boss_blank_without_context_becomes_multiple_choice(words):
    """Test that a blank is never shown for a word without a sentence."""
    baum = [w for w in words if w.term == "Baum"]
    adapter = await initialize(BossBattleAdapter(), baum, target=25)
    with patch(RANDOM, return_value=0.1):
        result = await adapter.get_next_word(make_context(baum, completed=20, target=25))
    assert result.quiz_mode == QuizMode.MULTIPLE_CHOICE


@pytest.mark.asyncio
async def test_boss_well_known_word_gets_harder_format(words):
    """Test that a mastered word skips the early-phase scramble."""
    hund = [w for w in words if w.term == "Hund"]
    adapter = await initialize(BossBattleAdapter(), hund, target=25)
    fresh = make_context(hund, target=25)
    mastered = make_context(
        hund, target=25, progress={"grundwortschatz:185": make_progress("grundwortschatz:185", xp=300)}
    )

    with patch(RANDOM, return_value=0.1):
        assert (await adapter.get_next_word(fresh)).quiz_mode == QuizMode.LETTER_SCRAMBLE
        assert (await adapter.get_next_word(mastered)).quiz_mode == QuizMode.FILL_IN_THE_BLANK


@pytest.mark.asyncio
async def test_boss_loses_lives_and_fails(words):
    adapter = await initialize(BossBattleAdapter(lives=3), words)

    assert adapter.record_completion("a:1", True, 2.0).session_continues is True
    assert adapter.record_completion("a:1", False, 2.0).session_continues is True
    assert adapter.record_completion("a:2", False, 2.0).session_continues is True
    assert adapter.has_session_failed() is False

    result = adapter.record_completion("a:3", False, 2.0)
    assert result == CompletionResult(session_continues=False, session_failed=True)
    assert adapter.has_session_failed() is True

    adapter.reset()
    assert adapter.lives == 3
    assert adapter.config is None


@pytest.mark.asyncio
async def test_precision_mode_ends_on_first_mistake(words):
    adapter = await initialize(PrecisionModeAdapter(), words)
    assert adapter.record_completion("a:1", True, 1.0).session_continues is True
    assert adapter.has_session_failed() is False

    result = adapter.record_completion("a:2", False, 1.0, {"error_type": "typo"})
    assert result.session_continues is False
    assert result.session_failed is True
    assert adapter.has_session_failed() is True


@pytest.mark.asyncio
async def test_precision_mode_stays_on_low_tiers(words):
    progress = {f"{w.module_id}:{w.id}": make_progress(f"{w.module_id}:{w.id}", xp=300) for w in words}
    adapter = await initialize(PrecisionModeAdapter(), words)
    with patch(RANDOM, return_value=0.95):
        result = await adapter.get_next_word(make_context(words, progress=progress))
    assert result.quiz_mode in (QuizMode.MULTIPLE_CHOICE, QuizMode.LETTER_SCRAMBLE)
    assert result.metadata["mistakes_allowed"] == 0


@pytest.mark.asyncio
async def test_precision_mode_targets_low_accuracy(words):
    progress = {f"{w.module_id}:{w.id}": make_progress(f"{w.module_id}:{w.id}", xp=30, correct=9, incorrect=1)
                for w in words}
    progress["grundwortschatz:187"] = make_progress("grundwortschatz:187", xp=30, correct=1, incorrect=1)
    adapter = await initialize(PrecisionModeAdapter(), words)
    result = await adapter.get_next_word(make_context(words, progress=progress))
    assert result.word.term == "Haus"


@pytest.mark.asyncio
async def test_quick_dash_time_pressure(words):
    adapter = await initialize(QuickDashAdapter(), words, time_limit=5)
    assert adapter.calculate_time_pressure(300, 0, 8) == 0
    assert adapter.calculate_time_pressure(150, 6, 8) == pytest.approx(0.5)
    assert adapter.calculate_time_pressure(150, 2, 8) == pytest.approx(0.5)
    assert adapter.calculate_time_pressure(0, 0, 8) == 1
    assert QuickDashAdapter.calculate_time_allocation(120, 4) == 30.0


@pytest.mark.asyncio
async def test_quick_dash_low_time_uses_multiple_choice(words):
    adapter = await initialize(QuickDashAdapter(), words, time_limit=5)
    result = await adapter.get_next_word(make_context(words, target=8, time_remaining=30))
    assert result.quiz_mode == QuizMode.MULTIPLE_CHOICE
    assert result.metadata["time_pressure"] == pytest.approx(0.9)
    assert result.metadata["time_allocated"] == pytest.approx(3.8)
    assert len(result.options) == 4


@pytest.mark.asyncio
async def test_quick_dash_tracks_answer_times(words):
    adapter = await initialize(QuickDashAdapter(), words)
    adapter.record_completion("a:1", True, 2.0)
    adapter.record_completion("a:2", False, 4.0)
    assert adapter.average_answer_time == 3.0
    adapter.reset()
    assert adapter.average_answer_time == 0.0


@pytest.mark.asyncio
async def test_deep_dive_enhanced_modes_show_as_multiple_choice(words):
    adapter = await initialize(DeepDiveAdapter(), words)
    with patch(RANDOM, return_value=0.1), \
            patch("vocabquest.services.challenge_adapters.random.choice", side_effect=lambda seq: seq[0]):
        result = await adapter.get_next_word(make_context(words))
    assert result.word.has_context
    assert result.quiz_mode == QuizMode.MULTIPLE_CHOICE
    assert result.metadata["original_quiz_mode"] == "contextual-analysis"
    assert result.metadata["enhancement_level"] == "advanced"


@pytest.mark.asyncio
async def test_deep_dive_standard_mode(words):
    adapter = await initialize(DeepDiveAdapter(), words)
    with patch(RANDOM, return_value=0.9):
        result = await adapter.get_next_word(make_context(words))
    assert result.quiz_mode == QuizMode.LETTER_SCRAMBLE
    assert result.metadata["enhancement_level"] == "standard"


@pytest.mark.asyncio
async def test_fill_in_the_blank(words):
    adapter = await initialize(FillInTheBlankAdapter(), words)
    result = await adapter.get_next_word(make_context(words))
    assert result.quiz_mode == QuizMode.FILL_IN_THE_BLANK
    assert result.word.has_context
    assert result.word.term in result.options


@pytest.mark.asyncio
async def test_fill_in_the_blank_without_sentences(words):
    plain = [w for w in words if not w.has_context]
    adapter = await initialize(FillInTheBlankAdapter(), plain)
    result = await adapter.get_next_word(make_context(plain))
    assert result.word is None
    assert result.quiz_mode == QuizMode.FILL_IN_THE_BLANK


def test_boss_battle_lives_argument():
    assert BossBattleAdapter(lives=0).has_session_failed() is True
    assert BossBattleAdapter(lives=5).lives == 5
    assert BossBattleAdapter().lives == 3
