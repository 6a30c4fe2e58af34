"""Session lifecycle state machine."""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from vocabquest.exceptions import InvalidStateTransition
from vocabquest.models.catalog_models import Word
from vocabquest.models.challenge_models import QuizMode

logger = logging.getLogger(__name__)

# Warn about sessions or single words that run suspiciously long (seconds)
LONG_SESSION_SECONDS = 3600
LONG_WORD_SECONDS = 300


class SessionState(Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    WORD_PRESENTED = "word-presented"
    ANSWERED = "answered"
    PROGRESSING = "progressing"
    COMPLETED = "completed"


ALLOWED_TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.INITIALIZING}),
    SessionState.INITIALIZING: frozenset({SessionState.WORD_PRESENTED, SessionState.IDLE}),
    SessionState.WORD_PRESENTED: frozenset({SessionState.ANSWERED, SessionState.IDLE}),
    SessionState.ANSWERED: frozenset({SessionState.PROGRESSING, SessionState.COMPLETED, SessionState.IDLE}),
    SessionState.PROGRESSING: frozenset({SessionState.WORD_PRESENTED, SessionState.COMPLETED, SessionState.IDLE}),
    SessionState.COMPLETED: frozenset({SessionState.IDLE}),
}


@dataclass
class StateSnapshot:
    state: SessionState
    word: Optional[Word]
    quiz_mode: Optional[QuizMode]
    session_elapsed: float  # seconds
    word_elapsed: float  # seconds
    last_answer_correct: Optional[bool] = None


@dataclass
class StateValidation:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class StateManager:
    """Enforces the order of session steps.

    Any state can be abandoned back to IDLE; every other move must follow
    ALLOWED_TRANSITIONS or InvalidStateTransition is raised.
    """

    def __init__(self):
        self.state = SessionState.IDLE
        self.history: List[SessionState] = [SessionState.IDLE]

    def can_transition(self, target: SessionState) -> bool:
        return target in ALLOWED_TRANSITIONS[self.state]

    def transition(self, target: SessionState) -> None:
        if not self.can_transition(target):
            raise InvalidStateTransition(self.state.value, target.value)
        logger.debug(f"Session state {self.state.value} -> {target.value}")
        self.state = target
        self.history.append(target)

    def require(self, *states: SessionState) -> None:
        """Raise unless the current state is one of `states`."""
        if self.state not in states:
            raise InvalidStateTransition(self.state.value, "/".join(s.value for s in states))

    def reset(self) -> None:
        if self.state != SessionState.IDLE:
            logger.debug(f"Session state {self.state.value} -> idle (reset)")
        self.state = SessionState.IDLE
        self.history = [SessionState.IDLE]

    @property
    def is_active(self) -> bool:
        return self.state not in (SessionState.IDLE, SessionState.COMPLETED)

    def create_snapshot(
        self,
        word: Optional[Word],
        quiz_mode: Optional[QuizMode],
        session_elapsed: float,
        word_elapsed: float,
        last_answer_correct: Optional[bool] = None,
    ) -> StateSnapshot:
        return StateSnapshot(
            state=self.state,
            word=word,
            quiz_mode=quiz_mode,
            session_elapsed=session_elapsed,
            word_elapsed=word_elapsed,
            last_answer_correct=last_answer_correct,
        )

    @staticmethod
    def validate_snapshot(snapshot: StateSnapshot) -> StateValidation:
        errors: List[str] = []
        warnings: List[str] = []

        if snapshot.word is None:
            errors.append("No current word available")
        if snapshot.quiz_mode is None:
            errors.append("No quiz mode set")
        if snapshot.session_elapsed > LONG_SESSION_SECONDS:
            warnings.append("Session running for over 1 hour")
        if snapshot.word_elapsed > LONG_WORD_SECONDS:
            warnings.append("Word timer exceeds 5 minutes - user may be stuck")

        return StateValidation(is_valid=not errors, errors=errors, warnings=warnings)
