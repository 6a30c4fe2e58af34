"""Models for catalog words and per-word learner progress."""
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class WordDirection(Enum):
    """Which side of a word is asked in bidirectional quiz modes."""
    TERM_TO_DEFINITION = "term-to-definition"
    DEFINITION_TO_TERM = "definition-to-term"


@dataclass(frozen=True)
class WordContext:
    """Example sentence attached to a word."""
    sentence: str
    translation: str = ""
    sentence_with_blank: Optional[str] = None  # uses the {BLANK} marker

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WordContext":
        return cls(
            sentence=data.get("sentence", ""),
            translation=data.get("translation", ""),
            sentence_with_blank=data.get("sentenceWithBlank"),
        )


@dataclass(frozen=True)
class Word:
    """Immutable catalog entry."""
    id: str
    term: str
    definition: str
    context: Optional[WordContext] = None
    direction: Optional[WordDirection] = None
    level: Optional[int] = None
    module_id: Optional[str] = None  # set by the catalog for module-scoped words

    @property
    def has_context(self) -> bool:
        return bool(self.context and self.context.sentence)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], module_id: Optional[str] = None) -> "Word":
        """Build a word from its catalog JSON form."""
        context = data.get("context")
        direction = data.get("direction")
        return cls(
            id=str(data["id"]),
            term=data["term"],
            definition=data["definition"],
            context=WordContext.from_dict(context) if isinstance(context, dict) else None,
            direction=WordDirection(direction) if direction else None,
            level=data.get("level"),
            module_id=module_id,
        )


@dataclass
class Module:
    """A named group of words inside one language."""
    id: str
    name: str
    words: List[Word] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Module":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            words=[Word.from_dict(word, module_id=data["id"]) for word in data.get("words", [])],
        )


def utc_now_iso() -> str:
    """Current time as an ISO-8601 string."""
    return datetime.now(UTC).isoformat()


@dataclass
class WordProgress:
    """Per-word, per-learner progress record."""
    word_id: str
    xp: int = 0
    last_practiced: str = field(default_factory=utc_now_iso)
    times_correct: int = 0
    times_incorrect: int = 0
    version: Optional[int] = None
    directions: Optional[Dict[str, Dict[str, Any]]] = None

    @property
    def accuracy(self) -> float:
        attempts = self.times_correct + self.times_incorrect
        return self.times_correct / attempts if attempts else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted JSON shape."""
        data: Dict[str, Any] = {
            "wordId": self.word_id,
            "xp": self.xp,
            "lastPracticed": self.last_practiced,
            "timesCorrect": self.times_correct,
            "timesIncorrect": self.times_incorrect,
        }
        if self.version is not None:
            data["version"] = self.version
        if self.directions is not None:
            data["directions"] = self.directions
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], word_id: Optional[str] = None) -> "WordProgress":
        """Create a record from its stored form; the storage key wins over wordId."""
        return cls(
            word_id=word_id or str(data["wordId"]),
            xp=max(0, int(data.get("xp", 0))),
            last_practiced=data.get("lastPracticed") or utc_now_iso(),
            times_correct=int(data.get("timesCorrect", 0)),
            times_incorrect=int(data.get("timesIncorrect", 0)),
            version=data.get("version"),
            directions=data.get("directions"),
        )
