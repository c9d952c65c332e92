"""
Data models and tracking classes for homework solving

Question shapes are a tagged union of dataclasses: every shape carries a
`kind` tag and its element handles are excluded from equality, so two
extractions of an unchanged page compare equal.
"""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union


class CycleOutcome(str, Enum):
    """Result of one solve cycle, as seen by the scheduler"""
    SUCCESS = "success"
    FAILURE = "failure"
    NO_QUESTION = "no-question"
    FINISHED = "finished"


@dataclass
class Option:
    """One MCQ choice; `letter` joins the model answer to the UI action"""
    letter: str
    text: str
    images: List[str] = field(default_factory=list)
    handle: Optional[str] = field(default=None, compare=False)


@dataclass
class Blank:
    index: int
    handle: Optional[str] = field(default=None, compare=False)


@dataclass
class SubQuestion:
    char: Optional[str]
    text: str
    answered: bool = False
    true_handle: Optional[str] = field(default=None, compare=False)
    false_handle: Optional[str] = field(default=None, compare=False)
    handle: Optional[str] = field(default=None, compare=False)


@dataclass
class MCQ:
    kind: ClassVar[str] = "mcq"
    text: str
    images: List[str] = field(default_factory=list)
    options: List[Option] = field(default_factory=list)
    solved: bool = False
    container: Optional[str] = field(default=None, compare=False)

    def find_option(self, letter: str) -> Optional[Option]:
        """First option whose letter matches (case-insensitive)"""
        wanted = letter.upper()
        return next((o for o in self.options if o.letter.upper() == wanted), None)


@dataclass
class ShortAnswer:
    kind: ClassVar[str] = "shortanswer"
    text: str
    images: List[str] = field(default_factory=list)
    blanks: List[Blank] = field(default_factory=list)
    solved: bool = False
    container: Optional[str] = field(default=None, compare=False)


@dataclass
class Fillable:
    kind: ClassVar[str] = "fillable"
    text: str
    images: List[str] = field(default_factory=list)
    blanks: List[Blank] = field(default_factory=list)
    solved: bool = False
    container: Optional[str] = field(default=None, compare=False)


@dataclass
class TrueFalse:
    kind: ClassVar[str] = "truefalse"
    text: str
    images: List[str] = field(default_factory=list)
    table: Optional[str] = None
    sub_questions: List[SubQuestion] = field(default_factory=list)
    solved: bool = False
    container: Optional[str] = field(default=None, compare=False)


@dataclass
class Unknown:
    kind: ClassVar[str] = "unknown"


ExtractedQuestion = Union[MCQ, ShortAnswer, Fillable, TrueFalse, Unknown]


@dataclass
class TrueFalseEntry:
    char: Optional[str]
    value: Optional[bool]


@dataclass
class TrueFalseAnswer:
    """Parsed TRUE/FALSE list; usable only when valid for the expected count"""
    entries: List[TrueFalseEntry] = field(default_factory=list)
    token_count: int = 0

    def is_valid(self, expected: int) -> bool:
        return (
            expected > 0
            and self.token_count == expected
            and len(self.entries) == expected
            and all(e.value is not None for e in self.entries)
        )

    @property
    def values(self) -> List[Optional[bool]]:
        return [e.value for e in self.entries]


# Letter and text answers are plain strings, "" meaning parse failure
ParsedAnswer = Union[str, TrueFalseAnswer]


@dataclass
class SchedulerState:
    active: bool = False
    failure_count: int = 0
    idle_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"active": self.active, "failure_count": self.failure_count, "idle_count": self.idle_count}


class SolveAttempt:
    """Tracks a single solve cycle"""
    def __init__(self, attempt_number: int, include_solved: bool = False):
        self.attempt_number = attempt_number
        self.include_solved = include_solved
        self.start_time = time.time()
        self.end_time = None
        self.kind = None
        self.question_number = None
        self.question_id = None
        self.answer = None
        self.outcome = None
        self.error = None

    def finish(self, outcome: Optional[CycleOutcome] = None):
        self.end_time = time.time()
        if outcome is not None:
            self.outcome = outcome

    def duration(self) -> float:
        end = self.end_time or time.time()
        return end - self.start_time

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt_number": self.attempt_number,
            "include_solved": self.include_solved,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration(),
            "kind": self.kind,
            "question_number": self.question_number,
            "question_id": self.question_id,
            "answer": str(self.answer)[:200] if self.answer is not None else None,
            "outcome": self.outcome.value if self.outcome else None,
            "error": self.error,
        }
