"""
Data model for EduPlan: sessions, plan requests, lesson plans, and tests.

Serialized dicts keep the camelCase keys of the browser-era history export
(``planningType``, ``bnccCodes``, ``correctAnswer``) so old exports load.
"""

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional


class Tier(str, Enum):
    NONE = "none"
    STANDARD = "standard"
    ELEVATED = "elevated"


class CaptureIntent(str, Enum):
    EXTRACT_TOPIC = "extract-topic"
    GRADE_TEST = "grade-test"


@dataclass(frozen=True)
class Session:
    authenticated: bool = False
    tier: Tier = Tier.NONE


@dataclass(frozen=True)
class LessonPlanRequest:
    subject: str = "Matemática"
    grade: str = "6º Ano - Fundamental II"
    topic: str = ""
    duration: str = "50 minutos"
    planning_type: str = "Individual"

    def to_dict(self):
        return {
            "subject": self.subject,
            "grade": self.grade,
            "topic": self.topic,
            "duration": self.duration,
            "planningType": self.planning_type,
        }


@dataclass(frozen=True)
class Question:
    number: int
    question: str
    correct_answer: str
    options: Optional[List[str]] = None

    @property
    def is_objective(self):
        return self.options is not None

    def to_dict(self):
        data = {
            "number": self.number,
            "question": self.question,
            "correctAnswer": self.correct_answer,
        }
        if self.options is not None:
            data["options"] = list(self.options)
        return data

    @classmethod
    def from_dict(cls, data):
        options = data.get("options")
        return cls(
            number=int(data["number"]),
            question=str(data.get("question", "")),
            correct_answer=str(data.get("correctAnswer", data.get("correct_answer", ""))),
            options=[str(o) for o in options] if options else None,
        )


@dataclass(frozen=True)
class Test:
    __test__ = False  # not a pytest test class

    questions: List[Question] = field(default_factory=list)

    def to_dict(self):
        return {"questions": [q.to_dict() for q in self.questions]}

    @classmethod
    def from_dict(cls, data):
        questions = [Question.from_dict(q) for q in data.get("questions", [])]
        numbers = [q.number for q in questions]
        if len(set(numbers)) != len(numbers):
            raise ValueError(f"Duplicate question numbers in test: {numbers}")
        return cls(questions=questions)


@dataclass(frozen=True)
class GradingResult:
    score: str
    feedback: str

    def to_dict(self):
        return {"score": self.score, "feedback": self.feedback}


@dataclass(frozen=True)
class LessonPlan:
    """A generated lesson plan, optionally carrying its test."""

    id: str
    title: str
    subject: str
    grade: str
    planning_type: str
    content: str
    objectives: List[str] = field(default_factory=list)
    methodology: str = ""
    resources: List[str] = field(default_factory=list)
    assessment: str = ""
    bncc_codes: List[str] = field(default_factory=list)
    test: Optional[Test] = None

    def with_test(self, test):
        """Return a copy of this plan with ``test`` attached (or replaced)."""
        return replace(self, test=test)

    def to_dict(self):
        data = {
            "id": self.id,
            "title": self.title,
            "subject": self.subject,
            "grade": self.grade,
            "planningType": self.planning_type,
            "content": self.content,
            "objectives": list(self.objectives),
            "methodology": self.methodology,
            "resources": list(self.resources),
            "assessment": self.assessment,
            "bnccCodes": list(self.bncc_codes),
        }
        if self.test is not None:
            data["test"] = self.test.to_dict()
        return data

    @classmethod
    def from_dict(cls, data):
        test = data.get("test")
        return cls(
            id=str(data.get("id") or new_plan_id()),
            title=str(data.get("title", "")),
            subject=str(data.get("subject", "")),
            grade=str(data.get("grade", "")),
            planning_type=str(data.get("planningType", data.get("planning_type", ""))),
            content=str(data.get("content", "")),
            objectives=_string_list(data.get("objectives")),
            methodology=str(data.get("methodology", "")),
            resources=_string_list(data.get("resources")),
            assessment=str(data.get("assessment", "")),
            bncc_codes=_string_list(data.get("bnccCodes", data.get("bncc_codes"))),
            test=Test.from_dict(test) if test else None,
        )


def new_plan_id():
    return uuid.uuid4().hex


def _string_list(value):
    """Coerce a JSON value into a list of strings.

    The model sometimes answers with a single string where a list is
    expected; a bare string becomes a one-item list.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [str(v) for v in value]
