"""Entity types stored in the classroom collections.

Every entity round-trips through Firestore as a flat mapping.  The store
field names (``userId``, ``studentId``) are kept as they are in the existing
collections; the Python attributes use snake_case.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional, Union

from .optional import ABSENT, Maybe, optional, to_store

STUDENTS_COL = "students"
ATTENDANCE_COL = "attendance"
PARTICIPATION_COL = "participation"
MOOD_COL = "mood"
COURSES_COL = "courses"

PRESENT = "present"
ABSENT_STATUS = "absent"
ATTENDANCE_STATUSES = (PRESENT, ABSENT_STATUS)

MOOD_MIN = 1
MOOD_MAX = 5

DateLike = Union[str, date]


def normalize_date(value: DateLike) -> str:
    """Return ``value`` as an ISO ``YYYY-MM-DD`` string.

    Raises ``ValueError`` for anything that is not a calendar day.
    """

    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value or "").strip()
    try:
        return datetime.strptime(text, "%Y-%m-%d").date().isoformat()
    except ValueError:
        raise ValueError(f"Invalid date {value!r}; expected YYYY-MM-DD") from None


def require_name(name: Any) -> str:
    text = str(name or "").strip()
    if not text:
        raise ValueError("Name must not be empty")
    return text


def validate_status(status: str) -> str:
    if status not in ATTENDANCE_STATUSES:
        raise ValueError(f"Invalid attendance status {status!r}")
    return status


def validate_points(points: Any) -> int:
    if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
        raise ValueError(f"Participation points must be a positive integer, got {points!r}")
    return points


def validate_mood(mood: Any) -> int:
    if isinstance(mood, bool) or not isinstance(mood, int) or not MOOD_MIN <= mood <= MOOD_MAX:
        raise ValueError(f"Mood must be an integer between {MOOD_MIN} and {MOOD_MAX}, got {mood!r}")
    return mood


@dataclass
class Student:
    id: str
    name: str
    owner_id: str
    group: Maybe = ABSENT
    course: Maybe = ABSENT
    email: Maybe = ABSENT
    period: Maybe = ABSENT
    matricula: Maybe = ABSENT

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any]) -> "Student":
        return cls(
            id=doc_id,
            name=str(data.get("name") or ""),
            owner_id=str(data.get("userId") or ""),
            group=optional(data.get("group")),
            course=optional(data.get("course")),
            email=optional(data.get("email")),
            period=optional(data.get("period")),
            matricula=optional(data.get("matricula")),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "userId": self.owner_id,
            "group": to_store(self.group),
            "course": to_store(self.course),
            "email": to_store(self.email),
            "period": to_store(self.period),
            "matricula": to_store(self.matricula),
        }


@dataclass
class AttendanceRecord:
    id: str
    student_id: str
    date: str
    status: str
    owner_id: str
    period: Maybe = ABSENT

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any]) -> "AttendanceRecord":
        return cls(
            id=doc_id,
            student_id=str(data.get("studentId") or ""),
            date=str(data.get("date") or ""),
            status=str(data.get("status") or ""),
            owner_id=str(data.get("userId") or ""),
            period=optional(data.get("period")),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "studentId": self.student_id,
            "date": self.date,
            "status": self.status,
            "userId": self.owner_id,
            "period": to_store(self.period),
        }


@dataclass
class ParticipationRecord:
    id: str
    student_id: str
    date: str
    points: int
    owner_id: str
    notes: Maybe = ABSENT
    period: Maybe = ABSENT

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any]) -> "ParticipationRecord":
        try:
            points = int(data.get("points") or 0)
        except (TypeError, ValueError):
            points = 0
        return cls(
            id=doc_id,
            student_id=str(data.get("studentId") or ""),
            date=str(data.get("date") or ""),
            points=points,
            owner_id=str(data.get("userId") or ""),
            notes=optional(data.get("notes")),
            period=optional(data.get("period")),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "studentId": self.student_id,
            "date": self.date,
            "points": self.points,
            "notes": to_store(self.notes),
            "userId": self.owner_id,
            "period": to_store(self.period),
        }


@dataclass
class MoodRecord:
    id: str
    student_id: str
    date: str
    mood: int
    owner_id: str
    notes: Maybe = ABSENT
    period: Maybe = ABSENT

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any]) -> "MoodRecord":
        try:
            mood = int(data.get("mood") or 0)
        except (TypeError, ValueError):
            mood = 0
        return cls(
            id=doc_id,
            student_id=str(data.get("studentId") or ""),
            date=str(data.get("date") or ""),
            mood=mood,
            owner_id=str(data.get("userId") or ""),
            notes=optional(data.get("notes")),
            period=optional(data.get("period")),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "studentId": self.student_id,
            "date": self.date,
            "mood": self.mood,
            "notes": to_store(self.notes),
            "userId": self.owner_id,
            "period": to_store(self.period),
        }


COURSE_TEXT_FIELDS = ("summary", "objectives", "strategies", "activities", "tasks")


@dataclass
class Course:
    """Subject taught in a period, with optional planning notes."""

    id: str
    owner_id: str
    period: str
    name: str
    group: Maybe = ABSENT
    course: Maybe = ABSENT
    notes: Dict[str, Maybe] = field(default_factory=dict)

    def text(self, key: str) -> Optional[str]:
        return to_store(self.notes.get(key, ABSENT))

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any]) -> "Course":
        return cls(
            id=doc_id,
            owner_id=str(data.get("userId") or ""),
            period=str(data.get("period") or ""),
            name=str(data.get("name") or ""),
            group=optional(data.get("group")),
            course=optional(data.get("course")),
            notes={key: optional(data.get(key)) for key in COURSE_TEXT_FIELDS},
        )

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "userId": self.owner_id,
            "period": self.period,
            "name": self.name,
            "group": to_store(self.group),
            "course": to_store(self.course),
        }
        for key in COURSE_TEXT_FIELDS:
            doc[key] = self.text(key)
        return doc


__all__ = [
    "ATTENDANCE_COL",
    "ATTENDANCE_STATUSES",
    "AttendanceRecord",
    "COURSES_COL",
    "COURSE_TEXT_FIELDS",
    "Course",
    "MOOD_COL",
    "MoodRecord",
    "PARTICIPATION_COL",
    "ParticipationRecord",
    "PRESENT",
    "STUDENTS_COL",
    "Student",
    "normalize_date",
    "require_name",
    "validate_mood",
    "validate_points",
    "validate_status",
]
