"""Student roster: live query, mutations and CSV import.

Deleting a student also deletes every attendance, participation and mood
record that references it.  The dependent deletions are independent writes
without a transaction, so a failure part-way leaves orphaned records; the
failure is logged and reported to the caller as a :class:`StoreError`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, IO, Iterable, List, Mapping, Optional, Union

import pandas as pd

from .live_query import LiveQuery
from .models import (
    ATTENDANCE_COL,
    MOOD_COL,
    PARTICIPATION_COL,
    STUDENTS_COL,
    Student,
    require_name,
)
from .optional import ABSENT, Maybe, optional, to_store
from .store import EQUALS, Predicate, StoreError

DEPENDENT_COLLECTIONS = (ATTENDANCE_COL, PARTICIPATION_COL, MOOD_COL)


@dataclass
class StudentDraft:
    """Fields for a student that has not been stored yet."""

    name: str
    group: Maybe = ABSENT
    course: Maybe = ABSENT
    email: Maybe = ABSENT
    period: Maybe = ABSENT
    matricula: Maybe = ABSENT

    @classmethod
    def build(
        cls,
        name: str,
        group: Any = None,
        course: Any = None,
        email: Any = None,
        period: Any = None,
        matricula: Any = None,
    ) -> "StudentDraft":
        return cls(
            name=require_name(name),
            group=optional(group),
            course=optional(course),
            email=optional(email),
            period=optional(period),
            matricula=optional(matricula),
        )

    def fields(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "group": to_store(self.group),
            "course": to_store(self.course),
            "email": to_store(self.email),
            "period": to_store(self.period),
            "matricula": to_store(self.matricula),
        }


class StudentQuery(LiveQuery[Student]):
    """Students of one instructor, optionally narrowed by group/course/period."""

    collection = STUDENTS_COL
    entity = Student
    scope_fields = {"group": "group", "course": "course", "period": "period"}

    def add(self, name: str, group=None, course=None, email=None, period=None, matricula=None) -> Optional[str]:
        owner_id = self._owner_or_warn("add")
        if owner_id is None:
            return None
        draft = StudentDraft.build(name, group, course, email, period, matricula)
        return self.client.insert(self.collection, {**draft.fields(), "userId": owner_id})

    def add_batch(self, drafts: Iterable[StudentDraft]) -> List[str]:
        owner_id = self._owner_or_warn("add_batch")
        if owner_id is None:
            return []
        documents = [{**draft.fields(), "userId": owner_id} for draft in drafts]
        if not documents:
            return []
        return self.client.batch_insert(self.collection, documents)

    def update(self, student_id: str, name: str, group=None, course=None, email=None, period=None, matricula=None) -> None:
        draft = StudentDraft.build(name, group, course, email, period, matricula)
        self.client.update(self.collection, student_id, draft.fields())

    def delete(self, student_id: str) -> int:
        """Delete ``student_id`` and its dependent records.

        Returns the number of dependent records removed.
        """

        self.client.delete(self.collection, student_id)

        removed = 0
        failures = 0
        for collection in DEPENDENT_COLLECTIONS:
            try:
                docs = self.client.query(collection, [Predicate("studentId", EQUALS, student_id)])
            except StoreError:
                logging.exception("Could not list %s records of student %s", collection, student_id)
                failures += 1
                continue
            for doc_id, _ in docs:
                try:
                    self.client.delete(collection, doc_id)
                    removed += 1
                except StoreError:
                    logging.exception("Could not delete %s/%s", collection, doc_id)
                    failures += 1
        if failures:
            raise StoreError(
                f"Student {student_id} deleted but {failures} dependent deletion(s) failed"
            )
        return removed

    def import_roster(
        self,
        source: Union[str, IO[str], pd.DataFrame],
        period: Optional[str] = None,
        course: Optional[str] = None,
        group: Optional[str] = None,
    ) -> List[str]:
        """Add every student of a roster CSV.

        Non-blank ``period``, ``course`` and ``group`` are stamped onto every
        student and take precedence over the matching CSV columns.
        """

        drafts = parse_roster_csv(source)
        overrides = {
            name: optional(value)
            for name, value in (("period", period), ("course", course), ("group", group))
        }
        for draft in drafts:
            for name, value in overrides.items():
                if value:
                    setattr(draft, name, value)
        return self.add_batch(drafts)


# ---------------------------------------------------------------------------
# Roster CSV
# ---------------------------------------------------------------------------


ROSTER_COLUMNS: Mapping[str, List[str]] = {
    "name": ["name", "nombre", "student", "estudiante"],
    "group": ["group", "grupo"],
    "course": ["course", "curso"],
    "email": ["email", "correo", "e-mail"],
    "matricula": ["matricula", "matrícula", "student id"],
}


def _cell(row: Mapping[str, Any], column: Optional[str]) -> Any:
    if column is None:
        return None
    value = row.get(column)
    if value is None or pd.isna(value):
        return None
    return str(value).strip()


def parse_roster_csv(source: Union[str, IO[str], pd.DataFrame]) -> List[StudentDraft]:
    """Return student drafts from a roster CSV.

    ``source`` may be a path, a file object or an already loaded
    ``DataFrame``.  Headers are matched case-insensitively; a ``name`` column
    (or one of its aliases) is required, rows without a name are skipped.
    """

    df = source if isinstance(source, pd.DataFrame) else pd.read_csv(source, dtype=str)
    df = df.rename(columns={c: str(c).strip().lower() for c in df.columns})

    columns = {
        key: next((c for c in candidates if c in df.columns), None)
        for key, candidates in ROSTER_COLUMNS.items()
    }
    if columns["name"] is None:
        raise ValueError(
            f"Roster is missing a name column. Found: {list(df.columns)}; "
            f"need one of {ROSTER_COLUMNS['name']}."
        )

    drafts: List[StudentDraft] = []
    for row in df.to_dict(orient="records"):
        name = _cell(row, columns["name"])
        if not name:
            continue
        drafts.append(
            StudentDraft.build(
                name,
                group=_cell(row, columns["group"]),
                course=_cell(row, columns["course"]),
                email=_cell(row, columns["email"]),
                matricula=_cell(row, columns["matricula"]),
            )
        )
    return drafts


__all__ = ["DEPENDENT_COLLECTIONS", "ROSTER_COLUMNS", "StudentDraft", "StudentQuery", "parse_roster_csv"]
