"""Attendance records: one per (student, date, period)."""

from __future__ import annotations

from typing import Optional

from .live_query import LiveQuery
from .models import ATTENDANCE_COL, AttendanceRecord, DateLike, normalize_date, validate_status
from .optional import optional, to_store
from .store import EQUALS, Predicate


class AttendanceQuery(LiveQuery[AttendanceRecord]):
    collection = ATTENDANCE_COL
    entity = AttendanceRecord
    scope_fields = {"student_ids": "studentId", "period": "period"}

    def mark(self, student_id: str, day: DateLike, status: str, period: Optional[str] = None) -> Optional[str]:
        """Insert or update the record for ``(student_id, day, period)``.

        Returns the id of the written record.  The existence check and the
        write are separate calls, so two concurrent marks of the same key may
        both insert.
        """

        owner_id = self._owner_or_warn("mark")
        if owner_id is None:
            return None
        status = validate_status(status)
        day = normalize_date(day)
        stored_period = to_store(optional(period))

        existing = self.client.query(
            self.collection,
            [
                Predicate("userId", EQUALS, owner_id),
                Predicate("studentId", EQUALS, student_id),
                Predicate("date", EQUALS, day),
                Predicate("period", EQUALS, stored_period),
            ],
        )
        if existing:
            doc_id = existing[0][0]
            self.client.update(self.collection, doc_id, {"status": status, "period": stored_period})
            return doc_id

        record = AttendanceRecord(
            id="",
            student_id=student_id,
            date=day,
            status=status,
            owner_id=owner_id,
            period=optional(period),
        )
        return self.client.insert(self.collection, record.to_document())

    def statuses_on(self, day: DateLike) -> dict:
        """Return ``{student_id: status}`` for ``day`` from the current snapshot."""

        day = normalize_date(day)
        return {record.student_id: record.status for record in self.items if record.date == day}


__all__ = ["AttendanceQuery"]
