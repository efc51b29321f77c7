"""Participation points; several records per student and day are allowed."""

from __future__ import annotations

from typing import Optional

from .live_query import LiveQuery
from .models import PARTICIPATION_COL, DateLike, ParticipationRecord, normalize_date, validate_points
from .optional import optional


class ParticipationQuery(LiveQuery[ParticipationRecord]):
    collection = PARTICIPATION_COL
    entity = ParticipationRecord
    scope_fields = {"student_ids": "studentId", "period": "period"}

    def add(
        self,
        student_id: str,
        day: DateLike,
        points: int,
        notes: Optional[str] = None,
        period: Optional[str] = None,
    ) -> Optional[str]:
        owner_id = self._owner_or_warn("add")
        if owner_id is None:
            return None
        record = ParticipationRecord(
            id="",
            student_id=student_id,
            date=normalize_date(day),
            points=validate_points(points),
            owner_id=owner_id,
            notes=optional(notes),
            period=optional(period),
        )
        return self.client.insert(self.collection, record.to_document())


__all__ = ["ParticipationQuery"]
