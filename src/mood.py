"""Daily mood check-ins (1 = very bad, 5 = very good)."""

from __future__ import annotations

from typing import Optional

from .live_query import LiveQuery
from .models import MOOD_COL, DateLike, MoodRecord, normalize_date, validate_mood
from .optional import optional

MOOD_LABELS = {
    1: "Muy mal",
    2: "Mal",
    3: "Normal",
    4: "Bien",
    5: "Muy bien",
}


class MoodQuery(LiveQuery[MoodRecord]):
    collection = MOOD_COL
    entity = MoodRecord
    scope_fields = {"student_ids": "studentId", "period": "period"}

    def add(
        self,
        student_id: str,
        day: DateLike,
        mood: int,
        notes: Optional[str] = None,
        period: Optional[str] = None,
    ) -> Optional[str]:
        owner_id = self._owner_or_warn("add")
        if owner_id is None:
            return None
        record = MoodRecord(
            id="",
            student_id=student_id,
            date=normalize_date(day),
            mood=validate_mood(mood),
            owner_id=owner_id,
            notes=optional(notes),
            period=optional(period),
        )
        return self.client.insert(self.collection, record.to_document())


__all__ = ["MOOD_LABELS", "MoodQuery"]
