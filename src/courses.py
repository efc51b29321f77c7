"""Courses (subjects) taught by the instructor in a period."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .live_query import LiveQuery
from .models import COURSE_TEXT_FIELDS, COURSES_COL, Course, require_name
from .optional import optional, to_store


def _course_fields(name: str, group: Any, course: Any, texts: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(texts) - set(COURSE_TEXT_FIELDS)
    if unknown:
        raise TypeError(f"Unknown course fields: {sorted(unknown)}")
    fields = {
        "name": require_name(name),
        "group": to_store(optional(group)),
        "course": to_store(optional(course)),
    }
    for key in COURSE_TEXT_FIELDS:
        fields[key] = to_store(optional(texts.get(key)))
    return fields


class CourseQuery(LiveQuery[Course]):
    """Courses of one owner in one period; both are required."""

    collection = COURSES_COL
    entity = Course
    scope_fields = {"period": "period"}
    required_scope = ("period",)

    def add(self, name: str, group: Any = None, course: Any = None, **texts: Any) -> Optional[str]:
        owner_id = self._owner_or_warn("add")
        if owner_id is None:
            return None
        period = self.scope.get("period")
        if not period:
            logging.warning("Skipping add on %s: no period selected", self.collection)
            return None
        fields = _course_fields(name, group, course, texts)
        return self.client.insert(self.collection, {"userId": owner_id, "period": period, **fields})

    def update(self, course_id: str, name: str, group: Any = None, course: Any = None, **texts: Any) -> None:
        self.client.update(self.collection, course_id, _course_fields(name, group, course, texts))

    def delete(self, course_id: str) -> None:
        self.client.delete(self.collection, course_id)


__all__ = ["CourseQuery"]
