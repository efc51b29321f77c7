"""Chart series and export rows derived from record snapshots.

Everything here is a pure function of its inputs and is recomputed on every
render.  Each builder returns a :class:`ChartView` holding the chart data and
the flat rows offered as a CSV download.

The attendance and participation builders share a selection rule:

* ``student_id`` given: one student.
* ``course`` given without ``group``: one bucket per group of that course so
  the groups can be compared side by side.
* otherwise: one aggregate bucket over every student that passes the
  ``course``/``group`` filters.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from .models import PRESENT, AttendanceRecord, MoodRecord, ParticipationRecord, Student
from .optional import value_or

NO_GROUP = "Sin grupo"

PRESENT_LABEL = "Presentes"
ABSENT_LABEL = "Ausentes"
POINTS_LABEL = "Puntos de Participación Totales"

SINGLE = "student"
GROUPS = "groups"
AGGREGATE = "aggregate"


@dataclass
class Series:
    label: str
    values: List[Optional[float]]
    group: Optional[str] = None


@dataclass
class ChartData:
    labels: List[str] = field(default_factory=list)
    series: List[Series] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.series

    def to_frame(self) -> pd.DataFrame:
        """Return the chart as a frame indexed by label, one column per series.

        Every series keeps its own column even when two share a label.
        """

        return pd.DataFrame(
            list(zip(*(s.values for s in self.series))),
            index=pd.Index(self.labels, name="label"),
            columns=[s.label for s in self.series],
        )


@dataclass
class ChartView:
    chart: ChartData
    rows: List[Dict[str, Any]]
    columns: List[str]

    def to_csv(self) -> str:
        return rows_to_csv(self.rows, self.columns)


Bucket = Tuple[Optional[str], List[Student]]


def _by_name(students: Iterable[Student]) -> List[Student]:
    return sorted(students, key=lambda s: (s.name.casefold(), s.id))


def _display_names(students: Sequence[Student]) -> Dict[str, str]:
    """Map student id to a chart label; repeated names get the matrícula (or id)."""

    counts: Dict[str, int] = defaultdict(int)
    for student in students:
        counts[student.name] += 1
    return {
        s.id: s.name if counts[s.name] == 1 else f"{s.name} ({value_or(s.matricula, s.id)})"
        for s in students
    }


def _select(
    students: Sequence[Student],
    student_id: Optional[str],
    course: Optional[str],
    group: Optional[str],
) -> Tuple[str, List[Bucket]]:
    """Return the selection mode and its ``(label, students)`` buckets."""

    if student_id:
        chosen = [s for s in students if s.id == student_id]
        if not chosen:
            return SINGLE, []
        return SINGLE, [(chosen[0].name, chosen)]

    members = [
        s
        for s in students
        if (not course or value_or(s.course) == course)
        and (not group or value_or(s.group) == group)
    ]
    members = _by_name(members)

    if course and not group:
        by_group: Dict[str, List[Student]] = defaultdict(list)
        for student in members:
            by_group[value_or(student.group, NO_GROUP)].append(student)
        return GROUPS, [(name, by_group[name]) for name in sorted(by_group)]

    return AGGREGATE, [(None, members)]


def _in_scope(records: Iterable[Any], buckets: Sequence[Bucket]) -> List[Any]:
    ids = {s.id for _, members in buckets for s in members}
    return [r for r in records if r.student_id in ids]


def _prefixed(label: Optional[str], text: str) -> str:
    return f"{label} - {text}" if label else text


# ---------------------------------------------------------------------------
# Attendance
# ---------------------------------------------------------------------------


def build_attendance_view(
    records: Iterable[AttendanceRecord],
    students: Sequence[Student],
    *,
    student_id: Optional[str] = None,
    course: Optional[str] = None,
    group: Optional[str] = None,
) -> ChartView:
    """Present/absent counts per date, one pair of series per bucket."""

    mode, buckets = _select(students, student_id, course, group)
    scoped = _in_scope(records, buckets)
    dates = sorted({r.date for r in scoped})

    columns = ["Fecha"]
    if mode == SINGLE:
        columns.append("Estudiante")
    elif mode == GROUPS:
        columns.append("Grupo")
    columns += [PRESENT_LABEL, ABSENT_LABEL]

    if not dates:
        return ChartView(ChartData(), [], columns)

    series: List[Series] = []
    rows: List[Dict[str, Any]] = []
    for label, members in buckets:
        ids = {s.id for s in members}
        present = dict.fromkeys(dates, 0)
        absent = dict.fromkeys(dates, 0)
        for record in scoped:
            if record.student_id not in ids:
                continue
            if record.status == PRESENT:
                present[record.date] += 1
            else:
                absent[record.date] += 1

        series.append(Series(_prefixed(label, PRESENT_LABEL), [present[d] for d in dates], group=label))
        series.append(Series(_prefixed(label, ABSENT_LABEL), [absent[d] for d in dates], group=label))

        for day in dates:
            row: Dict[str, Any] = {"Fecha": day}
            if mode == SINGLE:
                row["Estudiante"] = label
            elif mode == GROUPS:
                row["Grupo"] = label
            row[PRESENT_LABEL] = present[day]
            row[ABSENT_LABEL] = absent[day]
            rows.append(row)

    return ChartView(ChartData(labels=dates, series=series), rows, columns)


# ---------------------------------------------------------------------------
# Participation
# ---------------------------------------------------------------------------

PARTICIPATION_COLUMNS = ["Fecha", "Estudiante", "Matrícula", "Grupo", "Puntos de Participación", "Notas"]


def build_participation_view(
    records: Iterable[ParticipationRecord],
    students: Sequence[Student],
    *,
    student_id: Optional[str] = None,
    course: Optional[str] = None,
    group: Optional[str] = None,
) -> ChartView:
    """Total points per student; students without records count as 0."""

    mode, buckets = _select(students, student_id, course, group)
    scoped = _in_scope(records, buckets)
    members = [s for _, bucket in buckets for s in bucket]
    if not members:
        return ChartView(ChartData(), [], list(PARTICIPATION_COLUMNS))

    totals = {s.id: 0 for s in members}
    for record in scoped:
        totals[record.student_id] += record.points

    names = _display_names(members)
    if mode == GROUPS:
        ordered = _by_name(members)
        labels = [names[s.id] for s in ordered]
        series = []
        for name, bucket in buckets:
            ids = {s.id for s in bucket}
            series.append(
                Series(name, [totals[s.id] if s.id in ids else None for s in ordered], group=name)
            )
    else:
        label, bucket = buckets[0]
        labels = [names[s.id] for s in bucket]
        series = [Series(label or POINTS_LABEL, [totals[s.id] for s in bucket], group=None)]

    by_id = {s.id: s for s in members}
    rows = []
    for record in sorted(scoped, key=lambda r: (r.date, by_id[r.student_id].name.casefold())):
        student = by_id[record.student_id]
        rows.append(
            {
                "Fecha": record.date,
                "Estudiante": student.name,
                "Matrícula": value_or(student.matricula, ""),
                "Grupo": value_or(student.group, ""),
                "Puntos de Participación": record.points,
                "Notas": value_or(record.notes, ""),
            }
        )

    return ChartView(ChartData(labels=labels, series=series), rows, list(PARTICIPATION_COLUMNS))


# ---------------------------------------------------------------------------
# Mood
# ---------------------------------------------------------------------------

MOOD_COLUMNS = ["Fecha", "Estudiante", "Matrícula", "Estado de Ánimo", "Notas"]


def _mean(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


def build_mood_view(
    records: Iterable[MoodRecord],
    students: Sequence[Student],
    *,
    student_id: Optional[str] = None,
    course: Optional[str] = None,
    group: Optional[str] = None,
) -> ChartView:
    """One line per student: the average mood of each day, ``None`` for gaps."""

    _, buckets = _select(students, student_id, course, group)
    members = _by_name(s for _, bucket in buckets for s in bucket)
    scoped = _in_scope(records, buckets)
    dates = sorted({r.date for r in scoped})
    if not dates:
        return ChartView(ChartData(), [], list(MOOD_COLUMNS))

    moods: Dict[str, Dict[str, List[int]]] = defaultdict(lambda: defaultdict(list))
    for record in scoped:
        moods[record.student_id][record.date].append(record.mood)

    names = _display_names(members)
    series = []
    for student in members:
        by_date = moods.get(student.id, {})
        series.append(
            Series(
                names[student.id],
                [_mean(by_date[d]) if d in by_date else None for d in dates],
                group=value_or(student.group),
            )
        )

    by_id = {s.id: s for s in members}
    rows = []
    for record in sorted(scoped, key=lambda r: (r.date, by_id[r.student_id].name.casefold())):
        student = by_id[record.student_id]
        rows.append(
            {
                "Fecha": record.date,
                "Estudiante": student.name,
                "Matrícula": value_or(student.matricula, ""),
                "Estado de Ánimo": record.mood,
                "Notas": value_or(record.notes, ""),
            }
        )

    return ChartView(ChartData(labels=dates, series=series), rows, list(MOOD_COLUMNS))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def unique_groups(students: Iterable[Student]) -> List[str]:
    return sorted({value_or(s.group) for s in students if value_or(s.group)})


def unique_courses(students: Iterable[Student]) -> List[str]:
    return sorted({value_or(s.course) for s in students if value_or(s.course)})


def rows_to_csv(rows: Sequence[Dict[str, Any]], columns: Optional[Sequence[str]] = None) -> str:
    """Return ``rows`` as CSV text with a header line."""

    df = pd.DataFrame(list(rows), columns=list(columns) if columns else None)
    return df.to_csv(index=False)


__all__ = [
    "ChartData",
    "ChartView",
    "NO_GROUP",
    "Series",
    "build_attendance_view",
    "build_mood_view",
    "build_participation_view",
    "rows_to_csv",
    "unique_courses",
    "unique_groups",
]
