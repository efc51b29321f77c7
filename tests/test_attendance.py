from datetime import date
from unittest.mock import MagicMock

import pytest

from src.attendance import AttendanceQuery
from src.store import MemoryCollectionClient


def test_mark_is_an_upsert_keyed_by_student_date_period():
    client = MemoryCollectionClient()
    attendance = AttendanceQuery(client, "prof", period="Verano 25")

    for status in ("present", "absent", "present", "absent"):
        attendance.mark("s1", "2025-06-02", status, "Verano 25")

    docs = list(client.collections["attendance"].values())
    assert len(docs) == 1
    assert docs[0]["status"] == "absent"
    assert len(attendance) == 1


def test_mark_without_period_matches_explicit_null():
    client = MemoryCollectionClient()
    attendance = AttendanceQuery(client, "prof")
    first = attendance.mark("s1", date(2025, 6, 2), "present")
    second = attendance.mark("s1", "2025-06-02", "absent", "")

    assert first == second
    doc = client.collections["attendance"][first]
    assert doc == {
        "studentId": "s1",
        "date": "2025-06-02",
        "status": "absent",
        "userId": "prof",
        "period": None,
    }


def test_mark_keeps_separate_records_per_period_and_day():
    client = MemoryCollectionClient()
    attendance = AttendanceQuery(client, "prof")
    attendance.mark("s1", "2025-06-02", "present", "Verano 25")
    attendance.mark("s1", "2025-06-02", "present", "Otoño 25")
    attendance.mark("s1", "2025-06-03", "present", "Verano 25")
    attendance.mark("s2", "2025-06-02", "present", "Verano 25")

    assert len(client.collections["attendance"]) == 4


def test_mark_update_touches_only_status_and_period():
    client = MagicMock()
    client.query.return_value = [("rec1", {"status": "present"})]
    attendance = AttendanceQuery(client, "prof")

    assert attendance.mark("s1", "2025-06-02", "absent", "Verano 25") == "rec1"
    client.update.assert_called_once_with("attendance", "rec1", {"status": "absent", "period": "Verano 25"})
    client.insert.assert_not_called()


def test_mark_validates_before_touching_the_store():
    client = MagicMock()
    attendance = AttendanceQuery(client, "prof")
    with pytest.raises(ValueError):
        attendance.mark("s1", "2025-06-02", "late")
    with pytest.raises(ValueError):
        attendance.mark("s1", "June 2", "present")
    client.query.assert_not_called()


def test_statuses_on_reads_current_snapshot():
    client = MemoryCollectionClient()
    attendance = AttendanceQuery(client, "prof")
    attendance.mark("s1", "2025-06-02", "present")
    attendance.mark("s2", "2025-06-02", "absent")
    attendance.mark("s1", "2025-06-03", "absent")

    assert attendance.statuses_on("2025-06-02") == {"s1": "present", "s2": "absent"}
