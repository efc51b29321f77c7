from unittest.mock import MagicMock

import pytest

from src.attendance import AttendanceQuery
from src.config import ClassroomContext
from src.courses import CourseQuery
from src.store import MemoryCollectionClient, Predicate, StoreError
from src.students import StudentQuery


def _seed(client):
    client.insert("students", {"userId": "prof", "name": "Ana", "group": "G1", "course": "Math", "period": "Verano 25"})
    client.insert("students", {"userId": "prof", "name": "Bo", "group": "G2", "course": "Math", "period": "Verano 25"})
    client.insert("students", {"userId": "prof", "name": "Cy", "group": "G1", "course": "Art", "period": "Otoño 25"})
    client.insert("students", {"userId": "other", "name": "Di", "group": "G1", "course": "Math", "period": "Verano 25"})


@pytest.mark.parametrize(
    "scope, expected",
    [
        ({}, {"Ana", "Bo", "Cy"}),
        ({"group": "G1"}, {"Ana", "Cy"}),
        ({"course": "Math"}, {"Ana", "Bo"}),
        ({"period": "Verano 25"}, {"Ana", "Bo"}),
        ({"group": "G1", "course": "Math", "period": "Verano 25"}, {"Ana"}),
        ({"group": "", "course": None}, {"Ana", "Bo", "Cy"}),
        ({"group": "G3"}, set()),
    ],
)
def test_snapshot_matches_owner_and_every_filter(scope, expected):
    client = MemoryCollectionClient()
    _seed(client)
    students = StudentQuery(client, "prof", **scope)
    assert {s.name for s in students} == expected


def test_missing_owner_yields_empty_snapshot_without_subscribing():
    client = MagicMock(wraps=MemoryCollectionClient())
    students = StudentQuery(client, None, group="G1")
    assert students.items == []
    assert not students.subscribed
    client.subscribe.assert_not_called()


def test_empty_student_list_short_circuits():
    client = MagicMock(wraps=MemoryCollectionClient())
    attendance = AttendanceQuery(client, "prof", student_ids=[], period="Verano 25")
    assert attendance.items == []
    client.subscribe.assert_not_called()


def test_none_student_list_means_no_filter():
    inner = MemoryCollectionClient()
    inner.insert("attendance", {"userId": "prof", "studentId": "s1", "date": "2025-06-02", "status": "present"})
    attendance = AttendanceQuery(inner, "prof", student_ids=None)
    assert len(attendance) == 1


def test_student_ids_become_membership_filter():
    query = AttendanceQuery(MemoryCollectionClient(), None)
    preds = query.predicates("prof", {"student_ids": ["a", "b"], "period": "Verano 25"})
    assert preds == [
        Predicate("userId", "==", "prof"),
        Predicate("studentId", "in", ["a", "b"]),
        Predicate("period", "==", "Verano 25"),
    ]


def test_scope_change_releases_previous_subscription():
    inner = MemoryCollectionClient()
    _seed(inner)
    client = MagicMock(wraps=inner)
    students = StudentQuery(client, "prof", group="G1")
    assert inner.active_subscriptions == 1

    students.set_scope("prof", group="G1")
    assert client.subscribe.call_count == 1  # unchanged scope is a no-op

    students.set_scope("prof", group="G2")
    assert client.subscribe.call_count == 2
    assert inner.active_subscriptions == 1
    assert {s.name for s in students} == {"Bo"}


def test_stale_deliveries_are_ignored():
    callbacks = []
    client = MagicMock()
    client.subscribe.side_effect = lambda col, preds, cb: callbacks.append(cb) or MagicMock()

    students = StudentQuery(client, "prof", group="G1")
    students.set_scope("prof", group="G2")
    callbacks[0]([("x", {"name": "Old", "userId": "prof"})])
    assert students.items == []

    callbacks[1]([("y", {"name": "New", "userId": "prof"})])
    assert [s.name for s in students] == ["New"]


def test_snapshot_updates_only_through_store_notifications():
    client = MemoryCollectionClient()
    students = StudentQuery(client, "prof")
    seen = []
    students.add_listener(seen.append)

    students.add("Ana", group="G1")
    assert [s.name for s in students] == ["Ana"]
    assert len(seen) == 1


def test_context_manager_closes_subscription():
    client = MemoryCollectionClient()
    with StudentQuery(client, "prof") as students:
        assert client.active_subscriptions == 1
        assert students.subscribed
    assert client.active_subscriptions == 0


def test_for_context_uses_owner_and_period():
    client = MemoryCollectionClient()
    _seed(client)
    ctx = ClassroomContext(owner_id="prof", period="Otoño 25")
    students = StudentQuery.for_context(client, ctx)
    assert [s.name for s in students] == ["Cy"]


def test_unknown_scope_is_rejected():
    with pytest.raises(TypeError):
        StudentQuery(MemoryCollectionClient(), "prof", student_ids=["a"])


def test_course_query_requires_period():
    client = MagicMock(wraps=MemoryCollectionClient())
    courses = CourseQuery(client, "prof", period=None)
    assert courses.items == []
    client.subscribe.assert_not_called()


def test_failed_subscription_propagates_and_is_retried():
    client = MagicMock()
    client.subscribe.side_effect = [StoreError("unavailable"), MagicMock()]
    students = StudentQuery(client, None)

    with pytest.raises(StoreError):
        students.set_scope("prof", group="G1")
    assert not students.subscribed

    students.set_scope("prof", group="G1")
    assert students.subscribed
    assert client.subscribe.call_count == 2
