from src.optional import ABSENT, Some, optional, to_store, value_or


def test_blank_values_become_absent():
    assert optional(None) is ABSENT
    assert optional("") is ABSENT
    assert optional("   ") is ABSENT


def test_values_are_wrapped_and_stripped():
    assert optional(" 3A ") == Some("3A")
    assert optional(0) == Some(0)


def test_optional_is_idempotent():
    wrapped = Some("x")
    assert optional(wrapped) is wrapped
    assert optional(ABSENT) is ABSENT


def test_absent_serialises_to_none():
    assert to_store(ABSENT) is None
    assert to_store(Some("G1")) == "G1"
    assert value_or(ABSENT, "N/A") == "N/A"
    assert not ABSENT
