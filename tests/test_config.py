import types

from aula import sessions
from src import config
from src.store import FirestoreCollectionClient, MemoryCollectionClient


def test_context_is_immutable_and_replaceable():
    ctx = config.ClassroomContext(owner_id="prof", period="Verano 25")
    other = ctx.with_period("Otoño 25")
    assert ctx.period == "Verano 25"
    assert other == config.ClassroomContext(owner_id="prof", period="Otoño 25")


def test_dev_mode_uses_one_memory_client(monkeypatch):
    monkeypatch.setenv("AULA_DEV", "1")
    config.reset_collection_clients()
    first = config.get_collection_client()
    assert isinstance(first, MemoryCollectionClient)
    assert config.get_collection_client() is first
    config.reset_collection_clients()


def test_firestore_client_wraps_cached_db(monkeypatch):
    monkeypatch.delenv("AULA_DEV", raising=False)
    dummy_db = object()
    monkeypatch.setattr(sessions, "db", dummy_db)
    config.reset_collection_clients()

    client = config.get_collection_client()
    assert isinstance(client, FirestoreCollectionClient)
    assert client.db is dummy_db
    assert config.get_collection_client() is client
    config.reset_collection_clients()


def test_owner_id_falls_back_to_env_then_session(monkeypatch):
    fake_st = types.SimpleNamespace(secrets={}, session_state={"owner_id": "from-session"})
    monkeypatch.setattr(config, "st", fake_st)
    monkeypatch.delenv("AULA_OWNER_ID", raising=False)
    assert config.resolve_owner_id() == "from-session"

    monkeypatch.setenv("AULA_OWNER_ID", "from-env")
    assert config.resolve_owner_id() == "from-env"


def test_current_context_reads_period_from_session(monkeypatch):
    fake_st = types.SimpleNamespace(secrets={"AULA_OWNER_ID": "prof"}, session_state={"period": "Otoño 25"})
    monkeypatch.setattr(config, "st", fake_st)
    assert config.current_context() == config.ClassroomContext(owner_id="prof", period="Otoño 25")


def test_bootstrap_state_sets_defaults(monkeypatch):
    fake_st = types.SimpleNamespace(session_state={"period": "Primavera 25"})
    monkeypatch.setattr(config, "st", fake_st)
    monkeypatch.delenv("AULA_OWNER_ID", raising=False)
    config.bootstrap_state()
    assert fake_st.session_state == {"period": "Primavera 25", "owner_id": ""}


def test_get_db_returns_assigned_client(monkeypatch):
    dummy_db = object()
    monkeypatch.setattr(sessions, "db", dummy_db)
    assert sessions.get_db() is dummy_db
