"""Application configuration utilities.

The selected academic period and the instructor's owner id travel together
in a :class:`ClassroomContext` that pages hand to every hook.  This module
also decides which document store backs the hooks: Firestore normally, or a
process-wide in-memory store when ``AULA_DEV=1``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

import streamlit as st

from .store import CollectionClient, FirestoreCollectionClient, MemoryCollectionClient

DEFAULT_PERIODS = "Primavera 25,Verano 25,Otoño 25"


def _periods_from_env() -> List[str]:
    raw = os.environ.get("AULA_PERIODS", DEFAULT_PERIODS)
    return [p.strip() for p in raw.split(",") if p.strip()]


AVAILABLE_PERIODS = _periods_from_env()
DEFAULT_PERIOD = os.environ.get("AULA_DEFAULT_PERIOD", "Verano 25")


@dataclass(frozen=True)
class ClassroomContext:
    """Who is asking (``owner_id``) and for which academic ``period``."""

    owner_id: Optional[str]
    period: Optional[str] = None

    def with_period(self, period: Optional[str]) -> "ClassroomContext":
        return replace(self, period=period)


def dev_mode() -> bool:
    return os.environ.get("AULA_DEV") == "1"


def resolve_owner_id() -> Optional[str]:
    """Return the instructor id from secrets, the environment or the session."""

    try:
        owner = st.secrets.get("AULA_OWNER_ID")
    except Exception:  # no secrets.toml
        owner = None
    return owner or os.getenv("AULA_OWNER_ID") or st.session_state.get("owner_id") or None


def bootstrap_state() -> None:
    """Initialise default values in ``st.session_state``."""

    defaults = {
        "owner_id": os.getenv("AULA_OWNER_ID", ""),
        "period": DEFAULT_PERIOD,
    }
    for k, v in defaults.items():
        st.session_state.setdefault(k, v)


def current_context() -> ClassroomContext:
    return ClassroomContext(owner_id=resolve_owner_id(), period=st.session_state.get("period") or DEFAULT_PERIOD)


_clients: Dict[str, CollectionClient] = {}


def get_collection_client() -> CollectionClient:
    """Return the document store client for this process.

    The same instance is returned on every call so live queries kept in the
    session can tell that their backend did not change.
    """

    kind = "memory" if dev_mode() else "firestore"
    client = _clients.get(kind)
    if client is None:
        if kind == "memory":
            client = MemoryCollectionClient()
        else:
            from aula.sessions import get_db

            client = FirestoreCollectionClient(get_db())
        _clients[kind] = client
    return client


def reset_collection_clients() -> None:
    _clients.clear()


__all__ = [
    "AVAILABLE_PERIODS",
    "ClassroomContext",
    "DEFAULT_PERIOD",
    "bootstrap_state",
    "current_context",
    "dev_mode",
    "get_collection_client",
    "reset_collection_clients",
    "resolve_owner_id",
]
