"""Firestore client bootstrap for the classroom dashboard."""

import os
from typing import Optional

import firebase_admin
import streamlit as st
from firebase_admin import credentials, firestore

_db_client: Optional[firestore.Client] = None
db: Optional[firestore.Client] = None  # tests may assign a stand-in client here


def _load_credentials():
    """Return Firebase credentials from ``st.secrets`` or the environment."""

    try:
        cred_dict = dict(st.secrets["firebase"])
    except Exception:
        cred_dict = None
    if cred_dict:
        return credentials.Certificate(cred_dict)
    path = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    if path:
        return credentials.Certificate(path)
    return credentials.ApplicationDefault()


def get_db() -> firestore.Client:
    """Return a cached Firestore client."""

    global _db_client, db
    if db is not None:
        return db
    if _db_client is not None:
        db = _db_client
        return _db_client
    try:  # pragma: no cover - runtime side effects
        if not firebase_admin._apps:  # guard against re-init
            firebase_admin.initialize_app(_load_credentials())
        _db_client = firestore.client()
        db = _db_client
        return _db_client
    except Exception as e:  # pragma: no cover - streamlit UI feedback
        st.error(f"Firebase init failed: {e}")
        raise RuntimeError("Firebase initialization failed") from e


def reset_db() -> None:
    """Forget the cached client so the next :func:`get_db` reconnects."""

    global _db_client, db
    _db_client = None
    db = None
