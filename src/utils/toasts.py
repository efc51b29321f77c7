import logging
from typing import Set

import streamlit as st

from src.store import StoreError


_RECENT_TOASTS_KEY = "__recent_toasts__"


def _already_toasted(msg: str) -> bool:
    shown: Set[str] = st.session_state.setdefault(_RECENT_TOASTS_KEY, set())
    if msg in shown:
        return True
    shown.add(msg)
    return False


def toast_once(msg: str, icon: str) -> None:
    """Show a toast message only once per session.

    Parameters
    ----------
    msg:
        The message to display.
    icon:
        The icon to display with the toast.
    """
    if not _already_toasted(msg):
        st.toast(msg, icon=icon)


def toast_ok(msg: str) -> None:
    st.toast(msg, icon="✅")


def toast_err(msg: str) -> None:
    st.toast(msg, icon="❌")


def toast_warn(msg: str) -> None:
    st.toast(msg, icon="⚠️")


def report_failure(action: str, exc: Exception) -> None:
    """Tell the instructor that ``action`` failed.

    Store failures are logged with their traceback; validation errors are
    only shown, since the message already says what to fix.
    """
    if isinstance(exc, StoreError):
        logging.error("%s failed", action, exc_info=exc)
        toast_err(f"{action}: no se pudo guardar ({exc})")
    else:
        toast_warn(f"{action}: {exc}")


def rerun_without_toast() -> None:
    """Increment ``__refresh`` and flag a rerun without notifying the user."""
    st.session_state["__refresh"] = st.session_state.get("__refresh", 0) + 1
    st.session_state["need_rerun"] = True


def refresh_with_toast(msg: str = "¡Guardado!") -> None:
    """Bump ``__refresh`` so the page re-renders and confirm the save."""
    rerun_without_toast()
    toast_ok(msg)
