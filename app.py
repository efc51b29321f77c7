"""Streamlit entry point: ``streamlit run app.py``."""

import logging

import streamlit as st

from src.config import AVAILABLE_PERIODS, DEFAULT_PERIOD, bootstrap_state, current_context, get_collection_client
from src.ui.pages import PAGES

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def sidebar() -> str:
    with st.sidebar:
        st.title("Mi escuela Fav")
        page = st.radio("Navegación", list(PAGES), label_visibility="collapsed")
        periods = AVAILABLE_PERIODS or [DEFAULT_PERIOD]
        current = st.session_state.get("period", DEFAULT_PERIOD)
        st.session_state["period"] = st.selectbox(
            "Periodo Escolar", periods, index=periods.index(current) if current in periods else 0
        )
        if not st.session_state.get("owner_id"):
            st.session_state["owner_id"] = st.text_input("ID de instructor")
    return page


def main() -> None:
    st.set_page_config(page_title="Panel del Aula", page_icon="📊", layout="wide")
    bootstrap_state()
    page = sidebar()
    ctx = current_context()
    if not ctx.owner_id:
        st.info("Configura AULA_OWNER_ID o introduce tu ID de instructor.")
    PAGES[page](get_collection_client(), ctx)


if __name__ == "__main__":
    main()
