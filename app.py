"""
Streamlit app entrypoint for Men's Health Finder.

Configures logging from the ``app.log_level`` secret, reports configuration
problems, offers a clinic data refresh and builds navigation for the search
and clinic pages.
"""

import logging

import streamlit as st

st.set_page_config(page_title="Men's Health Finder", page_icon="🩺", layout="wide")

from clinic_finder.data.ingestion import refresh_clinic_data  # noqa: E402
from clinic_finder.utils.config import get_app_config, validate_configuration  # noqa: E402

logger = logging.getLogger(__name__)

_nav_items = [
    ("pages/1_Search.py", "Find a Clinic", "🔎"),
    ("pages/2_Clinic.py", "Clinic Details", "🏥"),
]


def configure_logging() -> None:
    """Configure root logging once per process from app configuration."""
    app_config = get_app_config()
    level_name = "DEBUG" if app_config["debug_mode"] else str(app_config["log_level"]).upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    root.setLevel(level)


def _build_and_run_app():
    configure_logging()

    for area, issue in validate_configuration().items():
        logger.warning(f"Configuration issue ({area}): {issue}")

    with st.sidebar:
        if st.button("🔄 Refresh clinic data", help="Reload the clinic directory from its source"):
            refresh_clinic_data()
            st.rerun()

    nav_pages = [st.Page(path, title=title, icon=icon) for path, title, icon in _nav_items]
    pg = st.navigation(nav_pages)
    pg.run()


if __name__ == "__main__":
    _build_and_run_app()
