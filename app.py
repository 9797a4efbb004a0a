# app.py
# Entry point:  streamlit run app.py
from __future__ import annotations

import logging

import streamlit as st

from core.settings import load_settings

settings = load_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

st.set_page_config(page_title="Student Management System", page_icon="🎓", layout="wide")

page = st.navigation(
    [st.Page("screens/students/page.py", title="Students", icon="👨‍🎓", default=True)],
    position="hidden",
)
page.run()
