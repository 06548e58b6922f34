from pathlib import Path

import pytest
import streamlit as st
from streamlit.testing.v1 import AppTest

APP_PATH = str(Path(__file__).resolve().parent.parent / "app.py")


@pytest.fixture
def app(small_env):
    st.cache_resource.clear()
    at = AppTest.from_file(APP_PATH, default_timeout=60)
    yield at.run()
    st.cache_resource.clear()


def _render_failing_chart():
    from app import render_slide
    from bayes_talk.slides import Slide

    def chart():
        raise ValueError("num_days must be positive")

    render_slide(Slide(key="broken", title="Broken", body="Some text", chart=chart))


class TestNavigation:
    def test_starts_on_title_slide(self, app):
        assert not app.exception
        assert app.session_state.slide_index == 0
        assert app.main.title[0].value.startswith("Bayesian A/B Testing")

    def test_consecutive_table_of_contents_clicks(self, app):
        slides = app.sidebar.radio[1]

        slides.set_value(3).run()
        assert app.session_state.slide_index == 3
        assert app.main.title[0].value == "Beta-Binomial: Updating Is Just Addition"

        app.sidebar.radio[1].set_value(0).run()
        assert app.session_state.slide_index == 0
        assert app.main.title[0].value.startswith("Bayesian A/B Testing")

    def test_next_and_previous(self, app):
        app.main.button[1].click().run()
        assert app.session_state.slide_index == 1
        assert app.sidebar.radio[1].value == 1
        assert not app.exception

        app.main.button[0].click().run()
        assert app.session_state.slide_index == 0

    def test_sidebar_click_after_next(self, app):
        app.main.button[1].click().run()
        app.sidebar.radio[1].set_value(3).run()
        assert app.session_state.slide_index == 3


class TestErrors:
    def test_invalid_settings_are_reported(self, monkeypatch):
        monkeypatch.setenv("BAYES_TALK_NUM_DAYS", "0")
        from bayes_talk.config import get_settings

        get_settings.cache_clear()
        st.cache_resource.clear()
        try:
            at = AppTest.from_file(APP_PATH, default_timeout=60).run()
        finally:
            get_settings.cache_clear()
            st.cache_resource.clear()

        assert not at.exception
        assert "num_days" in at.error[0].value

    def test_failing_chart_is_reported(self):
        at = AppTest.from_function(_render_failing_chart, default_timeout=60).run()

        assert not at.exception
        assert at.error[0].value == "❌ num_days must be positive"
        assert at.title[0].value == "Broken"
