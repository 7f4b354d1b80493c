"""
Tests for the Streamlit page, run headless through AppTest.

The app runs on the in-memory store; nothing remote is touched.
"""

import pytest
from pathlib import Path

import streamlit as st
from streamlit.testing.v1 import AppTest

from charge_scheduler.config import get_settings


APP_PATH = str(Path(__file__).resolve().parent.parent / "app" / "main.py")


def _by_label(widgets, label):
    return next(w for w in widgets if w.label == label)


@pytest.fixture
def app(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.delenv("UNSETTLE_POLICY", raising=False)
    get_settings.cache_clear()
    st.cache_resource.clear()

    at = AppTest.from_file(APP_PATH, default_timeout=30)
    at.run()
    yield at

    st.cache_resource.clear()
    get_settings.cache_clear()


class TestNewChargeForm:

    def test_day_of_month_is_shown_before_submit(self, app):
        """Widgets inside a form only rerun on submit, so none are conditional."""
        labels = [s.label for s in app.selectbox]
        assert "Frequency" in labels
        assert "Day of Month (monthly)" in labels
        assert "Day of Week" not in labels

    def test_client_text_is_escaped_in_cards(self, app):
        _by_label(app.text_input, "Client Name *").input("<b>Ana</b>")
        _by_label(app.text_input, "Reference *").input("<i>Room 2</i>")
        _by_label(app.text_input, "Amount *").input("150.00")
        _by_label(app.button, "📅 Schedule Charge").click()
        app.run()

        assert not app.exception
        cards = [m.value for m in app.markdown if 'class="charge-card' in m.value]
        assert len(cards) == 1
        assert "&lt;b&gt;Ana&lt;/b&gt;" in cards[0]
        assert "&lt;i&gt;Room 2&lt;/i&gt;" in cards[0]
        assert "<b>Ana</b>" not in cards[0]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
