import pytest
import structlog

from bayes_talk.config import DeckSettings, get_settings


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Drop logging config bound to a test's (soon closed) capture stream."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def small_settings():
    """Settings small enough to build and render the whole deck quickly."""
    return DeckSettings(
        n_samples=5_000,
        num_days=5,
        avg_daily_sessions=300,
        peeking_experiments=20,
    )


@pytest.fixture
def small_env(monkeypatch):
    """Shrink the cached settings used by the CLI."""
    monkeypatch.setenv("BAYES_TALK_N_SAMPLES", "5000")
    monkeypatch.setenv("BAYES_TALK_NUM_DAYS", "5")
    monkeypatch.setenv("BAYES_TALK_AVG_DAILY_SESSIONS", "300")
    monkeypatch.setenv("BAYES_TALK_PEEKING_EXPERIMENTS", "20")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
