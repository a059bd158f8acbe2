import sys
from pathlib import Path

import pytest

# Ensure package root is importable when tests are executed directly
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

_SETTINGS_ENV = (
    "TMDB_API_KEY",
    "TMDB_LANGUAGE",
    "IMDB_MAX_RPS",
    "POSTER_CONCURRENCY",
    "CACHE_FILE",
    "HTTP_TIMEOUT",
    "CACHE_FLUSH_DELAY",
    "SHUTDOWN_GRACE",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolated_settings_env(monkeypatch):
    """Keep developer environment variables from leaking into settings."""

    for name in _SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
