import logging

import pytest

from servicehub.config.environment import Environment


@pytest.fixture(scope="session", autouse=True)
def _silence_noisy_loggers():
    """Reduce noisy third-party logs during tests."""
    for name in ("aiosqlite", "aiomysql", "pymongo", "httpx", "httpcore", "websockets"):
        logger = logging.getLogger(name)
        logger.setLevel(logging.ERROR)
        logger.propagate = False


@pytest.fixture(autouse=True)
def _isolated_identity(monkeypatch, tmp_path):
    """Keep tests independent of the developer's environment and working directory."""
    for key in ("SERVICEHUB_ENV", "ENV", "SERVICEHUB_APP_NAME", "SERVICEHUB_APP_VERSION"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def production_env() -> Environment:
    return Environment.production()


@pytest.fixture
def development_env() -> Environment:
    return Environment.development()
