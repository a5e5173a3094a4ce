import os
import sys
from typing import Any, Dict


def _is_running_under_pytest() -> bool:
    """Detect pytest presence from command-line arguments or environment.

    PYTEST_CURRENT_TEST is set in every pytest worker (including xdist),
    sys.argv covers the main process before the first test starts.
    """
    if "PYTEST_CURRENT_TEST" in os.environ:
        return True
    return any(arg and "pytest" in str(arg).lower() for arg in sys.argv)


RUNNING_PYTEST = _is_running_under_pytest()


def get_system_env_value(key: str, default: Any = None) -> Any:
    """Return an environment variable value.

    Always reads the live process environment so tests can monkeypatch
    os.environ to drive configuration.
    """
    return os.environ.get(key, default)


def get_system_env() -> Dict[str, str]:
    """Return a copy of the current process environment."""
    return dict(os.environ)
