"""
Environment Configuration Module

The Environment is an explicit value describing where the process runs
(development, production or test) together with a snapshot of the variables it
was built from. Components that change behavior by environment, such as the
production guard on cache clears, receive an Environment in their constructor
instead of reading os.environ themselves.

Sources, in order of precedence:

- Process environment variables
- `.env.<env>.local`, `.env.<env>` and `.env` files in the working directory
- Default values

The environment name comes from SERVICEHUB_ENV, then ENV. When neither is
set it is "test" under pytest and "development" otherwise.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional

from servicehub.config.env_guard import RUNNING_PYTEST, get_system_env
from servicehub.config.logging_config import get_logger
from servicehub.errors import ConfigurationError

log = get_logger(__name__)

DEVELOPMENT = "development"
PRODUCTION = "production"
TEST = "test"

ENV_VARIABLES = ("SERVICEHUB_ENV", "ENV")

_TRUTHY = {"1", "true", "yes", "on"}


def load_dotenv_files(base_dir: Optional[Path] = None) -> list[Path]:
    """Load variables from .env files based on the current environment name.

    Existing process variables are never overridden. Returns the files that
    were found and loaded.
    """
    from dotenv import load_dotenv

    base_dir = base_dir or Path.cwd()
    env_name = _detect_env_name(get_system_env()) or _default_env_name()

    env_files = [
        base_dir / ".env",
        base_dir / f".env.{env_name}",
        base_dir / f".env.{env_name}.local",
    ]

    loaded = []
    for env_file in env_files:
        if env_file.exists():
            load_dotenv(env_file, override=False)
            loaded.append(env_file)
            log.debug(f"Loaded environment file {env_file}")
    return loaded


def _detect_env_name(variables: Mapping[str, str]) -> Optional[str]:
    for key in ENV_VARIABLES:
        value = variables.get(key)
        if value:
            return value.strip().lower()
    return None


def _default_env_name() -> str:
    return TEST if RUNNING_PYTEST else DEVELOPMENT


class Environment:
    """
    Deployment environment and typed access to configuration variables.

    Instances are immutable snapshots: mutating os.environ after construction
    does not change an existing Environment.

    Example:
        env = Environment.from_env()
        if env.is_production():
            ...
        port = env.get("PORT", 8080)
    """

    def __init__(self, name: str = DEVELOPMENT, variables: Optional[Mapping[str, str]] = None):
        self._name = (name or DEVELOPMENT).strip().lower()
        self._variables: dict[str, str] = dict(variables or {})

    @classmethod
    def from_env(cls, load_files: bool = True, base_dir: Optional[Path] = None) -> "Environment":
        """Build an Environment from the process environment.

        Args:
            load_files: Load .env files before reading the process environment.
            base_dir: Directory holding the .env files (defaults to cwd).
        """
        if load_files:
            load_dotenv_files(base_dir)
        variables = get_system_env()
        return cls(_detect_env_name(variables) or _default_env_name(), variables)

    @classmethod
    def production(cls, variables: Optional[Mapping[str, str]] = None) -> "Environment":
        return cls(PRODUCTION, variables)

    @classmethod
    def development(cls, variables: Optional[Mapping[str, str]] = None) -> "Environment":
        return cls(DEVELOPMENT, variables)

    @classmethod
    def testing(cls, variables: Optional[Mapping[str, str]] = None) -> "Environment":
        return cls(TEST, variables)

    @property
    def name(self) -> str:
        return self._name

    def is_production(self) -> bool:
        return self._name == PRODUCTION

    def is_development(self) -> bool:
        return self._name == DEVELOPMENT

    def is_test(self) -> bool:
        return self._name == TEST

    def get(self, key: str, default: Any = None) -> Any:
        """Return a variable, coerced to the type of ``default`` when given.

        Booleans accept 1/true/yes/on (case-insensitive), numbers are parsed
        with int() or float().
        """
        value = self._variables.get(key)
        if value is None:
            return default

        if isinstance(default, bool):
            return value.strip().lower() in _TRUTHY
        if isinstance(default, int):
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"Environment variable '{key}' is not an integer: {value!r}") from e
        if isinstance(default, float):
            try:
                return float(value)
            except ValueError as e:
                raise ConfigurationError(f"Environment variable '{key}' is not a number: {value!r}") from e
        return value

    def require(self, key: str) -> str:
        """Return a variable or raise ConfigurationError when unset or empty."""
        value = self.get(key)
        if value is None or value == "":
            raise ConfigurationError(f"Required environment variable '{key}' is not set")
        return value

    def __repr__(self) -> str:
        return f"Environment(name={self._name!r})"
