"""Process and host identity reported to a service registry."""

from __future__ import annotations

import os
import platform
import socket
import sys
import time
import tomllib
from pathlib import Path
from typing import Any, Optional

import psutil
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from servicehub.config.env_guard import get_system_env_value
from servicehub.config.logging_config import get_logger

log = get_logger(__name__)

DEFAULT_NAME = "unknown"
DEFAULT_VERSION = "0.0.0"


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class MemoryUsage(_WireModel):
    rss: int
    vms: int


class ServiceInfo(_WireModel):
    name: str
    version: str
    hostname: str
    platform: str
    arch: str
    python_version: str
    pid: int
    uptime: int
    memory: MemoryUsage
    timestamp: int
    metadata: Optional[dict[str, Any]] = None


class UnregisterPayload(_WireModel):
    name: str
    version: str
    hostname: str
    pid: int
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))


def read_project_metadata(path: Optional[Path] = None) -> tuple[str, str]:
    """Name and version from the [project] table of a pyproject.toml.

    Falls back to ("unknown", "0.0.0") when the file is missing or unreadable.
    """
    path = path or Path.cwd() / "pyproject.toml"
    if not path.exists():
        log.debug(f"{path} not found, using default service identity")
        return DEFAULT_NAME, DEFAULT_VERSION
    try:
        with path.open("rb") as f:
            project = tomllib.load(f).get("project", {})
    except (OSError, tomllib.TOMLDecodeError) as e:
        log.error(f"Failed to read {path}: {e}")
        return DEFAULT_NAME, DEFAULT_VERSION
    return str(project.get("name") or DEFAULT_NAME), str(project.get("version") or DEFAULT_VERSION)


def resolve_identity(name: Optional[str] = None, version: Optional[str] = None) -> tuple[str, str]:
    """Service name and version.

    Priority: explicit arguments, SERVICEHUB_APP_NAME / SERVICEHUB_APP_VERSION,
    pyproject.toml in the working directory, defaults.
    """
    name = name or get_system_env_value("SERVICEHUB_APP_NAME")
    version = version or get_system_env_value("SERVICEHUB_APP_VERSION")
    if name and version:
        return name, version
    project_name, project_version = read_project_metadata()
    return name or project_name, version or project_version


def collect_service_info(name: str, version: str, metadata: Optional[dict[str, Any]] = None) -> ServiceInfo:
    process = psutil.Process(os.getpid())
    memory = process.memory_info()
    return ServiceInfo(
        name=name,
        version=version,
        hostname=socket.gethostname(),
        platform=sys.platform,
        arch=platform.machine(),
        python_version=platform.python_version(),
        pid=process.pid,
        uptime=max(0, int(time.time() - process.create_time())),
        memory=MemoryUsage(rss=memory.rss, vms=memory.vms),
        timestamp=int(time.time() * 1000),
        metadata=metadata or None,
    )
