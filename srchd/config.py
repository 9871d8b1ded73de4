"""Runtime settings, read once at startup."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

CACHE_DIR = Path.home() / ".cache" / "srchd"

BACKENDS = ("local", "docker")


def default_db_path() -> str:
    return str(CACHE_DIR / "srchd.db")


def default_workspace_root() -> str:
    return str(CACHE_DIR / "workspaces")


@dataclass
class Settings:
    db_path: str = field(default_factory=default_db_path)
    backend: str = "local"
    workspace_root: str = field(default_factory=default_workspace_root)
    python: str = "python3"
    docker_image: str = "python:3.11-slim"
    docker_workdir: str = "/home/agent"
    script_timeout: float = 60.0
    hydration_concurrency: int = 8

    def __post_init__(self):
        if self.backend not in BACKENDS:
            raise ValueError(
                f"Unknown execution backend '{self.backend}', expected one of {', '.join(BACKENDS)}"
            )
        if self.script_timeout <= 0:
            raise ValueError("script_timeout must be positive")
        if self.hydration_concurrency < 1:
            raise ValueError("hydration_concurrency must be at least 1")

    @property
    def script_timeout_ms(self) -> int:
        return int(self.script_timeout * 1000)

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            db_path=env.get("SRCHD_DB_PATH", defaults.db_path),
            backend=env.get("SRCHD_BACKEND", defaults.backend),
            workspace_root=env.get("SRCHD_WORKSPACE_ROOT", defaults.workspace_root),
            python=env.get("SRCHD_PYTHON", defaults.python),
            docker_image=env.get("SRCHD_DOCKER_IMAGE", defaults.docker_image),
            docker_workdir=env.get("SRCHD_DOCKER_WORKDIR", defaults.docker_workdir),
            script_timeout=float(env.get("SRCHD_SCRIPT_TIMEOUT", defaults.script_timeout)),
            hydration_concurrency=int(env.get("SRCHD_HYDRATION_CONCURRENCY", defaults.hydration_concurrency)),
        )
