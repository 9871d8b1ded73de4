"""Execution backends. The variant is picked once, by `create_backend`."""

import os
from typing import Optional

from srchd.computer.base import Computer, ComputerBackend, ExecResult, key_slug
from srchd.computer.docker import DockerBackend, DockerComputer, container_name
from srchd.computer.local import LocalBackend, LocalComputer
from srchd.computer.registry import ComputerRegistry
from srchd.config import Settings


def create_backend(settings: Settings, experiment_name: Optional[str] = None) -> ComputerBackend:
    """Build the configured backend, scoped to one experiment when a name is given."""
    if settings.backend == "docker":
        prefix = container_name("srchd", experiment_name) if experiment_name else "srchd"
        return DockerBackend(
            image=settings.docker_image,
            workdir=settings.docker_workdir,
            prefix=prefix,
        )

    root = settings.workspace_root
    if experiment_name:
        root = os.path.join(root, key_slug(experiment_name))
    return LocalBackend(root, python=settings.python)


__all__ = [
    "Computer",
    "ComputerBackend",
    "ExecResult",
    "DockerBackend",
    "DockerComputer",
    "LocalBackend",
    "LocalComputer",
    "ComputerRegistry",
    "create_backend",
]
