"""Exception types raised across the maintenance pipeline."""

from __future__ import annotations

from typing import Optional


class MaintenanceError(Exception):
    """Base class for errors the pipeline knows how to contain."""


class ConfigError(MaintenanceError):
    """A site document or setting is missing or invalid."""


class BuildError(MaintenanceError):
    """The site build did not produce its output directory."""


class CommandError(MaintenanceError):
    """A shell command exited with a non-zero status."""

    def __init__(self, command: list[str], returncode: int, output: str = ""):
        self.command = command
        self.returncode = returncode
        self.output = output
        detail = output.strip().splitlines()[-1] if output.strip() else "no output"
        super().__init__(f"`{' '.join(command)}` exited with {returncode}: {detail}")


_CATEGORIES = {
    403: "permission_denied",
    404: "not_found",
    405: "not_mergeable",
    422: "already_exists",
}


class HostingError(MaintenanceError):
    """A call to the hosted git platform failed."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)

    @property
    def category(self) -> str:
        return _CATEGORIES.get(self.status, "unknown")
