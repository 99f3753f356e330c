"""Thin subprocess wrapper used by the git, hugo and yarn stages."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Optional

from sitekeeper.errors import CommandError

logger = logging.getLogger(__name__)


def run(command: list[str], cwd: Optional[Path | str] = None, timeout: float = 900) -> str:
    """Run a command and return its stdout; non-zero exit raises CommandError."""
    logger.debug("$ %s (cwd=%s)", " ".join(command), cwd or ".")
    try:
        proc = subprocess.run(
            command,
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        raise CommandError(command, 127, str(e)) from e
    except subprocess.TimeoutExpired as e:
        raise CommandError(command, -1, f"timed out after {timeout}s") from e

    if proc.returncode != 0:
        raise CommandError(command, proc.returncode, (proc.stderr or "") + (proc.stdout or ""))
    return proc.stdout
