"""Run host inspection tools and read kernel files without failing on absence."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from typing import Optional, Sequence

logger = logging.getLogger(__name__)


def has_command(name: str) -> bool:
    return shutil.which(name) is not None


def run_command(command: Sequence[str]) -> Optional[str]:
    """Run ``command`` and return its stdout, or ``None`` if it cannot run.

    A non-zero exit status is not an error here: smartctl reports drive
    conditions through a bitmask exit code while still printing valid output.
    """
    if not has_command(command[0]):
        logger.debug("%s not found in PATH", command[0])
        return None
    try:
        proc = subprocess.run(list(command), capture_output=True, text=True, errors="replace", check=False)
    except OSError as exc:
        logger.warning("Failed to run %s: %s", " ".join(command), exc)
        return None
    if proc.returncode != 0:
        logger.debug("%s exited with %d: %s", " ".join(command), proc.returncode, proc.stderr.strip())
    return proc.stdout


def read_text(path: str) -> Optional[str]:
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as handle:
            return handle.read()
    except OSError as exc:
        logger.debug("Cannot read %s: %s", path, exc)
        return None


def is_root() -> bool:
    return hasattr(os, "geteuid") and os.geteuid() == 0
