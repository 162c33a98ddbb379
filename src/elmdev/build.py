"""Fire-and-forget launcher for the Elm compiler."""
from __future__ import annotations

import logging
import subprocess

from .config import DevConfig

logger = logging.getLogger(__name__)


class BuildLaunchError(Exception):
    """Raised when the operating system could not start the compiler."""


class BuildTrigger:
    """Starts the compiler without waiting for it to finish.

    The compiler's exit status and output are never observed: it writes to the
    terminal and eventually overwrites the bundle on disk. Overlapping calls
    start overlapping compiler processes.
    """

    def __init__(self, config: DevConfig):
        self._config = config
        self.launches = 0

    def trigger(self) -> subprocess.Popen:
        args = self._config.compiler_args()
        logger.info("Compiling Elm")
        logger.debug("Launching %s", " ".join(args))
        try:
            process = subprocess.Popen(args)
        except OSError as exc:
            raise BuildLaunchError(f"Unable to launch '{self._config.compiler}': {exc}") from exc
        self.launches += 1
        return process
