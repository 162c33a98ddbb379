"""Startup sequence tying the build, the watch task and the server together."""
from __future__ import annotations

import logging
import threading
from typing import Optional

from .build import BuildTrigger
from .config import DevConfig
from .server import DevServer
from .watcher import run_watch

logger = logging.getLogger(__name__)


def run(config: DevConfig, stop_event: Optional[threading.Event] = None) -> None:
    """Build once, start watching in the background, then serve until stopped.

    ``BuildLaunchError`` from the initial build and ``ServerError`` from binding
    both propagate to the caller; the initial build always happens before the
    socket is bound.
    """

    build = BuildTrigger(config)
    build.trigger()

    watch_thread = threading.Thread(
        target=run_watch,
        args=(config, build, stop_event),
        name="elmdev-watch",
        daemon=True,
    )
    watch_thread.start()

    server = DevServer(config)
    if stop_event is not None:
        threading.Thread(
            target=_shutdown_on, args=(stop_event, server), name="elmdev-stop", daemon=True
        ).start()

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Server interrupted by user")


def _shutdown_on(stop_event: threading.Event, server: DevServer) -> None:
    stop_event.wait()
    server.shutdown()
