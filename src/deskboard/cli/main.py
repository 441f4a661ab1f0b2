# src/deskboard/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds WorkspaceState, then starts:
- the linked-deadline sweeper in a background thread (own asyncio loop),
- the console REPL in the main thread (optional).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import threading
from dataclasses import dataclass

from ..config import get_settings
from ..core.state import WorkspaceState
from ..logging_setup import setup_logging
from ..tasks.deadline_sweeper import run_deadline_sweeper
from .bootstrap import create_workspace_state
from .console import run_console_loop

logger = logging.getLogger(__name__)


@dataclass
class SweeperBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except Exception:
            logger.debug("Failed to signal sweeper stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_sweeper_in_background(state: WorkspaceState) -> SweeperBackgroundRunner | None:
    """
    Run the deadline sweeper on its own event loop in a daemon thread,
    so the blocking console REPL can run in parallel.
    """
    interval = float(getattr(state.settings, "deadline_sweep_seconds", 60.0))
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(run_deadline_sweeper(state, interval_seconds=interval, stop_event=stop_event))
        finally:
            with contextlib.suppress(Exception):
                loop.stop()
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="deadline-sweeper", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Sweeper thread did not initialize properly.")
        return None

    logger.info("Deadline sweeper started (every %.0fs).", interval)
    return SweeperBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)


def _shutdown(state: WorkspaceState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    # KeyValueStore uses short-lived sqlite connections per call; close() is a no-op hook.
    try:
        state.store.close()
    except Exception:
        logger.debug("Store close failed.", exc_info=True)


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/deskboard")
    setup_logging(log_dir=log_dir, console_level=console_level)

    logger.info("Starting %s...", getattr(settings, "app_name", "deskboard"))

    # IMPORTANT: reuse same settings object
    state = create_workspace_state(settings=settings)

    sweeper = start_sweeper_in_background(state)

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        signal.signal(signal.SIGTERM, _handle_signal)
        if not settings.console_enabled:
            signal.signal(signal.SIGINT, _handle_signal)
    except (ValueError, OSError, AttributeError):
        # Not on the main thread, or the platform lacks SIGTERM.
        logger.debug("Signal handlers not installed.", exc_info=True)

    try:
        if settings.console_enabled:
            run_console_loop(state)
            stop_main.set()
        else:
            logger.info("Console disabled. Running the deadline sweeper only. Press Ctrl+C to stop.")
            stop_main.wait()

    finally:
        if sweeper is not None:
            sweeper.stop()
            sweeper.join(timeout=10.0)

        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
