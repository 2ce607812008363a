#!/usr/bin/env python3
"""Process lifecycle: signals, deadlines, exit status and idle mode."""

from __future__ import annotations

import signal
import threading
from typing import Optional

from config import LifecycleMode, ProcessConfig
from logging_utils import Logger
from models import RunResult

EXIT_SUCCESS = 0


def install_signal_handlers(cancel_event: threading.Event) -> None:
    """Make SIGTERM and SIGINT request cancellation at the next stage boundary."""

    def _handler(signum, _frame) -> None:
        Logger.warn(f"received {signal.Signals(signum).name}, cancelling run")
        cancel_event.set()

    signal.signal(signal.SIGTERM, _handler)
    signal.signal(signal.SIGINT, _handler)


def arm_deadline(
    cancel_event: threading.Event, deadline_s: Optional[float]
) -> Optional[threading.Timer]:
    """Cancel the run once deadline_s seconds have passed."""
    if not deadline_s:
        return None

    def _expire() -> None:
        Logger.warn(f"deadline of {deadline_s:g}s reached, cancelling run")
        cancel_event.set()

    timer = threading.Timer(deadline_s, _expire)
    timer.daemon = True
    timer.start()
    return timer


def exit_code_for(result: RunResult, process: ProcessConfig) -> int:
    """Map a run result to the process exit status.

    Failed and partial runs use the configured failure exit code. It
    defaults to 0 so a supervisor does not restart the job on failure; the
    RUN_FAILED/RUN_PARTIAL log lines remain the failure signal.
    """
    if result.ok:
        return EXIT_SUCCESS
    return process.failure_exit_code


def idle_until_cancelled(
    cancel_event: threading.Event, process: ProcessConfig
) -> None:
    """Keep the process alive after the run when running as a long-lived task."""
    if process.lifecycle != LifecycleMode.RUN_AND_IDLE:
        return
    Logger.info("run finished, idling until terminated")
    cancel_event.wait()
