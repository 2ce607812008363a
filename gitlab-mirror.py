#!/usr/bin/env python3
"""
GitLab Mirror - Mirror every project of a GitLab instance into one
repository, one subdirectory per project.

Each run lists the projects visible to the source token, clones the
destination repository, clones every project into it as a plain snapshot,
and publishes whatever changed as a single commit pushed upstream.
It is meant to be started periodically by an external scheduler.

Copyright (c) 2025 Michele Tavella <meeghele@proton.me>
Licensed under the MIT License. See LICENSE file for details.

Author: Michele Tavella <meeghele@proton.me>
License: MIT
"""

from __future__ import annotations

import sys
import threading
from typing import NoReturn

from argument_parser import parse_arguments
from lifecycle import (arm_deadline, exit_code_for, idle_until_cancelled,
                       install_signal_handlers)
from mirror_orchestrator import MirrorOrchestrator

# Exit codes
EXIT_EXECUTION_ERROR = 1


def main() -> NoReturn:
    if __name__ != "__main__":
        sys.exit(EXIT_EXECUTION_ERROR)

    cfg = parse_arguments()
    cancel_event = threading.Event()
    install_signal_handlers(cancel_event)
    deadline = arm_deadline(cancel_event, cfg.process.deadline_s)

    result = MirrorOrchestrator(cfg, cancel_event).run()
    if deadline is not None:
        deadline.cancel()

    idle_until_cancelled(cancel_event, cfg.process)
    sys.exit(exit_code_for(result, cfg.process))


if __name__ == "__main__":
    main()
