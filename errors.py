#!/usr/bin/env python3
"""Error taxonomy for gitlab-mirror."""

from __future__ import annotations

from typing import Optional

from models import Stage


class MirrorError(Exception):
    """Base class for every error that ends a mirror run."""

    stage = Stage.IDLE

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class LockError(MirrorError):
    """Another run already owns the destination."""

    stage = Stage.IDLE


class DiscoveryError(MirrorError):
    """Project listing could not be fetched or decoded."""

    stage = Stage.DISCOVERING


class CloneError(MirrorError):
    """Destination or project clone failed."""

    stage = Stage.CLONING

    def __init__(self, message: str, project: Optional[str] = None) -> None:
        super().__init__(message)
        self.project = project

    def __str__(self) -> str:
        if self.project:
            return f"{self.project}: {self.message}"
        return self.message


class StatusError(MirrorError):
    """Destination status could not be read."""

    stage = Stage.COLLECTING_CHANGES


class CommitError(MirrorError):
    """Staging or commit creation failed."""

    stage = Stage.COMMITTING


class PushError(MirrorError):
    """The destination remote rejected the push."""

    stage = Stage.PUSHING


class CancelledRunError(MirrorError):
    """The run was cancelled from outside before it finished."""

    def __init__(self, stage: Stage) -> None:
        super().__init__(f"run cancelled during {stage.value}")
        self.stage = stage
