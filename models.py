#!/usr/bin/env python3
"""Data model for a mirror run."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional


class Stage(Enum):
    """Pipeline stages, in execution order."""
    IDLE = "idle"
    DISCOVERING = "discovering"
    CLONING = "cloning"
    COLLECTING_CHANGES = "collecting_changes"
    COMMITTING = "committing"
    PUSHING = "pushing"
    CLEANING_UP = "cleaning_up"
    DONE = "done"
    FAILED = "failed"


class RunStatus(Enum):
    """Outcome of a mirror run."""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class ChangeKind(Enum):
    """Kind of difference reported by git status."""
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    UNTRACKED = "untracked"
    RENAMED = "renamed"
    COPIED = "copied"
    TYPE_CHANGED = "type_changed"


@dataclass(frozen=True)
class ProjectReference:
    """One mirrorable repository as reported by the source."""
    name: str
    source_url: str


@dataclass(frozen=True)
class Change:
    path: str
    kind: ChangeKind


@dataclass
class ChangeSet:
    """Paths of the destination tree that differ from its last commit."""
    changes: List[Change] = field(default_factory=list)

    @property
    def paths(self) -> List[str]:
        return [change.path for change in self.changes]

    def __iter__(self) -> Iterator[Change]:
        return iter(self.changes)

    def __len__(self) -> int:
        return len(self.changes)

    def __bool__(self) -> bool:
        return bool(self.changes)

    def summary(self) -> str:
        counts: dict = {}
        for change in self.changes:
            counts[change.kind.value] = counts.get(change.kind.value, 0) + 1
        if not counts:
            return "clean"
        return ", ".join(f"{kind}={count}" for kind, count in sorted(counts.items()))


@dataclass(frozen=True)
class ProjectFailure:
    name: str
    cause: str


@dataclass
class RunResult:
    """What a run reports back to the deployment layer."""
    status: RunStatus
    stage: Stage
    cause: Optional[str] = None
    error: Optional[str] = None
    commit_sha: Optional[str] = None
    projects_total: int = 0
    failed_projects: List[ProjectFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == RunStatus.SUCCESS

    @classmethod
    def failed(
        cls,
        stage: Stage,
        cause: str,
        error: Optional[str] = None,
        projects_total: int = 0,
        failed_projects: Optional[List[ProjectFailure]] = None,
    ) -> "RunResult":
        return cls(
            status=RunStatus.FAILED,
            stage=stage,
            cause=cause,
            error=error,
            projects_total=projects_total,
            failed_projects=list(failed_projects or []),
        )
