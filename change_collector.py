#!/usr/bin/env python3
"""Detect what changed in the destination tree since its last commit."""

from __future__ import annotations

from typing import List

import git

from errors import StatusError
from logging_utils import Logger
from models import Change, ChangeKind, ChangeSet
from security import SecurityValidator


class ChangeCollector:
    """Reads git status of the destination tree without touching it."""

    def collect(self, repo: git.Repo) -> ChangeSet:
        try:
            output = repo.git.status("--porcelain", "-z", "--untracked-files=all")
        except (git.GitCommandError, git.InvalidGitRepositoryError, git.NoSuchPathError) as e:
            detail = SecurityValidator.sanitize_for_logging(str(e))
            raise StatusError(f"cannot read destination status: {detail}") from e

        changes = ChangeSet(self.parse_porcelain(output))
        Logger.info(f"repository status: {changes.summary()}")
        for change in changes:
            Logger.debug(f"{change.kind.value}: {change.path}")
        return changes

    @staticmethod
    def parse_porcelain(output: str) -> List[Change]:
        """Parse ``git status --porcelain -z`` output.

        Rename and copy entries are followed by their source path, which is
        skipped: the destination path is what gets staged.
        """
        changes: List[Change] = []
        entries = output.split("\0")
        i = 0
        while i < len(entries):
            entry = entries[i]
            i += 1
            if len(entry) < 4:
                continue
            status, path = entry[:2], entry[3:]
            if "R" in status or "C" in status:
                i += 1
            changes.append(Change(path=path, kind=ChangeCollector._kind(status)))
        return changes

    @staticmethod
    def _kind(status: str) -> ChangeKind:
        if status == "??":
            return ChangeKind.UNTRACKED
        if "D" in status:
            return ChangeKind.DELETED
        if "R" in status:
            return ChangeKind.RENAMED
        if "C" in status:
            return ChangeKind.COPIED
        if "T" in status:
            return ChangeKind.TYPE_CHANGED
        if "A" in status:
            return ChangeKind.ADDED
        return ChangeKind.MODIFIED
