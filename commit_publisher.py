#!/usr/bin/env python3
"""Stage the destination changes, commit them once and push upstream."""

from __future__ import annotations

import git

from config import DestinationConfig, TransportConfig
from errors import CommitError, PushError
from logging_utils import Logger
from models import ChangeSet
from security import SecurityValidator
from transport import git_environment

PUSH_FAILURE_FLAGS = (
    git.PushInfo.ERROR
    | git.PushInfo.REJECTED
    | git.PushInfo.REMOTE_REJECTED
    | git.PushInfo.REMOTE_FAILURE
)


class CommitPublisher:
    """Creates the single mirror commit of a run and pushes it."""

    # Paths per `git add` invocation, keeps command lines bounded
    BATCH_SIZE = 100

    def __init__(self, destination: DestinationConfig, transport: TransportConfig) -> None:
        self.destination = destination
        self.transport = transport

    @property
    def actor(self) -> git.Actor:
        return git.Actor(self.destination.author_name, self.destination.author_email)

    def _identity_environment(self) -> dict:
        return {
            "GIT_AUTHOR_NAME": self.actor.name,
            "GIT_AUTHOR_EMAIL": self.actor.email,
            "GIT_COMMITTER_NAME": self.actor.name,
            "GIT_COMMITTER_EMAIL": self.actor.email,
        }

    def stage(self, repo: git.Repo, changes: ChangeSet) -> None:
        paths = changes.paths
        for start in range(0, len(paths), self.BATCH_SIZE):
            batch = paths[start:start + self.BATCH_SIZE]
            try:
                repo.git.add("-A", "--", *batch)
            except git.GitCommandError as e:
                detail = SecurityValidator.sanitize_for_logging((e.stderr or str(e)).strip())
                raise CommitError(f"failed to stage changes: {detail}") from e
        Logger.info(f"staged {len(paths)} paths")

    def commit(self, repo: git.Repo, changes: ChangeSet) -> str:
        """Stage every changed path and create one commit. Returns its sha."""
        if not changes:
            raise CommitError("nothing to commit")
        self.stage(repo, changes)
        # Staging and committing go through the same git binary and index format
        try:
            with repo.git.custom_environment(**self._identity_environment()):
                repo.git.commit("--no-verify", "-m", self.destination.commit_message)
            commit = repo.head.commit
        except git.GitCommandError as e:
            detail = SecurityValidator.sanitize_for_logging((e.stderr or str(e)).strip())
            raise CommitError(f"failed to create commit: {detail}") from e
        except (git.GitError, ValueError, OSError) as e:
            detail = SecurityValidator.sanitize_for_logging(str(e))
            raise CommitError(f"failed to create commit: {detail}") from e
        Logger.info(
            f"committed changes: {commit.hexsha} "
            f"({self.actor.name} <{self.actor.email}>) {commit.summary}"
        )
        return commit.hexsha

    def push(self, repo: git.Repo) -> None:
        """Push the clone's branch to origin. Exactly one attempt."""
        try:
            branch = repo.active_branch.name
        except TypeError as e:
            raise PushError("destination HEAD is detached, no branch to push") from e
        try:
            origin = repo.remote("origin")
        except ValueError as e:
            raise PushError("destination has no 'origin' remote") from e

        refspec = f"refs/heads/{branch}:refs/heads/{branch}"
        Logger.info(f"pushing {branch} to origin")
        try:
            with repo.git.custom_environment(**git_environment(self.transport)):
                results = origin.push(
                    refspec=refspec,
                    kill_after_timeout=self.transport.push_timeout_s,
                )
        except git.GitCommandError as e:
            detail = SecurityValidator.sanitize_for_logging((e.stderr or str(e)).strip())
            raise PushError(f"git push failed: {detail}") from e

        if not results:
            raise PushError("git push reported no result")
        for info in results:
            if info.flags & PUSH_FAILURE_FLAGS:
                summary = SecurityValidator.sanitize_for_logging(info.summary.strip())
                raise PushError(f"push of {branch} rejected: {summary}")
        Logger.info(f"pushed {branch} to origin")
