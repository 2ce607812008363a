#!/usr/bin/env python3
"""Main orchestrator for mirroring GitLab projects into one repository."""

from __future__ import annotations

import os
import tempfile
import threading
from typing import List, Optional, Set

from change_collector import ChangeCollector
from commit_publisher import CommitPublisher
from config import Config, ProjectFailurePolicy
from errors import CancelledRunError, CloneError
from gitlab_source import GitLabSource
from logging_utils import Logger
from models import (ProjectFailure, ProjectReference, RunResult, RunStatus,
                    Stage)
from repository_cloner import RepositoryCloner
from security import SecurityValidator
from utils import RunLock, lock_path_for, remove_tree


class MirrorOrchestrator:
    """Runs one mirror pass: discover, clone, collect, commit, push, clean up.

    Stages run strictly in order and the first error ends the run. Project
    clone failures are the only exception, governed by the configured
    ProjectFailurePolicy.
    """

    def __init__(self, cfg: Config, cancel_event: Optional[threading.Event] = None) -> None:
        self.cfg = cfg
        self.cancel_event = cancel_event or threading.Event()
        self.stage = Stage.IDLE
        self.run_dir: Optional[str] = None
        self.failed_projects: List[ProjectFailure] = []
        self.projects_total = 0

        os.makedirs(cfg.behavior.work_dir, mode=0o700, exist_ok=True)
        self.lister = GitLabSource(cfg.source, cfg.transport)
        self.cloner = RepositoryCloner(
            cfg.transport, staging_dir=os.path.join(cfg.behavior.work_dir, "staging")
        )
        self.collector = ChangeCollector()
        self.publisher = CommitPublisher(cfg.destination, cfg.transport)

    def run(self) -> RunResult:
        lock: Optional[RunLock] = None
        try:
            if self.cfg.behavior.use_lock:
                lock = RunLock(
                    lock_path_for(self.cfg.behavior.work_dir, self.cfg.destination.repo_url)
                )
                lock.acquire()
            try:
                result = self._run_pipeline()
            finally:
                self._cleanup()
        except Exception as e:
            result = self._failure(e)
        finally:
            if lock is not None:
                lock.release()

        self._report(result)
        return result

    def _run_pipeline(self) -> RunResult:
        self._enter(Stage.DISCOVERING)
        self.lister.connect()
        projects = self.lister.list_projects(
            exclude=self.cfg.behavior.exclude,
            skip_archived=self.cfg.behavior.skip_archived,
        )
        self.projects_total = len(projects)

        if self.cfg.behavior.dry_run:
            self._log_plan(projects)
            return self._finish(commit_sha=None)

        self._enter(Stage.CLONING)
        self.run_dir = tempfile.mkdtemp(prefix="run_", dir=self.cfg.behavior.work_dir)
        self.cloner.staging_dir = os.path.join(self.run_dir, "staging")
        dest_path = os.path.join(self.run_dir, "dest")
        repo = self.cloner.clone_destination(self.cfg.destination, dest_path)
        try:
            self._clone_projects(projects, dest_path)

            self._enter(Stage.COLLECTING_CHANGES)
            changes = self.collector.collect(repo)

            if not changes:
                Logger.info("nothing to commit, destination already up to date")
                return self._finish(commit_sha=None)

            self._enter(Stage.COMMITTING)
            sha = self.publisher.commit(repo, changes)

            self._enter(Stage.PUSHING)
            self.publisher.push(repo)
            return self._finish(commit_sha=sha)
        finally:
            repo.close()

    def _clone_projects(self, projects: List[ProjectReference], dest_path: str) -> None:
        seen: Set[str] = set()
        total = len(projects)
        for idx, project in enumerate(projects, start=1):
            self._check_cancelled()
            Logger.info(f"[{idx}/{total}] mirror: {project.name}")
            try:
                if project.name in seen:
                    raise CloneError(
                        "duplicate project name, keeping the first project with this name",
                        project=project.name,
                    )
                seen.add(project.name)
                self.cloner.clone_project(project, self.cfg.source, dest_path)
            except CloneError as e:
                if self.cfg.behavior.project_failure_policy == ProjectFailurePolicy.ABORT:
                    raise
                Logger.error(f"project clone failed, continuing without it: {e}")
                self.failed_projects.append(
                    ProjectFailure(name=project.name, cause=e.message)
                )

    def _enter(self, stage: Stage) -> None:
        self._check_cancelled()
        Logger.debug(f"stage: {self.stage.value} -> {stage.value}")
        self.stage = stage

    def _check_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise CancelledRunError(self.stage)

    def _cleanup(self) -> None:
        if self.run_dir is None:
            return
        previous = self.stage
        self.stage = Stage.CLEANING_UP
        try:
            remove_tree(self.run_dir)
            Logger.debug("removed run directory")
        except OSError as e:
            Logger.warn(f"failed to remove run directory {self.run_dir}: {e}")
        finally:
            self.run_dir = None
            self.stage = previous

    def _finish(self, commit_sha: Optional[str]) -> RunResult:
        self.stage = Stage.DONE
        status = RunStatus.PARTIAL if self.failed_projects else RunStatus.SUCCESS
        return RunResult(
            status=status,
            stage=Stage.DONE,
            commit_sha=commit_sha,
            projects_total=self.projects_total,
            failed_projects=list(self.failed_projects),
        )

    def _failure(self, error: Exception) -> RunResult:
        stage = self.stage
        Logger.error(f"{stage.value} failed: {error}")
        self.stage = Stage.FAILED
        return RunResult.failed(
            stage,
            SecurityValidator.sanitize_for_logging(str(error)),
            error=type(error).__name__,
            projects_total=self.projects_total,
            failed_projects=self.failed_projects,
        )

    def _log_plan(self, projects: List[ProjectReference]) -> None:
        total = len(projects)
        for idx, project in enumerate(projects, start=1):
            Logger.info(
                f"[{idx}/{total}] would mirror: {project.source_url} -> "
                f"{self.cfg.destination.repo_url}/{project.name}"
            )
        Logger.info("dry-run completed")

    def _report(self, result: RunResult) -> None:
        if result.status == RunStatus.FAILED:
            Logger.run_event(
                "RUN_FAILED",
                f"stage={result.stage.value} error={result.error} cause={result.cause}",
            )
            return
        commit = result.commit_sha or "none"
        if result.status == RunStatus.PARTIAL:
            names = ",".join(failure.name for failure in result.failed_projects)
            Logger.run_event(
                "RUN_PARTIAL",
                f"projects={result.projects_total} "
                f"failed={len(result.failed_projects)} failed_projects={names} "
                f"commit={commit}",
            )
            return
        Logger.run_event(
            "RUN_SUCCEEDED", f"projects={result.projects_total} commit={commit}"
        )
        Logger.info("mission accomplished")
