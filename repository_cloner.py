#!/usr/bin/env python3
"""Clone the destination repository and the source projects nested in it."""

from __future__ import annotations

import os
import shutil
import tempfile
from typing import Callable, Optional

import git

from config import DestinationConfig, SourceConfig, TransportConfig
from errors import CloneError
from logging_utils import Logger
from models import ProjectReference
from security import SecurityValidator
from transport import git_environment
from utils import inject_credentials, remove_tree, strip_git_metadata

ProgressSink = Callable[[str], None]


class CloneProgress(git.RemoteProgress):
    """Forward finished clone phases to a progress sink."""

    OPERATIONS = {
        git.RemoteProgress.COUNTING: "counting objects",
        git.RemoteProgress.COMPRESSING: "compressing objects",
        git.RemoteProgress.RECEIVING: "receiving objects",
        git.RemoteProgress.RESOLVING: "resolving deltas",
        git.RemoteProgress.CHECKING_OUT: "checking out files",
    }

    def __init__(self, label: str, sink: ProgressSink) -> None:
        super().__init__()
        self.label = label
        self.sink = sink

    def update(self, op_code, cur_count, max_count=None, message=""):
        if not op_code & self.END:
            return
        operation = self.OPERATIONS.get(op_code & self.OP_MASK, "transferring")
        total = f"/{int(max_count)}" if max_count else ""
        self.sink(f"{self.label}: {operation} {int(cur_count)}{total} {message}".rstrip())


class RepositoryCloner:
    """Materializes working trees for the destination and each project."""

    def __init__(
        self,
        transport: TransportConfig,
        staging_dir: str,
        progress_sink: Optional[ProgressSink] = None,
    ) -> None:
        self.transport = transport
        self.staging_dir = staging_dir
        self.progress_sink = progress_sink or Logger.debug

    @staticmethod
    def _authenticate(url: str, username: str, token: str) -> str:
        try:
            return inject_credentials(url, username, token)
        except ValueError as e:
            raise CloneError(f"cannot authenticate '{url}': {e}") from e

    def clone(self, url: str, path: str, label: Optional[str] = None) -> git.Repo:
        """Clone url into path, submodules included at any depth."""
        label = label or os.path.basename(path)
        try:
            repo = git.Repo.clone_from(
                url,
                path,
                progress=CloneProgress(label, self.progress_sink),
                env=git_environment(self.transport),
                multi_options=["--recurse-submodules"],
            )
        except git.GitCommandError as e:
            detail = SecurityValidator.sanitize_for_logging(
                (e.stderr or str(e)).strip()
            )
            raise CloneError(f"git clone failed: {detail}") from e
        except (git.GitError, OSError) as e:
            detail = SecurityValidator.sanitize_for_logging(str(e))
            raise CloneError(f"git clone failed: {detail}") from e
        return repo

    def clone_destination(self, destination: DestinationConfig, path: str) -> git.Repo:
        Logger.info("cloning destination repository")
        url = self._authenticate(
            destination.repo_url, destination.username, destination.token
        )
        repo = self.clone(url, path, label="destination")
        Logger.info(f"destination cloned to {path}")
        return repo

    def clone_project(
        self, project: ProjectReference, source: SourceConfig, destination_root: str
    ) -> str:
        """Clone a project as a plain snapshot at destination_root/<name>.

        The clone lands in a staging directory first, so a failed clone
        leaves the previous snapshot in the destination tree untouched.
        """
        try:
            name = SecurityValidator.validate_path_segment(project.name)
        except ValueError as e:
            raise CloneError(str(e), project=project.name) from e

        Logger.info(f"cloning repository {name}")
        target = os.path.join(destination_root, name)
        os.makedirs(self.staging_dir, mode=0o700, exist_ok=True)
        staging = tempfile.mkdtemp(prefix="project_", dir=self.staging_dir)
        try:
            url = self._authenticate(project.source_url, source.username, source.token)
            tree = os.path.join(staging, "tree")
            repo = self.clone(url, tree, label=name)
            repo.close()
            removed = strip_git_metadata(tree)
            Logger.debug(f"{name}: stripped {removed} git metadata entries")
            if os.path.lexists(target):
                remove_tree(target)
            shutil.move(tree, target)
        except CloneError as e:
            raise CloneError(e.message, project=name) from e
        except OSError as e:
            raise CloneError(f"failed to place snapshot: {e}", project=name) from e
        finally:
            remove_tree(staging)
        return target
