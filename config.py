#!/usr/bin/env python3
"""Configuration dataclasses for gitlab-mirror."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

DEFAULT_AUTHOR_NAME = "Git Mirror Automation"
DEFAULT_AUTHOR_EMAIL = "git-mirror@localhost"
DEFAULT_COMMIT_MESSAGE = "Git mirror automation task"


class ProjectFailurePolicy(Enum):
    """What a failed project clone does to the rest of the run."""
    ISOLATE = "isolate"
    ABORT = "abort"


class LifecycleMode(Enum):
    """What the process does once the run is over."""
    RUN_ONCE = "run-once"
    RUN_AND_IDLE = "run-and-idle"


@dataclass
class SourceConfig:
    """GitLab source configuration."""
    url: str
    token: str
    username: str


@dataclass
class DestinationConfig:
    """Destination repository configuration."""
    repo_url: str
    token: str
    username: str
    author_name: str = DEFAULT_AUTHOR_NAME
    author_email: str = DEFAULT_AUTHOR_EMAIL
    commit_message: str = DEFAULT_COMMIT_MESSAGE


@dataclass
class TransportConfig:
    """TLS trust and timeouts for every network call of a run.

    verify_tls=False turns off certificate checks for the GitLab API and for
    every git clone and push of the run, which exposes the tokens to any
    host able to intercept the connection. Prefer ca_bundle for private CAs.
    """
    verify_tls: bool = True
    ca_bundle: Optional[str] = None
    api_timeout_s: float = 30.0
    clone_stall_timeout_s: int = 120
    push_timeout_s: float = 600.0


@dataclass
class MirrorBehaviorConfig:
    """Mirror run behavior configuration."""
    work_dir: str
    project_failure_policy: ProjectFailurePolicy = ProjectFailurePolicy.ISOLATE
    exclude: Optional[str] = None
    skip_archived: bool = False
    dry_run: bool = False
    use_lock: bool = True


@dataclass
class ProcessConfig:
    """How the deployment layer maps the run onto the process."""
    lifecycle: LifecycleMode = LifecycleMode.RUN_ONCE
    failure_exit_code: int = 0
    deadline_s: Optional[float] = None


@dataclass
class Config:
    """Main configuration for a mirror run."""
    source: SourceConfig
    destination: DestinationConfig
    transport: TransportConfig
    behavior: MirrorBehaviorConfig
    process: ProcessConfig
