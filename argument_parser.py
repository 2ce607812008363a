#!/usr/bin/env python3
"""Command line argument parsing and configuration building."""

from __future__ import annotations

import argparse
import os
import sys
import tempfile
from typing import List, Optional, Tuple

from config import (DEFAULT_AUTHOR_EMAIL, DEFAULT_AUTHOR_NAME,
                    DEFAULT_COMMIT_MESSAGE, Config, DestinationConfig,
                    LifecycleMode, MirrorBehaviorConfig, ProcessConfig,
                    ProjectFailurePolicy, SourceConfig, TransportConfig)
from logging_utils import Logger
from security import SecurityValidator

# Exit codes
EXIT_AUTH_ERROR = 40
EXIT_MISSING_ARGUMENTS = 2

TRUTHY = {"1", "true", "yes", "on"}


def _create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        description="Mirror every GitLab project into subdirectories of one repository",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Every option marked with an environment variable can be set through it instead.

Examples:
  %(prog)s --source-url https://gitlab.company.com \\
           --dest-repo https://gitlab.company.com/mirrors/all.git
  %(prog)s --dry-run
  %(prog)s --project-failure-policy abort --failure-exit-code 1
  %(prog)s --lifecycle run-and-idle --ca-bundle /etc/ssl/company-ca.pem
        """,
    )
    return parser


def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    """Add GitLab source arguments to parser."""
    parser.add_argument(
        "--source-url",
        dest="source_url",
        help="Base URL of the source GitLab instance (or SOURCE_GITLAB_URL)",
    )
    parser.add_argument(
        "--source-token",
        dest="source_token",
        help="Source GitLab token for API and clones (or SOURCE_GITLAB_TOKEN)",
    )
    parser.add_argument(
        "--source-username",
        dest="source_username",
        help="Source GitLab username for clones (or SOURCE_GITLAB_USER)",
    )


def _add_destination_arguments(parser: argparse.ArgumentParser) -> None:
    """Add destination repository arguments to parser."""
    parser.add_argument(
        "--dest-repo",
        dest="dest_repo",
        help="HTTPS URL of the destination repository (or DEST_REPOSITORY)",
    )
    parser.add_argument(
        "--dest-token",
        dest="dest_token",
        help="Destination token for clone and push (or DEST_GITLAB_TOKEN)",
    )
    parser.add_argument(
        "--dest-username",
        dest="dest_username",
        help="Destination username for clone and push (or DEST_GITLAB_USER)",
    )
    parser.add_argument(
        "--author-name",
        dest="author_name",
        default=DEFAULT_AUTHOR_NAME,
        help=f"Author of the mirror commit (default: {DEFAULT_AUTHOR_NAME})",
    )
    parser.add_argument(
        "--author-email",
        dest="author_email",
        default=DEFAULT_AUTHOR_EMAIL,
        help=f"Author email of the mirror commit (default: {DEFAULT_AUTHOR_EMAIL})",
    )
    parser.add_argument(
        "--commit-message",
        dest="commit_message",
        default=DEFAULT_COMMIT_MESSAGE,
        help=f"Message of the mirror commit (default: '{DEFAULT_COMMIT_MESSAGE}')",
    )


def _add_transport_arguments(parser: argparse.ArgumentParser) -> None:
    """Add TLS and timeout arguments to parser."""
    parser.add_argument(
        "--insecure",
        action="store_true",
        dest="insecure",
        help="Disable TLS certificate verification for this run "
        "(or MIRROR_INSECURE=true). Credentials become interceptable.",
    )
    parser.add_argument(
        "--ca-bundle",
        dest="ca_bundle",
        help="CA bundle used to verify GitLab and git hosts (or MIRROR_CA_BUNDLE)",
    )
    parser.add_argument(
        "--api-timeout",
        dest="api_timeout_s",
        type=float,
        default=30.0,
        help="Seconds before the project listing request times out (default: 30)",
    )
    parser.add_argument(
        "--clone-stall-timeout",
        dest="clone_stall_timeout_s",
        type=int,
        default=120,
        help="Seconds a clone may stall before it is aborted (default: 120)",
    )
    parser.add_argument(
        "--push-timeout",
        dest="push_timeout_s",
        type=float,
        default=600.0,
        help="Seconds before the push is killed (default: 600)",
    )


def _add_behavior_arguments(parser: argparse.ArgumentParser) -> None:
    """Add behavior and lifecycle arguments to parser."""
    parser.add_argument(
        "--work-dir",
        dest="work_dir",
        help="Directory for ephemeral clones (or TMPDIR, default: system temp)",
    )
    parser.add_argument(
        "-d",
        "--dry-run",
        action="store_true",
        dest="dry_run",
        help="List the projects that would be mirrored without cloning",
    )
    parser.add_argument(
        "-e",
        "--exclude",
        dest="exclude",
        help="Skip projects whose path contains this pattern",
    )
    parser.add_argument(
        "--skip-archived",
        action="store_true",
        dest="skip_archived",
        help="Do not mirror archived GitLab projects",
    )
    parser.add_argument(
        "--project-failure-policy",
        dest="project_failure_policy",
        choices=[policy.value for policy in ProjectFailurePolicy],
        default=ProjectFailurePolicy.ISOLATE.value,
        help="isolate: keep mirroring when a project fails; "
        "abort: fail the whole run (default: isolate)",
    )
    parser.add_argument(
        "--no-lock",
        action="store_true",
        dest="no_lock",
        help="Do not take the per-destination run lock",
    )
    parser.add_argument(
        "--lifecycle",
        dest="lifecycle",
        choices=[mode.value for mode in LifecycleMode],
        help="run-once exits after the run, run-and-idle stays alive until "
        "terminated (or MIRROR_LIFECYCLE, default: run-once)",
    )
    parser.add_argument(
        "--failure-exit-code",
        dest="failure_exit_code",
        type=int,
        help="Exit status of a failed or partial run "
        "(or MIRROR_FAILURE_EXIT_CODE, default: 0)",
    )
    parser.add_argument(
        "--deadline",
        dest="deadline_s",
        type=float,
        help="Cancel the run after this many seconds",
    )


def _require(value: Optional[str], flag: str, env: str, missing: List[str]) -> str:
    if not value:
        missing.append(f"{flag} ({env})")
        return ""
    return value


def _get_and_validate_endpoints(args) -> Tuple[str, str, str]:
    """Resolve and validate URLs and the work directory."""
    missing: List[str] = []
    source_url = _require(
        args.source_url or os.getenv("SOURCE_GITLAB_URL"),
        "--source-url", "SOURCE_GITLAB_URL", missing,
    )
    dest_repo = _require(
        args.dest_repo or os.getenv("DEST_REPOSITORY"),
        "--dest-repo", "DEST_REPOSITORY", missing,
    )
    if missing:
        Logger.error(f"error: missing required settings: {', '.join(missing)}")
        sys.exit(EXIT_MISSING_ARGUMENTS)

    work_dir = args.work_dir or os.getenv("TMPDIR") or tempfile.gettempdir()
    try:
        validated_source_url = SecurityValidator.validate_url(
            source_url, ["https", "http"]
        )
        validated_dest_repo = SecurityValidator.validate_url(dest_repo, ["https"])
        validated_work_dir = SecurityValidator.validate_file_path(work_dir)
    except ValueError as e:
        Logger.security_event(
            "CONFIG_VALIDATION_FAILED", f"configuration validation failed: {e}"
        )
        Logger.error(f"configuration validation error: {e}")
        sys.exit(EXIT_MISSING_ARGUMENTS)

    return validated_source_url, validated_dest_repo, validated_work_dir


def _get_and_validate_credentials(args) -> Tuple[str, str, str, str]:
    """Get and validate tokens and usernames for source and destination."""
    missing: List[str] = []
    source_token = _require(
        args.source_token or os.getenv("SOURCE_GITLAB_TOKEN"),
        "--source-token", "SOURCE_GITLAB_TOKEN", missing,
    )
    source_username = _require(
        args.source_username or os.getenv("SOURCE_GITLAB_USER"),
        "--source-username", "SOURCE_GITLAB_USER", missing,
    )
    dest_token = _require(
        args.dest_token or os.getenv("DEST_GITLAB_TOKEN"),
        "--dest-token", "DEST_GITLAB_TOKEN", missing,
    )
    dest_username = _require(
        args.dest_username or os.getenv("DEST_GITLAB_USER"),
        "--dest-username", "DEST_GITLAB_USER", missing,
    )
    if missing:
        Logger.error(f"error: credentials not provided: {', '.join(missing)}")
        sys.exit(EXIT_AUTH_ERROR)

    try:
        SecurityValidator.validate_username(source_username)
        SecurityValidator.validate_username(dest_username)
    except ValueError as e:
        Logger.security_event(
            "USERNAME_VALIDATION_FAILED", f"username validation failed: {e}"
        )
        Logger.error(f"username validation error: {e}")
        sys.exit(EXIT_AUTH_ERROR)

    return source_token, source_username, dest_token, dest_username


def _build_transport(args) -> TransportConfig:
    insecure = args.insecure or (os.getenv("MIRROR_INSECURE", "").lower() in TRUTHY)
    ca_bundle = args.ca_bundle or os.getenv("MIRROR_CA_BUNDLE") or None
    try:
        if args.api_timeout_s <= 0 or args.push_timeout_s <= 0:
            raise ValueError("timeouts must be positive")
        if args.clone_stall_timeout_s <= 0:
            raise ValueError("clone stall timeout must be positive")
        if ca_bundle:
            ca_bundle = SecurityValidator.validate_file_path(ca_bundle)
            if not os.path.isfile(ca_bundle):
                raise ValueError(f"CA bundle not found: {ca_bundle}")
    except ValueError as e:
        Logger.error(f"configuration validation error: {e}")
        sys.exit(EXIT_MISSING_ARGUMENTS)

    if insecure:
        Logger.warn(
            "warning: TLS verification disabled, tokens are exposed to "
            "anyone able to intercept the connection"
        )
    return TransportConfig(
        verify_tls=not insecure,
        ca_bundle=ca_bundle,
        api_timeout_s=args.api_timeout_s,
        clone_stall_timeout_s=args.clone_stall_timeout_s,
        push_timeout_s=args.push_timeout_s,
    )


def _build_process(args) -> ProcessConfig:
    lifecycle = args.lifecycle or os.getenv("MIRROR_LIFECYCLE") or LifecycleMode.RUN_ONCE.value
    failure_exit_code = args.failure_exit_code
    try:
        mode = LifecycleMode(lifecycle)
        if failure_exit_code is None:
            failure_exit_code = int(os.getenv("MIRROR_FAILURE_EXIT_CODE", "0"))
        if not 0 <= failure_exit_code <= 255:
            raise ValueError("failure exit code must be between 0 and 255")
        if args.deadline_s is not None and args.deadline_s <= 0:
            raise ValueError("deadline must be positive")
    except ValueError as e:
        Logger.error(f"configuration validation error: {e}")
        sys.exit(EXIT_MISSING_ARGUMENTS)

    return ProcessConfig(
        lifecycle=mode,
        failure_exit_code=failure_exit_code,
        deadline_s=args.deadline_s,
    )


def parse_arguments(argv: Optional[List[str]] = None) -> Config:
    """Parse command line arguments and return configuration object."""
    parser = _create_argument_parser()
    _add_source_arguments(parser)
    _add_destination_arguments(parser)
    _add_transport_arguments(parser)
    _add_behavior_arguments(parser)

    args = parser.parse_args(argv)

    source_url, dest_repo, work_dir = _get_and_validate_endpoints(args)
    source_token, source_username, dest_token, dest_username = (
        _get_and_validate_credentials(args)
    )

    if args.exclude and len(args.exclude) > 100:
        Logger.error("configuration validation error: exclude pattern too long")
        sys.exit(EXIT_MISSING_ARGUMENTS)

    Logger.security_event(
        "CONFIG_VALIDATION", "successfully validated all configuration inputs"
    )

    return Config(
        source=SourceConfig(
            url=source_url,
            token=source_token,
            username=source_username,
        ),
        destination=DestinationConfig(
            repo_url=dest_repo,
            token=dest_token,
            username=dest_username,
            author_name=args.author_name,
            author_email=args.author_email,
            commit_message=args.commit_message,
        ),
        transport=_build_transport(args),
        behavior=MirrorBehaviorConfig(
            work_dir=work_dir,
            project_failure_policy=ProjectFailurePolicy(args.project_failure_policy),
            exclude=args.exclude,
            skip_archived=args.skip_archived,
            dry_run=args.dry_run,
            use_lock=not args.no_lock,
        ),
        process=_build_process(args),
    )
