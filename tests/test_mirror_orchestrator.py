"""Tests for MirrorOrchestrator sequencing, failure policy and cleanup."""

from __future__ import annotations

import os
from unittest.mock import MagicMock

import pytest

from config import ProjectFailurePolicy
from errors import CloneError, DiscoveryError, PushError, StatusError
from mirror_orchestrator import MirrorOrchestrator
from models import (Change, ChangeKind, ChangeSet, ProjectReference,
                    RunStatus, Stage)
from utils import RunLock, lock_path_for

SVC_A = ProjectReference('svc-a', 'https://git.example/svc-a.git')
SVC_B = ProjectReference('svc-b', 'https://git.example/svc-b.git')


def _mocked(cfg, projects=None, changes=None) -> MirrorOrchestrator:
    orchestrator = MirrorOrchestrator(cfg)
    orchestrator.lister = MagicMock()
    orchestrator.lister.list_projects.return_value = list(projects or [])
    orchestrator.cloner = MagicMock()
    orchestrator.collector = MagicMock()
    orchestrator.collector.collect.return_value = (
        changes if changes is not None
        else ChangeSet([Change('svc-a/README.md', ChangeKind.UNTRACKED)])
    )
    orchestrator.publisher = MagicMock()
    orchestrator.publisher.commit.return_value = 'abc123'
    return orchestrator


def _run_dirs(cfg) -> list:
    return [d for d in os.listdir(cfg.behavior.work_dir) if d.startswith('run_')]


def test_run_happy_path_sequences_every_stage(make_config) -> None:
    cfg = make_config()
    orchestrator = _mocked(cfg, [SVC_A, SVC_B])

    result = orchestrator.run()

    assert result.status == RunStatus.SUCCESS
    assert result.stage == Stage.DONE
    assert result.commit_sha == 'abc123'
    assert result.projects_total == 2
    orchestrator.lister.connect.assert_called_once()
    orchestrator.cloner.clone_destination.assert_called_once()
    assert orchestrator.cloner.clone_project.call_count == 2
    orchestrator.collector.collect.assert_called_once()
    orchestrator.publisher.commit.assert_called_once()
    orchestrator.publisher.push.assert_called_once()
    assert _run_dirs(cfg) == []


def test_projects_are_cloned_into_destination_after_it(make_config) -> None:
    cfg = make_config()
    orchestrator = _mocked(cfg, [SVC_A, SVC_B])
    calls = []
    orchestrator.cloner.clone_destination.side_effect = (
        lambda _dest, path: calls.append(('dest', path)) or MagicMock()
    )
    orchestrator.cloner.clone_project.side_effect = (
        lambda project, _src, root: calls.append((project.name, root))
    )

    orchestrator.run()

    dest_path = calls[0][1]
    assert calls == [('dest', dest_path), ('svc-a', dest_path), ('svc-b', dest_path)]


@pytest.mark.parametrize('count', [0, 1, 5])
def test_one_clone_attempt_per_listed_project(make_config, count: int) -> None:
    projects = [
        ProjectReference(f'svc-{i}', f'https://git.example/svc-{i}.git') for i in range(count)
    ]
    orchestrator = _mocked(make_config(), projects)

    orchestrator.run()

    assert orchestrator.cloner.clone_project.call_count == count


def test_empty_change_set_creates_no_commit(make_config) -> None:
    orchestrator = _mocked(make_config(), [SVC_A], changes=ChangeSet())

    result = orchestrator.run()

    assert result.status == RunStatus.SUCCESS
    assert result.commit_sha is None
    orchestrator.publisher.commit.assert_not_called()
    orchestrator.publisher.push.assert_not_called()


def test_discovery_failure_stops_before_cloning(make_config, capsys) -> None:
    orchestrator = _mocked(make_config())
    orchestrator.lister.list_projects.side_effect = DiscoveryError('bad json')

    result = orchestrator.run()

    assert result.status == RunStatus.FAILED
    assert result.stage == Stage.DISCOVERING
    assert result.error == 'DiscoveryError'
    assert 'bad json' in result.cause
    orchestrator.cloner.clone_destination.assert_not_called()
    err = capsys.readouterr().err
    assert '[MIRROR:RUN_FAILED]' in err
    assert 'stage=discovering error=DiscoveryError cause=bad json' in err


def test_destination_clone_failure_attempts_no_project(make_config) -> None:
    """An unreachable destination ends the run at the cloning stage."""
    cfg = make_config()
    orchestrator = _mocked(cfg, [SVC_A, SVC_B])
    orchestrator.cloner.clone_destination.side_effect = CloneError('unreachable')

    result = orchestrator.run()

    assert result.status == RunStatus.FAILED
    assert result.stage == Stage.CLONING
    orchestrator.cloner.clone_project.assert_not_called()
    orchestrator.collector.collect.assert_not_called()
    assert _run_dirs(cfg) == []


def test_project_failure_is_isolated_by_default(make_config, capsys) -> None:
    cfg = make_config()
    orchestrator = _mocked(cfg, [SVC_A, SVC_B])
    orchestrator.cloner.clone_project.side_effect = [
        CloneError('repository not found', project='svc-a'),
        None,
    ]

    result = orchestrator.run()

    assert result.status == RunStatus.PARTIAL
    assert [f.name for f in result.failed_projects] == ['svc-a']
    assert 'repository not found' in result.failed_projects[0].cause
    assert orchestrator.cloner.clone_project.call_count == 2
    orchestrator.publisher.push.assert_called_once()
    err = capsys.readouterr().err
    assert '[MIRROR:RUN_PARTIAL]' in err
    assert 'failed_projects=svc-a' in err


def test_project_failure_aborts_under_abort_policy(make_config) -> None:
    """No commit is made from a tree that silently lacks a project."""
    orchestrator = _mocked(make_config(policy=ProjectFailurePolicy.ABORT), [SVC_A, SVC_B])
    orchestrator.cloner.clone_project.side_effect = CloneError('boom', project='svc-a')

    result = orchestrator.run()

    assert result.status == RunStatus.FAILED
    assert result.stage == Stage.CLONING
    assert 'svc-a' in result.cause
    assert orchestrator.cloner.clone_project.call_count == 1
    orchestrator.collector.collect.assert_not_called()
    orchestrator.publisher.commit.assert_not_called()


def test_duplicate_names_keep_first_and_attribute_second(make_config) -> None:
    duplicate = ProjectReference('svc-a', 'https://git.example/other/svc-a.git')
    orchestrator = _mocked(make_config(), [SVC_A, duplicate])

    result = orchestrator.run()

    assert result.status == RunStatus.PARTIAL
    orchestrator.cloner.clone_project.assert_called_once()
    assert orchestrator.cloner.clone_project.call_args.args[0] == SVC_A
    assert result.failed_projects[0].name == 'svc-a'
    assert 'duplicate project name' in result.failed_projects[0].cause


def test_duplicate_names_fail_run_under_abort_policy(make_config) -> None:
    duplicate = ProjectReference('svc-a', 'https://git.example/other/svc-a.git')
    orchestrator = _mocked(make_config(policy=ProjectFailurePolicy.ABORT), [SVC_A, duplicate])

    result = orchestrator.run()

    assert result.status == RunStatus.FAILED
    assert result.stage == Stage.CLONING
    assert 'duplicate project name' in result.cause


def test_status_failure_stops_before_commit(make_config) -> None:
    orchestrator = _mocked(make_config(), [SVC_A])
    orchestrator.collector.collect.side_effect = StatusError('corrupt index')

    result = orchestrator.run()

    assert result.stage == Stage.COLLECTING_CHANGES
    orchestrator.publisher.commit.assert_not_called()


def test_push_rejection_is_reported_once(make_config) -> None:
    """A rejected push is not retried."""
    cfg = make_config()
    orchestrator = _mocked(cfg, [SVC_A])
    orchestrator.publisher.push.side_effect = PushError('non-fast-forward')

    result = orchestrator.run()

    assert result.status == RunStatus.FAILED
    assert result.stage == Stage.PUSHING
    assert 'non-fast-forward' in result.cause
    orchestrator.publisher.commit.assert_called_once()
    orchestrator.publisher.push.assert_called_once()
    assert _run_dirs(cfg) == []


def test_dry_run_lists_without_cloning(make_config, capsys) -> None:
    orchestrator = _mocked(make_config(dry_run=True), [SVC_A])

    result = orchestrator.run()

    assert result.status == RunStatus.SUCCESS
    orchestrator.cloner.clone_destination.assert_not_called()
    assert 'would mirror' in capsys.readouterr().out


def test_cancelled_run_stops_at_next_boundary_and_cleans_up(make_config) -> None:
    cfg = make_config()
    orchestrator = _mocked(cfg, [SVC_A, SVC_B])

    def _cancel_after_first(*_args):
        orchestrator.cancel_event.set()

    orchestrator.cloner.clone_project.side_effect = _cancel_after_first

    result = orchestrator.run()

    assert result.status == RunStatus.FAILED
    assert result.stage == Stage.CLONING
    assert result.error == 'CancelledRunError'
    assert orchestrator.cloner.clone_project.call_count == 1
    orchestrator.collector.collect.assert_not_called()
    assert _run_dirs(cfg) == []


def test_cancel_before_start_does_nothing(make_config) -> None:
    orchestrator = _mocked(make_config(), [SVC_A])
    orchestrator.cancel_event.set()

    result = orchestrator.run()

    assert result.status == RunStatus.FAILED
    assert result.stage == Stage.IDLE
    orchestrator.lister.connect.assert_not_called()


def test_overlapping_run_is_refused(make_config) -> None:
    cfg = make_config()
    orchestrator = _mocked(cfg, [SVC_A])

    with RunLock(lock_path_for(cfg.behavior.work_dir, cfg.destination.repo_url)):
        result = orchestrator.run()

    assert result.status == RunStatus.FAILED
    assert result.stage == Stage.IDLE
    assert result.error == 'LockError'
    orchestrator.lister.connect.assert_not_called()


def test_unexpected_error_becomes_failed_result(make_config) -> None:
    orchestrator = _mocked(make_config(), [SVC_A])
    orchestrator.collector.collect.side_effect = RuntimeError('surprise')

    result = orchestrator.run()

    assert result.status == RunStatus.FAILED
    assert result.stage == Stage.COLLECTING_CHANGES
    assert 'surprise' in result.cause
