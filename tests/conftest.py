"""Shared fixtures: configuration builders and local git remotes."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, Optional

import git
import pytest

from config import (Config, DestinationConfig, MirrorBehaviorConfig,
                    ProcessConfig, ProjectFailurePolicy, SourceConfig,
                    TransportConfig)

SEED_ACTOR = git.Actor('Seed Author', 'seed@example.com')


@pytest.fixture(autouse=True)
def isolated_git_config(tmp_path_factory, monkeypatch) -> None:
    """Keep user/system git configuration out of the tests."""
    home = tmp_path_factory.mktemp('git-home')
    gitconfig = home / '.gitconfig'
    gitconfig.write_text(
        '[init]\n\tdefaultBranch = main\n'
        '[protocol "file"]\n\tallow = always\n',
        encoding='utf-8',
    )
    monkeypatch.setenv('HOME', str(home))
    monkeypatch.setenv('GIT_CONFIG_GLOBAL', str(gitconfig))
    monkeypatch.setenv('GIT_CONFIG_NOSYSTEM', '1')


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., Config]:
    def _make(
        dest_url: str = 'https://gitlab.example/mirrors/all.git',
        policy: ProjectFailurePolicy = ProjectFailurePolicy.ISOLATE,
        dry_run: bool = False,
    ) -> Config:
        return Config(
            source=SourceConfig(
                url='https://gitlab.example',
                token='source-token',
                username='source-user',
            ),
            destination=DestinationConfig(
                repo_url=dest_url,
                token='dest-token',
                username='dest-user',
                author_name='Mirror Bot',
                author_email='mirror@example.com',
                commit_message='Git mirror automation task',
            ),
            transport=TransportConfig(),
            behavior=MirrorBehaviorConfig(
                work_dir=str(tmp_path / 'work'),
                project_failure_policy=policy,
                dry_run=dry_run,
            ),
            process=ProcessConfig(),
        )

    return _make


@pytest.fixture
def make_remote(tmp_path: Path) -> Callable[..., str]:
    """Create a bare repository, optionally seeded with one commit of files."""

    def _make(name: str, files: Optional[Dict[str, str]] = None) -> str:
        bare = tmp_path / 'remotes' / f'{name}.git'
        git.Repo.init(bare, bare=True, initial_branch='main')
        if files:
            seed = tmp_path / 'seeds' / name
            repo = git.Repo.init(seed, initial_branch='main')
            for rel, content in files.items():
                target = seed / rel
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content, encoding='utf-8')
            repo.index.add(list(files))
            repo.index.commit('seed', author=SEED_ACTOR, committer=SEED_ACTOR)
            repo.create_remote('origin', str(bare))
            repo.remote('origin').push('refs/heads/main:refs/heads/main')
            repo.close()
        return str(bare)

    return _make
