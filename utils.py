#!/usr/bin/env python3
"""Utility functions for gitlab-mirror."""

from __future__ import annotations

import fcntl
import hashlib
import os
import shutil
from typing import IO, Optional
from urllib.parse import quote

from errors import LockError
from logging_utils import Logger

HTTPS_PREFIX = "https://"


def inject_credentials(url: str, username: str, token: str) -> str:
    """Return url with username and token inserted into its authority.

    Only the https:// prefix is rewritten; the rest of the URL is kept
    byte for byte. Any other scheme raises ValueError instead of silently
    cloning without authentication.
    """
    if not url.startswith(HTTPS_PREFIX):
        raise ValueError("only https:// URLs can carry credentials")
    user = quote(username, safe="")
    secret = quote(token, safe="")
    return f"{HTTPS_PREFIX}{user}:{secret}@{url[len(HTTPS_PREFIX):]}"


def strip_git_metadata(root: str) -> int:
    """Remove every .git entry below root, turning it into a plain snapshot.

    Covers the repository's own .git directory and the .git files that
    submodule checkouts use as gitlinks. Returns the number of entries removed.
    """
    removed = 0
    for current, dirs, files in os.walk(root):
        if ".git" in dirs:
            dirs.remove(".git")
            remove_tree(os.path.join(current, ".git"))
            removed += 1
        if ".git" in files:
            os.remove(os.path.join(current, ".git"))
            removed += 1
    return removed


def remove_tree(path: str) -> None:
    """Delete a file or directory tree, including read-only entries."""
    if os.path.islink(path) or os.path.isfile(path):
        os.remove(path)
        return
    if not os.path.exists(path):
        return

    # git writes pack files read-only
    for current, dirs, files in os.walk(path):
        for d in dirs:
            full = os.path.join(current, d)
            if not os.path.islink(full):
                os.chmod(full, 0o700)
        for f in files:
            full = os.path.join(current, f)
            if not os.path.islink(full):
                os.chmod(full, 0o600)
    shutil.rmtree(path)


def lock_path_for(work_dir: str, destination_url: str) -> str:
    """Lock file path shared by every run that mirrors into destination_url."""
    digest = hashlib.sha256(destination_url.encode("utf-8")).hexdigest()[:16]
    return os.path.join(work_dir, f"gitlab-mirror-{digest}.lock")


class RunLock:
    """Exclusive, non-blocking lock held for the duration of one run."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._handle: Optional[IO[str]] = None

    def acquire(self) -> None:
        os.makedirs(os.path.dirname(self.path) or ".", mode=0o700, exist_ok=True)
        handle = open(self.path, "a+", encoding="utf-8")
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            handle.close()
            raise LockError(
                f"another run holds the lock for this destination ({self.path})"
            ) from e
        handle.seek(0)
        handle.truncate()
        handle.write(f"{os.getpid()}\n")
        handle.flush()
        self._handle = handle
        Logger.debug(f"acquired run lock: {self.path}")

    def release(self) -> None:
        if self._handle is None:
            return
        try:
            fcntl.flock(self._handle.fileno(), fcntl.LOCK_UN)
        finally:
            self._handle.close()
            self._handle = None
        Logger.debug(f"released run lock: {self.path}")

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()
