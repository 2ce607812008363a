#!/usr/bin/env python3
"""Scoped transport settings for the GitLab API and git operations.

Nothing here touches process-wide defaults: each helper turns a
TransportConfig into the arguments of one client or one git invocation.
"""

from __future__ import annotations

from typing import Dict, Union

import requests
from requests.adapters import HTTPAdapter

from config import TransportConfig
from logging_utils import Logger

# Bytes per second below which a git transfer counts as stalled
GIT_LOW_SPEED_LIMIT = 1000


def ssl_verify(cfg: TransportConfig) -> Union[bool, str]:
    """Value for the requests/python-gitlab ``verify`` option."""
    if not cfg.verify_tls:
        return False
    if cfg.ca_bundle:
        return cfg.ca_bundle
    return True


def build_session(cfg: TransportConfig) -> requests.Session:
    """Return a session for the GitLab API that never retries on its own."""
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=0)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.verify = ssl_verify(cfg)
    if not cfg.verify_tls:
        Logger.security_event(
            "TLS_VERIFY_DISABLED",
            "certificate verification disabled for GitLab API calls",
        )
    return session


def git_environment(cfg: TransportConfig) -> Dict[str, str]:
    """Environment overrides applied to a single git invocation."""
    env = {
        "GIT_TERMINAL_PROMPT": "0",
        "GIT_HTTP_LOW_SPEED_LIMIT": str(GIT_LOW_SPEED_LIMIT),
        "GIT_HTTP_LOW_SPEED_TIME": str(int(cfg.clone_stall_timeout_s)),
    }
    if not cfg.verify_tls:
        env["GIT_SSL_NO_VERIFY"] = "true"
    elif cfg.ca_bundle:
        env["GIT_SSL_CAINFO"] = cfg.ca_bundle
    return env
