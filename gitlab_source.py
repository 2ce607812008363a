#!/usr/bin/env python3
"""GitLab API wrapper for discovering the projects to mirror."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import gitlab
import requests

from config import SourceConfig, TransportConfig
from errors import DiscoveryError
from logging_utils import Logger
from models import ProjectReference
from transport import build_session, ssl_verify


class GitLabSource:
    """Wrapper around the GitLab projects API."""

    def __init__(self, source: SourceConfig, transport: TransportConfig) -> None:
        self.url = source.url.rstrip("/")
        self.token = source.token
        self.transport = transport
        self.api: Optional[gitlab.Gitlab] = None

    def connect(self) -> None:
        Logger.info(f"init gitlab API: {self.url}")
        try:
            self.api = gitlab.Gitlab(
                url=self.url,
                private_token=self.token,
                ssl_verify=ssl_verify(self.transport),
                timeout=self.transport.api_timeout_s,
                session=build_session(self.transport),
            )
        except (gitlab.exceptions.GitlabError, ValueError) as e:
            raise DiscoveryError(f"failed to initialize gitlab API: {e}") from e

    def list_projects(
        self, exclude: Optional[str] = None, skip_archived: bool = False
    ) -> List[ProjectReference]:
        if self.api is None:
            raise DiscoveryError("gitlab API not initialized")

        Logger.info("discovering projects")
        try:
            entries = self.api.projects.list(get_all=True)
        except gitlab.exceptions.GitlabAuthenticationError as e:
            raise DiscoveryError(f"authentication error (gitlab): {e}") from e
        except gitlab.exceptions.GitlabError as e:
            raise DiscoveryError(f"failed to list projects: {e}") from e
        except requests.RequestException as e:
            raise DiscoveryError(f"failed to contact gitlab API: {e}") from e

        projects: List[ProjectReference] = []
        for entry in entries:
            attributes = self._attributes(entry)
            path_ns = attributes.get("path_with_namespace") or attributes.get("name")
            if skip_archived and attributes.get("archived", False):
                Logger.debug(f"skipping archived: {path_ns}")
                continue
            if exclude and exclude in str(path_ns):
                Logger.warn(f"excluding: {path_ns}")
                continue
            project = self._decode(attributes)
            projects.append(project)
            Logger.debug(f"found: {project.name}")

        Logger.info(f"found {len(projects)} projects to mirror")
        return projects

    @staticmethod
    def _attributes(entry: Any) -> Dict[str, Any]:
        attributes = getattr(entry, "attributes", entry)
        if not isinstance(attributes, dict):
            raise DiscoveryError(
                f"unexpected project entry in listing: {type(entry).__name__}"
            )
        return attributes

    @staticmethod
    def _decode(attributes: Dict[str, Any]) -> ProjectReference:
        name = attributes.get("name")
        url = attributes.get("http_url_to_repo")
        if not isinstance(name, str) or not name:
            raise DiscoveryError(f"project entry without a usable name: {attributes.get('id')}")
        if not isinstance(url, str) or not url:
            raise DiscoveryError(f"project '{name}' has no http_url_to_repo")
        return ProjectReference(name=name, source_url=url)
