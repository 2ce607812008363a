#!/usr/bin/env python3
"""Security validation utilities for gitlab-mirror."""

import os
import re
from typing import List, Optional


class SecurityValidator:
    """Security validation utilities for input sanitization and validation."""

    MAX_PATH_SEGMENT_LENGTH = 255
    MAX_URL_LENGTH = 2048
    MAX_USERNAME_LENGTH = 100
    MAX_PATH_LENGTH = 500

    SAFE_USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9._@+-]+$")

    # Names that must never be used as a directory of the destination root
    RESERVED_SEGMENTS = {".", "..", ".git"}

    @classmethod
    def validate_path_segment(cls, name: str) -> str:
        """Validate a project name used verbatim as a directory name.

        The name is rejected, never rewritten, so the directory always
        matches what the source reported.
        """
        if not name or not isinstance(name, str):
            raise ValueError("Project name must be a non-empty string")

        if len(name) > cls.MAX_PATH_SEGMENT_LENGTH:
            raise ValueError(
                f"Project name exceeds maximum length of {cls.MAX_PATH_SEGMENT_LENGTH}"
            )

        if "/" in name or "\\" in name:
            raise ValueError("Project name contains path separators")

        if name.strip() in cls.RESERVED_SEGMENTS or name.lower() == ".git":
            raise ValueError(f"Project name '{name}' is reserved")

        if "\x00" in name or any(ord(c) < 32 for c in name):
            raise ValueError("Project name contains null bytes or control characters")

        return name

    @classmethod
    def validate_url(cls, url: str, allowed_schemes: Optional[List[str]] = None) -> str:
        """Validate URL for security."""
        if not url or not isinstance(url, str):
            raise ValueError("URL must be a non-empty string")

        if len(url) > cls.MAX_URL_LENGTH:
            raise ValueError(f"URL exceeds maximum length of {cls.MAX_URL_LENGTH}")

        if "\x00" in url or any(ord(c) < 32 for c in url):
            raise ValueError("URL contains null bytes or control characters")

        if not url.startswith(("http://", "https://")):
            raise ValueError("URL must use http or https scheme")

        if allowed_schemes:
            scheme = url.split("://")[0].lower()
            if scheme not in allowed_schemes:
                raise ValueError(
                    f"URL scheme '{scheme}' not in allowed schemes: {allowed_schemes}"
                )

        if re.match(r"^https?://[^/]*@", url):
            raise ValueError("URL must not embed credentials; use the token options")

        return url

    @classmethod
    def validate_username(cls, username: str) -> str:
        """Validate username for security."""
        if not username or not isinstance(username, str):
            raise ValueError("Username must be a non-empty string")

        if len(username) > cls.MAX_USERNAME_LENGTH:
            raise ValueError(
                f"Username exceeds maximum length of {cls.MAX_USERNAME_LENGTH}"
            )

        if "\x00" in username or any(ord(c) < 32 for c in username):
            raise ValueError("Username contains null bytes or control characters")

        if not cls.SAFE_USERNAME_PATTERN.match(username):
            raise ValueError("Username contains invalid characters")

        return username

    @classmethod
    def validate_file_path(cls, path: str) -> str:
        """Validate file path for security."""
        if not path or not isinstance(path, str):
            raise ValueError("File path must be a non-empty string")

        if len(path) > cls.MAX_PATH_LENGTH:
            raise ValueError(
                f"File path exceeds maximum length of {cls.MAX_PATH_LENGTH}"
            )

        if "\x00" in path:
            raise ValueError("File path contains null bytes")

        if ".." in path.split(os.sep):
            raise ValueError("File path contains path traversal sequences")

        return os.path.normpath(path)

    @classmethod
    def sanitize_for_logging(cls, message: str) -> str:
        """Sanitize message for safe logging by removing potential credentials."""
        if not message:
            return message

        patterns = [
            (r"(https?)://[^/\s@]+@", r"\1://[REDACTED]@"),  # URLs with credentials
            (r"private_token=[^&\s]+", "private_token=[REDACTED]"),  # API query tokens
            (r"token[=:\s]+[^\s&]+", "token=[REDACTED]"),  # Token assignments
            (r"password[=:\s]+[^\s&]+", "password=[REDACTED]"),  # Password assignments
            (r"glpat-[A-Za-z0-9_-]+", "[GITLAB_TOKEN_REDACTED]"),  # GitLab tokens
            (r"gl(?:oas|dt|ptt|rt)-[A-Za-z0-9_-]+", "[GITLAB_TOKEN_REDACTED]"),
        ]

        sanitized = str(message)
        for pattern, replacement in patterns:
            sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)

        return sanitized
