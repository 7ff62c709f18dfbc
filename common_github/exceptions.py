# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""GitHub API error types.

These are intentionally lightweight so cached dataset modules can catch the
whole family (any upstream failure) without creating import cycles.
"""

from __future__ import annotations


class GitHubAPIError(Exception):
    """Any upstream failure. Never retried, never partially cached."""

    def __init__(self, *, status_code: int, endpoint: str, message: str):
        super().__init__(message)
        self.status_code = int(status_code)
        self.endpoint = str(endpoint or "")


class GitHubHTTPError(GitHubAPIError):
    """Non-2xx response."""


class GitHubConnectionError(GitHubAPIError):
    """Connection failure or timeout (no HTTP status)."""


class GitHubPayloadError(GitHubAPIError):
    """Response body is not JSON, or not the shape the endpoint promises."""
