#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Common shared enums that must be used by both:
- `common_github/portfolio_*.py` (aggregation layer)
- `common_github/api/*` (cached datasets)

This module MUST NOT import `common.py` or any common_github modules to avoid cycles.
"""

from __future__ import annotations

from enum import Enum


class ProjectSource(str, Enum):
    """Which account a curated project came from."""

    PERSONAL = "personal"
    ORGANIZATION = "organization"


class ProjectStatus(str, Enum):
    PAUSED = "paused"


class FetchStatus(str, Enum):
    """Dataset fetch state machine: idle -> loading -> {ready | error}."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"
