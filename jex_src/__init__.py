#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (c) 2026 plumiume
# SPDX-License-Identifier: MIT
# License: MIT License (https://opensource.org/licenses/MIT)
# See LICENSE.txt for details.

"""
Jekyll-in-Docker helper package.
"""

__version__ = "1.1.0"

from .commands import app, main  # noqa: E402
from .environment import JexPaths, check_prerequisites, ensure_environment, load_config  # noqa: E402
from .manager import JexManager, is_port_listening, slugify  # noqa: E402
from .models import JexConfig  # noqa: E402
from .runner import CommandRunner, confirm, error_exit, setup_logging  # noqa: E402

__all__ = [
    "__version__",
    # Commands
    "app",
    "main",
    # Manager
    "JexManager",
    "slugify",
    "is_port_listening",
    # Environment
    "JexPaths",
    "ensure_environment",
    "load_config",
    "check_prerequisites",
    # Runner
    "CommandRunner",
    "confirm",
    "error_exit",
    "setup_logging",
    # Models
    "JexConfig",
]
