#!/usr/bin/env python3
# -*- coding: utf-8 -*-
#
# Copyright (c) 2026 plumiume
# SPDX-License-Identifier: MIT
# License: MIT License (https://opensource.org/licenses/MIT)
# See LICENSE.txt for details.

"""
Per-user state directory, first-run bootstrap and configuration loading.
"""

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined
from pydantic import ValidationError

from .models import DEFAULT_DOCKER_IMAGE, DEFAULT_JEKYLL_PORT, JexConfig
from .runner import err_console, error_exit, logger

PACKAGE_TEMPLATES_DIR = Path(__file__).parent / "templates"

# Static assets copied verbatim into <state>/templates on first run
STATIC_TEMPLATES = ("Dockerfile", "gitignore")


def template_environment() -> Environment:
    """Jinja2 environment over the packaged templates"""
    return Environment(
        loader=FileSystemLoader(str(PACKAGE_TEMPLATES_DIR)),
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )


@dataclass(frozen=True)
class JexPaths:
    """Locations inside the per-user state directory"""

    state_dir: Path

    @classmethod
    def default(cls) -> "JexPaths":
        """~/.jex, or $JEX_HOME when set"""
        override = os.environ.get("JEX_HOME")
        if override:
            return cls(Path(override).expanduser())
        return cls(Path.home() / ".jex")

    @property
    def config_path(self) -> Path:
        return self.state_dir / "config"

    @property
    def log_path(self) -> Path:
        return self.state_dir / "jex.log"

    @property
    def templates_dir(self) -> Path:
        return self.state_dir / "templates"

    def template_path(self, name: str) -> Path:
        """User copy of a template, falling back to the packaged one"""
        user_copy = self.templates_dir / name
        if user_copy.is_file():
            return user_copy
        return PACKAGE_TEMPLATES_DIR / name


def render_default_config(
    user_id: Optional[int] = None, group_id: Optional[int] = None
) -> str:
    template = template_environment().get_template("config.env.jinja2")
    return template.render(
        docker_image=DEFAULT_DOCKER_IMAGE,
        jekyll_port=DEFAULT_JEKYLL_PORT,
        user_id=os.getuid() if user_id is None else user_id,
        group_id=os.getgid() if group_id is None else group_id,
    )


def ensure_environment(paths: JexPaths) -> bool:
    """Create the state directory on first run.

    Returns True when the directory was created, False when it already existed.
    """
    if paths.state_dir.is_dir():
        return False

    paths.templates_dir.mkdir(parents=True, exist_ok=True)
    paths.log_path.touch()

    if not paths.config_path.exists():
        paths.config_path.write_text(render_default_config(), encoding="utf-8")

    for name in STATIC_TEMPLATES:
        shutil.copyfile(PACKAGE_TEMPLATES_DIR / name, paths.templates_dir / name)

    return True


def load_config(paths: JexPaths) -> JexConfig:
    """Load configuration, overlaying the config file on defaults"""
    if paths.config_path.is_file():
        logger.info(f"Loading configuration from {paths.config_path}")
        env_file: Optional[Path] = paths.config_path
    else:
        logger.warning("Config file not found, using defaults")
        env_file = None

    try:
        return JexConfig(_env_file=env_file)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']).upper()}: {err['msg']}"
            for err in e.errors()
        )
        error_exit(f"Invalid configuration in {paths.config_path}: {problems}")


def check_prerequisites() -> None:
    """Abort when the docker CLI cannot be found"""
    if shutil.which("docker") is None:
        err_console.print("[red]ERROR: Docker is not installed or not in PATH[/red]")
        logger.error("Docker not found in PATH")
        error_exit("Please install missing prerequisites and try again.")
