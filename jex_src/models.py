#!/usr/bin/env python3
# -*- coding: utf-8 -*-
#
# Copyright (c) 2026 plumiume
# SPDX-License-Identifier: MIT
# License: MIT License (https://opensource.org/licenses/MIT)
# See LICENSE.txt for details.

"""
Configuration model for jex.
"""

import os
from typing import Tuple, Type

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

DEFAULT_DOCKER_IMAGE = "jekyll-site"
DEFAULT_JEKYLL_PORT = 4000


# ============================================================================
# Pydantic Settings
# ============================================================================


class JexConfig(BaseSettings):
    """Flat jex configuration read from a KEY=value file"""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore",
        frozen=True,
        env_file_encoding="utf-8",
    )

    docker_image: str = Field(
        default=DEFAULT_DOCKER_IMAGE, description="Jekyll Docker image name"
    )
    jekyll_port: int = Field(
        default=DEFAULT_JEKYLL_PORT,
        ge=1,
        le=65535,
        description="Host port published to the Jekyll server",
    )
    user_id: int = Field(
        default_factory=os.getuid,
        ge=0,
        description="Recorded user id (the invoking uid is used at runtime)",
    )
    group_id: int = Field(
        default_factory=os.getgid,
        ge=0,
        description="Recorded group id (the invoking gid is used at runtime)",
    )

    @field_validator("docker_image")
    @classmethod
    def validate_docker_image(cls, v: str) -> str:
        """Reject blank image names"""
        v = v.strip()
        if not v:
            raise ValueError("DOCKER_IMAGE must not be empty")
        return v

    @property
    def url(self) -> str:
        return f"http://localhost:{self.jekyll_port}"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """
        Customize settings sources priority.
        Priority: init > config file > defaults (process env is not consulted)
        """
        return init_settings, dotenv_settings
