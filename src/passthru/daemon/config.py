# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""passthru configuration file.

The file is INI-style and optional; every key has a default::

    [passthru]
    backend = pct
    start_timeout = 120
    probe_timeout = 30
    probe_interval = 2
    liveness_path = /bin/bash
    pve_config_dir = /etc/pve/lxc
    incus_socket = /var/lib/incus/unix.socket
    disabled_signatures = monitor-socket-timeout

    [signatures]
    # name = regular expression matched against start output
    apparmor-denied = apparmor="DENIED".*dev/dri

Lookup order: explicit path, then ``$PASSTHRU_CONFIG``, then
``/etc/passthru/passthru.conf``.
"""

from __future__ import annotations

import configparser
import os
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .incus_client import DEFAULT_SOCKET
from .negotiation.classifier import FailureSignature
from .negotiation.readiness import DEFAULT_INTERVAL, DEFAULT_LIVENESS_PATH, DEFAULT_TIMEOUT

SYSTEM_CONFIG_PATH = "/etc/passthru/passthru.conf"
CONFIG_ENV = "PASSTHRU_CONFIG"

_MAIN_SECTION = "passthru"
_SIGNATURES_SECTION = "signatures"


class ConfigError(Exception):
    """The configuration file is unreadable or invalid."""


class PassthruConfig(BaseModel):
    """Validated negotiator settings."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    backend: Literal["pct", "incus"] = "pct"
    start_timeout: float = Field(default=120.0, gt=0)
    probe_timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    probe_interval: float = Field(default=DEFAULT_INTERVAL, gt=0)
    liveness_path: str = DEFAULT_LIVENESS_PATH
    pve_config_dir: str = "/etc/pve/lxc"
    incus_socket: str = DEFAULT_SOCKET
    disabled_signatures: list[str] = Field(default_factory=lambda: list[str]())
    signatures: dict[str, str] = Field(default_factory=lambda: dict[str, str]())

    @field_validator("disabled_signatures", mode="before")
    @classmethod
    def _split_names(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [v.strip() for v in value.split(",") if v.strip()]
        return value

    @field_validator("signatures")
    @classmethod
    def _compile_patterns(cls, value: dict[str, str]) -> dict[str, str]:
        for name, pattern in value.items():
            try:
                FailureSignature.compile(name, pattern)
            except re.error as e:
                raise ValueError(f"Invalid pattern for signature '{name}': {e}") from e
        return value

    def with_overrides(self, **overrides: Any) -> "PassthruConfig":
        """Return a copy with every non-None override applied and validated."""
        update = {k: v for k, v in overrides.items() if v is not None}
        if not update:
            return self
        try:
            return PassthruConfig.model_validate({**self.model_dump(), **update})
        except ValidationError as e:
            raise ConfigError(str(e)) from e


def _resolve_path(path: str | None) -> tuple[str, bool]:
    """Return (path, explicit) where explicit means a missing file is an error."""
    if path:
        return path, True
    env = os.environ.get(CONFIG_ENV)
    if env:
        return env, True
    return SYSTEM_CONFIG_PATH, False


def load_config(path: str | None = None) -> PassthruConfig:
    """Load and validate the configuration.

    Raises:
        ConfigError: The file is missing (when named explicitly), cannot
            be parsed, or contains invalid values.
    """
    resolved, explicit = _resolve_path(path)
    if not os.path.isfile(resolved):
        if explicit:
            raise ConfigError(f"Config file not found: {resolved}")
        return PassthruConfig()

    parser = configparser.ConfigParser(interpolation=None)
    try:
        with open(resolved, encoding="utf-8") as f:
            parser.read_file(f)
    except (OSError, configparser.Error) as e:
        raise ConfigError(f"Cannot read {resolved}: {e}") from e

    raw: dict[str, Any] = {}
    if parser.has_section(_MAIN_SECTION):
        raw.update(parser.items(_MAIN_SECTION))
    if parser.has_section(_SIGNATURES_SECTION):
        raw["signatures"] = dict(parser.items(_SIGNATURES_SECTION))

    try:
        return PassthruConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {resolved}: {e}") from e
