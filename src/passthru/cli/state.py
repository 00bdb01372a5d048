"""Per-invocation CLI state stored on ``typer.Context.obj``."""

from __future__ import annotations

from dataclasses import dataclass

from ..daemon.backends import Backend
from ..daemon.config import PassthruConfig, load_config


@dataclass
class CliState:
    config_path: str | None = None
    backend_name: str | None = None
    config: PassthruConfig | None = None
    backend: Backend | None = None

    def load_config(self) -> PassthruConfig:
        """Load the config file and apply the global ``--backend`` option."""
        return load_config(self.config_path).with_overrides(backend=self.backend_name)
