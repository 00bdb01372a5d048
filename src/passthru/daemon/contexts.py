# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Context dataclasses passed through pipeline steps."""

from __future__ import annotations

from dataclasses import dataclass, field

from .negotiation.catalog import CapabilityCatalog
from .negotiation.lifecycle import ContainerLifecycle
from .negotiation.state import NegotiationResult
from .operations import OperationReporter


@dataclass
class CommitContext:
    """Context passed through the post-commit pipeline.

    Steps receive the committed negotiation result and may exec into the
    (running) container.  Findings are collected on the context so the
    caller can report them.
    """

    result: NegotiationResult
    catalog: CapabilityCatalog
    lifecycle: ContainerLifecycle
    progress: OperationReporter | None

    # Filled in by pipeline steps
    missing_in_container: list[str] = field(default_factory=lambda: list[str]())
    skipped_features: list[str] = field(default_factory=lambda: list[str]())

    @property
    def container_id(self) -> str:
        return self.result.container_id

    def info(self, msg: str) -> None:
        if self.progress:
            self.progress.info(msg)

    def dim(self, msg: str) -> None:
        if self.progress:
            self.progress.dim(msg)

    def warning(self, msg: str) -> None:
        if self.progress:
            self.progress.warning(msg)
