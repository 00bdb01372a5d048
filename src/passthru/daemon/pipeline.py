# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Ordered async steps that run after a device set is committed.

By the time these steps run the configuration is final and the container
is up, so nothing here may undo the negotiation.  A step that hits a
tolerated error (typically a backend exec failing) is recorded as a
:class:`StepFailure` and the remaining steps still run.
"""

from __future__ import annotations

import bisect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Generic, TypeVar, overload

logger = logging.getLogger(__name__)

_Ctx = TypeVar("_Ctx")

StepFn = Callable[[_Ctx], Awaitable[None]]

_DEFAULT_ORDER = 500


@dataclass(frozen=True)
class StepFailure:
    step: str
    error: str


@dataclass(frozen=True, order=True)
class _Step(Generic[_Ctx]):
    order: int
    seq: int
    fn: StepFn[_Ctx] = field(compare=False)

    @property
    def name(self) -> str:
        return self.fn.__name__


class Pipeline(Generic[_Ctx]):
    """Steps kept sorted by ``order``, then by registration.

    Example::

        post_commit = Pipeline[CommitContext]("post_commit")

        @post_commit.step(order=100)
        async def verify_devices(ctx: CommitContext) -> None: ...
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._steps: list[_Step[_Ctx]] = []

    @overload
    def step(self, fn: StepFn[_Ctx]) -> StepFn[_Ctx]: ...
    @overload
    def step(self, *, order: int) -> Callable[[StepFn[_Ctx]], StepFn[_Ctx]]: ...

    def step(
        self,
        fn: StepFn[_Ctx] | None = None,
        *,
        order: int = _DEFAULT_ORDER,
    ) -> StepFn[_Ctx] | Callable[[StepFn[_Ctx]], StepFn[_Ctx]]:
        """Register *fn*; usable bare or as ``step(order=N)``."""
        def _register(f: StepFn[_Ctx]) -> StepFn[_Ctx]:
            bisect.insort(self._steps, _Step(order, len(self._steps), f))
            return f

        if fn is not None:
            return _register(fn)
        return _register

    def steps(self) -> list[StepFn[_Ctx]]:
        return [s.fn for s in self._steps]

    async def run(
        self,
        ctx: _Ctx,
        *,
        tolerate: tuple[type[Exception], ...] = (),
    ) -> list[StepFailure]:
        """Run every step in order.

        Args:
            ctx: Passed to each step.
            tolerate: Exception types that mark only the raising step as
                failed.  Anything else propagates and stops the run.

        Returns:
            One :class:`StepFailure` per step that raised a tolerated error.
        """
        failures: list[StepFailure] = []
        for s in self._steps:
            logger.debug("%s: running %s", self.name, s.name)
            try:
                await s.fn(ctx)
            except tolerate as e:
                logger.warning("%s: step %s failed: %s", self.name, s.name, e)
                failures.append(StepFailure(s.name, str(e)))
        return failures

    def __len__(self) -> int:
        return len(self._steps)

    def __repr__(self) -> str:
        names = ", ".join(f"{s.name}({s.order})" for s in self._steps)
        return f"Pipeline({self.name!r}, [{names}])"
