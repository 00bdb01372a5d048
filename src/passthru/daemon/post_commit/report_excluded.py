# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Post-commit step: tell the operator which features lost their device."""

from ..contexts import CommitContext
from ..negotiation.state import Outcome
from . import post_commit_pipeline


@post_commit_pipeline.step(order=200)
async def report_excluded(ctx: CommitContext) -> None:
    """List excluded capabilities so follow-up provisioning can skip them."""
    for entry in ctx.catalog:
        if entry.name not in ctx.result.excluded:
            continue
        ctx.skipped_features.append(entry.name)
        outcome = ctx.result.outcome_of(entry.name)
        if outcome is Outcome.PRECONDITION_UNMET:
            ctx.dim(f"{entry.name} not available on this host: {entry.description}")
        else:
            reason = outcome.value if outcome else "excluded"
            ctx.warning(f"{entry.name} rejected ({reason}): {entry.description} disabled")
