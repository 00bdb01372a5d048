# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Post-commit step: check granted device nodes are visible in the container."""

from ..contexts import CommitContext
from . import post_commit_pipeline


@post_commit_pipeline.step(order=100)
async def verify_devices(ctx: CommitContext) -> None:
    """Look for each granted capability's device nodes inside the container.

    Bind mounts are declared ``optional``, so LXC starts fine even when a
    node fails to appear.  A missing node is reported, not fatal: the
    capability stays granted and later provisioning decides what to do.
    """
    for name in ctx.result.granted:
        entry = ctx.catalog.get(name)
        for path in entry.device_paths:
            result = await ctx.lifecycle.exec(ctx.container_id, ["test", "-e", path])
            if result.ok:
                ctx.dim(f"{path} visible in container")
            else:
                ctx.missing_in_container.append(path)
                ctx.warning(f"{path} granted by {name} but not visible in container")
