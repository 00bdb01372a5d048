# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Post-commit pipeline: steps run once a device configuration is committed.

Importing this package registers all steps with the pipeline.
"""

from ..contexts import CommitContext
from ..pipeline import Pipeline

post_commit_pipeline = Pipeline[CommitContext]("post_commit")

# Import step modules so their decorators register with the pipeline.
from . import verify_devices as _  # noqa: F401, E402
from . import report_excluded as _  # noqa: F401, E402
