# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""passthru - device pass-through negotiation for GPU-accelerated system containers."""

__version__ = "0.1.0"
