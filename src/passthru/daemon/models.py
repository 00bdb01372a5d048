# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pydantic models for the parts of the Incus REST API we consume."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class Operation(BaseModel):
    """A background operation (``/1.0/operations/<id>``)."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    description: str | None = None
    status: str | None = None
    status_code: int | None = None
    err: str | None = None
    metadata: dict[str, Any] | None = None


class Instance(BaseModel):
    """An instance (``/1.0/instances/<name>``)."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    status: str | None = None
    type: str | None = None
    config: dict[str, str] | None = None
    created_at: datetime | None = None
