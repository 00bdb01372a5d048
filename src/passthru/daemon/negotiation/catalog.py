# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Static catalog of optional device capabilities.

Each :class:`CapabilityEntry` describes one hardware pass-through feature:
the LXC directives that grant it, the host device nodes that must exist for
it to make sense, and which other capabilities must already be granted.

The catalog is ordered.  The engine walks it front to back, so the order is
the priority in which capabilities are negotiated::

    render-device -> card-device -> input-tree -> uinput-device
        -> elevated-capability

Directives are stored dialect-neutral as ``(key, value)`` pairs.  Proxmox
writes them as ``key: value`` in ``/etc/pve/lxc/<id>.conf`` while Incus's
``raw.lxc`` wants plain LXC syntax ``key=value``.  Each backend renders with
its own separator, and :attr:`CapabilityEntry.marker_pattern` matches either.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass


@dataclass(frozen=True)
class Directive:
    """One ``key/value`` LXC configuration directive."""

    key: str
    value: str

    def render(self, separator: str) -> str:
        return f"{self.key}{separator}{self.value}"

    def line_pattern(self) -> str:
        """Regex (no anchors) matching this directive in any dialect."""
        return rf"\s*{re.escape(self.key)}\s*[:=]\s*{re.escape(self.value)}\s*"


@dataclass(frozen=True)
class CapabilityEntry:
    """One optional hardware capability and the fragment that grants it.

    Attributes:
        name: Stable identifier, e.g. ``render-device``.
        description: Human-readable summary for listings.
        fragment: Ordered directives written as one contiguous block.
        device_paths: Host paths that must all exist for the capability
            to be attempted.  Empty means no host-side requirement.
        requires: Names of capabilities that must already be committed.
        required: If True, the negotiation cannot proceed without it.
    """

    name: str
    description: str
    fragment: tuple[Directive, ...]
    device_paths: tuple[str, ...] = ()
    requires: tuple[str, ...] = ()
    required: bool = False

    def render(self, separator: str) -> list[str]:
        """Render the fragment as configuration lines."""
        return [d.render(separator) for d in self.fragment]

    @property
    def marker_pattern(self) -> re.Pattern[str]:
        """Pattern matching a whole line that belongs to this fragment."""
        alternatives = "|".join(f"(?:{d.line_pattern()})" for d in self.fragment)
        return re.compile(rf"^(?:{alternatives})$")

    def matches(self, line: str) -> bool:
        return self.marker_pattern.match(line) is not None


def _cgroup_allow(rule: str) -> Directive:
    return Directive("lxc.cgroup2.devices.allow", rule)


def _bind(source: str, kind: str) -> Directive:
    # lxc.mount.entry targets are relative to the container rootfs
    return Directive(
        "lxc.mount.entry",
        f"{source} {source.lstrip('/')} none bind,optional,create={kind}",
    )


RENDER_DEVICE = CapabilityEntry(
    name="render-device",
    description="GPU render node for VAAPI encoding and GL/Vulkan",
    fragment=(
        _cgroup_allow("c 226:128 rwm"),
        _bind("/dev/dri/renderD128", "file"),
    ),
    device_paths=("/dev/dri/renderD128",),
    required=True,
)

CARD_DEVICE = CapabilityEntry(
    name="card-device",
    description="DRM card node and framebuffer for display output",
    fragment=(
        _cgroup_allow("c 226:0 rwm"),
        _cgroup_allow("c 29:0 rwm"),
        _bind("/dev/dri/card0", "file"),
        _bind("/dev/fb0", "file"),
    ),
    device_paths=("/dev/dri/card0",),
)

INPUT_TREE = CapabilityEntry(
    name="input-tree",
    description="Input event devices (/dev/input)",
    fragment=(
        _cgroup_allow("c 13:* rwm"),
        _bind("/dev/input", "dir"),
    ),
    device_paths=("/dev/input",),
)

UINPUT_DEVICE = CapabilityEntry(
    name="uinput-device",
    description="Virtual input device for remote keyboard/mouse/gamepad",
    fragment=(
        _cgroup_allow("c 10:223 rwm"),
        _bind("/dev/uinput", "file"),
    ),
    device_paths=("/dev/uinput",),
)

ELEVATED_CAPABILITY = CapabilityEntry(
    name="elevated-capability",
    description="CAP_SYS_ADMIN for the streaming server's uinput and KMS capture",
    fragment=(Directive("lxc.cap.keep", "sys_admin"),),
    requires=("uinput-device",),
)


DEFAULT_ENTRIES: tuple[CapabilityEntry, ...] = (
    RENDER_DEVICE,
    CARD_DEVICE,
    INPUT_TREE,
    UINPUT_DEVICE,
    ELEVATED_CAPABILITY,
)


class CapabilityCatalog:
    """Read-only, ordered collection of capability entries."""

    def __init__(self, entries: Iterable[CapabilityEntry] = DEFAULT_ENTRIES) -> None:
        self._entries = tuple(entries)
        names = [e.name for e in self._entries]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate capability names in catalog: {names}")
        known: set[str] = set()
        for entry in self._entries:
            missing = [r for r in entry.requires if r not in known]
            if missing:
                raise ValueError(
                    f"Capability '{entry.name}' requires {missing}, "
                    "which must appear earlier in the catalog"
                )
            known.add(entry.name)

    def __iter__(self) -> Iterator[CapabilityEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> tuple[CapabilityEntry, ...]:
        return self._entries

    def names(self) -> list[str]:
        return [e.name for e in self._entries]

    def get(self, name: str) -> CapabilityEntry:
        for entry in self._entries:
            if entry.name == name:
                return entry
        raise KeyError(name)

    def required(self) -> list[CapabilityEntry]:
        return [e for e in self._entries if e.required]

    def optional(self) -> list[CapabilityEntry]:
        return [e for e in self._entries if not e.required]

    def owners(self, line: str) -> list[str]:
        """Names of every entry whose marker matches *line*."""
        return [e.name for e in self._entries if e.matches(line)]


DEFAULT_CATALOG = CapabilityCatalog()
