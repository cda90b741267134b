"""
Capability checks.

Capability strings are ``:``-separated segments such as ``db:write`` or
``files:read:tmp``. A granted capability ending in ``:*`` covers every
capability sharing the segments before it, and a bare ``*`` covers
everything. Strings are parsed into whole segments so that ``logic:*`` can
never accidentally cover ``logicx:if``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

WILDCARD = "*"
SEPARATOR = ":"


@dataclass(frozen=True)
class Capability:
    """A parsed capability: its segments, plus whether a trailing ``*`` follows them."""

    segments: tuple[str, ...]
    wildcard: bool = False

    @classmethod
    def parse(cls, value: str) -> Capability:
        value = value.strip()
        if value == WILDCARD:
            return cls(segments=(), wildcard=True)
        parts = value.split(SEPARATOR)
        if len(parts) > 1 and parts[-1] == WILDCARD:
            return cls(segments=tuple(parts[:-1]), wildcard=True)
        return cls(segments=tuple(parts))

    def covers(self, required: Capability) -> bool:
        """True if holding this capability satisfies ``required``."""
        if self == required:
            return True
        if not self.wildcard:
            return False
        prefix = len(self.segments)
        return len(required.segments) > prefix and required.segments[:prefix] == self.segments

    def __str__(self) -> str:
        if not self.wildcard:
            return SEPARATOR.join(self.segments)
        return SEPARATOR.join((*self.segments, WILDCARD))


class RoleCapabilityMap:
    """Role name → ordered granted capabilities."""

    def __init__(self, roles: dict[str, Iterable[str]] | None = None):
        self._roles: dict[str, tuple[Capability, ...]] = {}
        for role, caps in (roles or {}).items():
            self.set_role(role, caps)

    def set_role(self, role: str, capabilities: Iterable[str]) -> None:
        self._roles[role] = tuple(Capability.parse(c) for c in capabilities)

    def granted(self, role: str | None) -> tuple[Capability, ...]:
        if role is None:
            return ()
        return self._roles.get(role, ())

    def roles(self) -> list[str]:
        return list(self._roles)

    def missing(self, role: str | None, required: Iterable[str]) -> list[str]:
        """Return the required capabilities the role does not hold, in order."""
        granted = self.granted(role)
        missing = []
        for req in required:
            needed = Capability.parse(req)
            if not any(g.covers(needed) for g in granted):
                missing.append(req)
        return missing

    def has_capability(self, role: str | None, required: Iterable[str] | None) -> bool:
        """Vacuously true for an empty requirement; an unmapped role holds nothing."""
        if not required:
            return True
        missing = self.missing(role, required)
        if missing:
            logger.warning(f"Access denied: role '{role}' missing capability '{missing[0]}'")
            return False
        return True
