"""
Policy Engine - the sole authority consulted before any privileged action.

Stateless beyond its fixed configuration (role map, sandbox roots, egress
rules). Nodes and the executor reach it through ``ctx.policy``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from flowguard.config import SecurityConfig
from flowguard.errors import (
    AccessDenied,
    DbEmptyWhere,
    InvalidType,
    SensitiveMappingViolation,
)
from flowguard.policy.capabilities import RoleCapabilityMap
from flowguard.policy.egress import EgressPolicy, Resolver
from flowguard.policy.expressions import evaluate_expression
from flowguard.policy.sandbox import FilesystemSandbox

if TYPE_CHECKING:
    from flowguard.graph.node import NodeSchema

logger = logging.getLogger(__name__)

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


class PolicyEngine:
    """
    Capability checks, egress fortress, filesystem sandbox, safe expression
    evaluation and the sensitive-output guard behind one object.

    Example:
        policy = PolicyEngine(SecurityConfig())
        policy.require_capabilities("staff", ["browser:basic"])
        path = policy.resolve_path("report.csv")
        await policy.check_egress("https://example.com")
    """

    def __init__(
        self,
        config: SecurityConfig | None = None,
        resolver: Resolver | None = None,
    ):
        self.config = config or SecurityConfig()
        self.roles = RoleCapabilityMap(self.config.role_capabilities)
        self.egress = EgressPolicy(
            allowed_schemes=self.config.allowed_schemes,
            resolver=resolver,
            dns_timeout_seconds=self.config.dns_timeout_seconds,
        )
        self.sandbox = FilesystemSandbox(self.config.sandbox_roots, self.config.default_root)

    # === CAPABILITIES ===

    def has_capability(self, role: str | None, required: Iterable[str] | None) -> bool:
        return self.roles.has_capability(role, list(required or []))

    def require_capabilities(self, role: str | None, required: Iterable[str] | None) -> None:
        """Raise AccessDenied naming the role and the first missing capability."""
        missing = self.roles.missing(role, list(required or []))
        if missing:
            logger.warning(f"Access denied: role '{role}' missing capability '{missing[0]}'")
            raise AccessDenied(role, missing[0])

    # === EGRESS / SANDBOX / EXPRESSIONS ===

    async def check_egress(self, url: str) -> None:
        await self.egress.check(url)

    def resolve_path(self, candidate: str) -> str:
        return self.sandbox.resolve(candidate)

    def evaluate(self, expression: str, variables: dict[str, Any] | None = None) -> Any:
        return evaluate_expression(expression, variables)

    # === OUTPUT GUARD ===

    def guard_mapping(self, schema: NodeSchema, output_key: str, method: str = "save_as") -> None:
        """Refuse to copy a sensitive output into variables or expressions."""
        output_spec = schema.outputs.get(output_key)
        if output_spec is not None and output_spec.sensitive:
            raise SensitiveMappingViolation(
                f"Cannot map sensitive output '{output_key}' of '{schema.id}' "
                f"to variables via {method}"
            )

    # === DATA STORE GUARDS ===

    def validate_identifier(self, name: str, what: str = "identifier") -> str:
        if not isinstance(name, str) or not IDENTIFIER_PATTERN.fullmatch(name):
            raise InvalidType(f"Invalid {what} '{name}': letters, digits and underscore only")
        return name

    def require_filter(self, where: dict[str, Any] | None, operation: str) -> dict[str, Any]:
        """Writes and deletes must always carry a non-empty filter object."""
        if not isinstance(where, dict) or not where:
            raise DbEmptyWhere(f"{operation} requires a non-empty WHERE filter")
        return where
