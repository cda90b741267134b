"""Policy engine: capabilities, egress fortress, sandbox, safe expressions."""

from flowguard.policy.capabilities import Capability, RoleCapabilityMap
from flowguard.policy.egress import EgressPolicy, is_private_ip
from flowguard.policy.engine import PolicyEngine
from flowguard.policy.expressions import evaluate_expression
from flowguard.policy.sandbox import FilesystemSandbox

__all__ = [
    "Capability",
    "RoleCapabilityMap",
    "EgressPolicy",
    "is_private_ip",
    "FilesystemSandbox",
    "evaluate_expression",
    "PolicyEngine",
]
