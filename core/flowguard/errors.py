"""
Error taxonomy for graph runs.

Every policy or contract violation is a FlowguardError carrying a stable,
string-identified ErrorKind. None of them are retried: each one is an
authorization or safety violation that a retry cannot fix.
"""

from enum import StrEnum


class ErrorKind(StrEnum):
    """Stable identifiers surfaced verbatim to callers."""

    ACCESS_DENIED = "AccessDenied"
    EGRESS_PROTOCOL = "EgressProtocol"
    EGRESS_DENYLIST = "EgressDenylist"
    EGRESS_DNS_PRIVATE_IP = "EgressDnsPrivateIp"
    SANDBOX_TRAVERSAL = "SandboxTraversal"
    SANDBOX_OUTSIDE_ROOT = "SandboxOutsideRoot"
    DB_EMPTY_WHERE = "DbEmptyWhere"
    SENSITIVE_MAPPING_VIOLATION = "SensitiveMappingViolation"
    UNSAFE_EXPRESSION = "UnsafeExpression"
    MISSING_REQUIRED_INPUT = "MissingRequiredInput"
    INVALID_TYPE = "InvalidType"
    TIMEOUT = "Timeout"
    NODE_FAILED = "NodeFailed"


class FlowguardError(Exception):
    """Base class for all run failures."""

    kind: ErrorKind = ErrorKind.NODE_FAILED

    def __init__(self, message: str, kind: ErrorKind | None = None):
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class AccessDenied(FlowguardError):
    kind = ErrorKind.ACCESS_DENIED

    def __init__(self, role: str | None, capability: str):
        self.role = role
        self.capability = capability
        super().__init__(f"Role '{role}' missing capability '{capability}'")


class EgressViolation(FlowguardError):
    """Outbound network target rejected by the egress fortress."""


class SandboxViolation(FlowguardError):
    """File path rejected by the filesystem sandbox."""


class DbEmptyWhere(FlowguardError):
    kind = ErrorKind.DB_EMPTY_WHERE


class SensitiveMappingViolation(FlowguardError):
    kind = ErrorKind.SENSITIVE_MAPPING_VIOLATION


class UnsafeExpression(FlowguardError):
    kind = ErrorKind.UNSAFE_EXPRESSION


class MissingRequiredInput(FlowguardError):
    kind = ErrorKind.MISSING_REQUIRED_INPUT


class InvalidType(FlowguardError):
    kind = ErrorKind.INVALID_TYPE


class NodeTimeout(FlowguardError):
    kind = ErrorKind.TIMEOUT


class NodeFailed(FlowguardError):
    """A node implementation or collaborator raised a non-policy exception."""

    kind = ErrorKind.NODE_FAILED
