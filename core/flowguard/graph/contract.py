"""
Node contract helpers shared by every node.

- validate_inputs(): required fields, defaults, type coercion, enum and
  pattern checks against a node's input schema.
- resolve_variables(): {{dotted.path}} substitution against the run's
  variables plus the reserved ``profile`` namespace.
"""

from __future__ import annotations

import copy
import json
import logging
import math
import re
from typing import TYPE_CHECKING, Any

from flowguard.errors import InvalidType, MissingRequiredInput
from flowguard.graph.node import FieldSpec, FieldType, NodeSchema

if TYPE_CHECKING:
    from flowguard.runtime.run_store import RunContext

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([\w.\-]+)\s*\}\}")
PROFILE_NAMESPACE = "profile"
SECRETS_NAMESPACE = "secrets"

_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
_FALSE_STRINGS = frozenset({"false", "0", "no", "off"})
_MISSING = object()


def _is_absent(value: Any) -> bool:
    return value is None or value == ""


def _coerce_number(key: str, value: Any) -> int | float:
    if isinstance(value, bool):
        raise InvalidType(f"Input {key} must be a number")
    if isinstance(value, int | float):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        try:
            number = int(text)
        except ValueError:
            try:
                number = float(text)
            except ValueError:
                raise InvalidType(f"Input {key} must be a number") from None
    else:
        raise InvalidType(f"Input {key} must be a number")
    if isinstance(number, float) and not math.isfinite(number):
        raise InvalidType(f"Input {key} must be a finite number")
    return number


def _coerce_boolean(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise InvalidType(f"Input {key} must be a boolean")


def _coerce_structured(key: str, value: Any, field_type: FieldType) -> Any:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise InvalidType(f"Input {key} must be valid JSON: {e.msg}") from e
    if field_type == FieldType.ARRAY and not isinstance(value, list | tuple):
        raise InvalidType(f"Input {key} must be an array")
    if field_type == FieldType.JSON and not isinstance(value, dict | list):
        raise InvalidType(f"Input {key} must be a JSON object or array")
    return list(value) if isinstance(value, tuple) else value


def _coerce(key: str, value: Any, spec: FieldSpec) -> Any:
    if spec.type == FieldType.NUMBER:
        return _coerce_number(key, value)
    if spec.type == FieldType.BOOLEAN:
        return _coerce_boolean(key, value)
    if spec.type in (FieldType.JSON, FieldType.ARRAY):
        return _coerce_structured(key, value, spec.type)
    return value


def validate_inputs(
    inputs: dict[str, Any] | None,
    schema: NodeSchema | dict[str, FieldSpec],
) -> dict[str, Any]:
    """
    Validate and normalise node inputs against an input schema.

    Args:
        inputs: Raw inputs (already variable-resolved)
        schema: A NodeSchema or its ``inputs`` mapping

    Returns:
        A new dict with defaults applied and declared types coerced.
        Fields the schema does not declare pass through unchanged.

    Raises:
        MissingRequiredInput: a required field is absent, None or ""
        InvalidType: coercion, enum or pattern check failed
    """
    fields = schema.inputs if isinstance(schema, NodeSchema) else schema
    validated = dict(inputs or {})

    for key, spec in fields.items():
        value = validated.get(key, _MISSING)
        absent = value is _MISSING or _is_absent(value)

        if spec.required and absent:
            raise MissingRequiredInput(f"Missing required input: {key}")

        if absent:
            if spec.default is not None:
                validated[key] = copy.deepcopy(spec.default)
            continue

        value = _coerce(key, value, spec)

        if spec.enum is not None and value not in spec.enum:
            allowed = ", ".join(str(option) for option in spec.enum)
            raise InvalidType(f"Input {key} must be one of: {allowed}")

        if spec.pattern is not None:
            if not isinstance(value, str) or re.fullmatch(spec.pattern, value) is None:
                raise InvalidType(f"Input {key} does not match pattern {spec.pattern}")

        validated[key] = value

    return validated


def _lookup(namespace: dict[str, Any], path: str) -> Any:
    current: Any = namespace
    for part in path.split("."):
        if isinstance(current, dict):
            if part not in current:
                return _MISSING
            current = current[part]
        elif isinstance(current, list | tuple) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return _MISSING
            current = current[index]
        else:
            return _MISSING
    return _MISSING if current is None else current


def _substitute(value: Any, namespace: dict[str, Any], field_name: str) -> Any:
    if isinstance(value, dict):
        return {k: _substitute(v, namespace, field_name) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute(v, namespace, field_name) for v in value]
    if not isinstance(value, str) or "{{" not in value:
        return value

    # A field that is exactly one placeholder keeps the native type
    whole = PLACEHOLDER_PATTERN.fullmatch(value.strip())
    if whole:
        resolved = _lookup(namespace, whole.group(1))
        if resolved is _MISSING:
            logger.warning(f"Failed to resolve variable {{{{{whole.group(1)}}}}} in '{field_name}'")
            return value
        logger.debug(f"Resolved {whole.group(1)} -> {type(resolved).__name__}")
        return resolved

    def replace(match: re.Match) -> str:
        path = match.group(1)
        resolved = _lookup(namespace, path)
        if resolved is _MISSING:
            logger.warning(f"Failed to resolve variable {{{{{path}}}}} in '{field_name}'")
            return f"{{{{{path}}}}}"
        if isinstance(resolved, dict | list):
            return json.dumps(resolved, default=str)
        return str(resolved)

    return PLACEHOLDER_PATTERN.sub(replace, value)


def resolve_variables(
    inputs: dict[str, Any] | None,
    context: RunContext,
    sensitive_fields: set[str] | frozenset[str] = frozenset(),
) -> dict[str, Any]:
    """
    Replace {{dotted.path}} placeholders in string fields.

    Paths resolve against the run's variables merged with the reserved
    ``profile`` namespace. Fields listed in ``sensitive_fields`` may also
    read from the ``secrets`` namespace; nothing else can. Unresolvable
    placeholders are left as literal text and logged, never raised.
    """
    if not inputs:
        return dict(inputs or {})

    namespace = {**context.variables, PROFILE_NAMESPACE: context.profile or {}}
    secret_namespace = {**namespace, SECRETS_NAMESPACE: context.secrets or {}}

    resolved = {}
    for key, value in inputs.items():
        scope = secret_namespace if key in sensitive_fields else namespace
        resolved[key] = _substitute(value, scope, key)
    return resolved
