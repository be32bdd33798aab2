"""
Parameter specs for tool schemas.

Every tool parameter is exactly one of a closed set of shapes. The shape
decides how a raw CLI token is coerced and how a JSON value is validated:

- StringParam / NumberParam / BooleanParam: scalars
- EnumParam: one string out of a fixed set
- ArrayParam: a list of string, number or enum items (or untyped JSON)
- ObjectParam: a JSON object
"""

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Optional, Union

from .errors import DecodeError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StringParam:
    description: str = ""
    required: bool = True
    default: Any = None
    strip: bool = False
    min_length: int = 0


@dataclass(frozen=True)
class NumberParam:
    description: str = ""
    required: bool = True
    default: Any = None
    integer: bool = False
    minimum: Optional[float] = None


@dataclass(frozen=True)
class BooleanParam:
    description: str = ""
    required: bool = True
    default: Any = None


@dataclass(frozen=True)
class EnumParam:
    description: str = ""
    required: bool = True
    default: Any = None
    values: tuple[str, ...] = ()


@dataclass(frozen=True)
class ArrayParam:
    description: str = ""
    required: bool = True
    default: Any = None
    # None means the items are free-form and only a JSON array literal is accepted
    items: Union[StringParam, NumberParam, EnumParam, None] = None


@dataclass(frozen=True)
class ObjectParam:
    description: str = ""
    required: bool = True
    default: Any = None


ParamSpec = Union[StringParam, NumberParam, BooleanParam, EnumParam, ArrayParam, ObjectParam]


def is_positional(spec: ParamSpec) -> bool:
    """Required scalar and enum params can be filled from positional tokens."""
    return spec.required and isinstance(spec, (StringParam, NumberParam, EnumParam))


def parse_json_object(raw: str, label: str) -> dict:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Failed to parse {label} as JSON object: {e}") from e
    if not isinstance(parsed, dict):
        raise DecodeError(f"Failed to parse {label} as JSON object: {label} must be a JSON object")
    return parsed


def parse_json_array(raw: str, label: str) -> list:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Failed to parse {label} as JSON array: {e}") from e
    if not isinstance(parsed, list):
        raise DecodeError(f"Failed to parse {label} as JSON array: {label} must be a JSON array")
    return parsed


def parse_boolean_like(raw: str, label: str) -> bool:
    normalized = raw.strip().lower()
    if normalized in ("true", "1", "yes"):
        return True
    if normalized in ("false", "0", "no"):
        return False
    raise DecodeError(f"Invalid boolean for {label}: {raw}")


def _parse_number(raw: str, key: str) -> Union[int, float]:
    try:
        value = float(raw)
    except ValueError:
        raise DecodeError(f"Invalid number for --{key}: {raw}")
    if not math.isfinite(value):
        raise DecodeError(f"Invalid number for --{key}: {raw}")
    return int(value) if value.is_integer() else value


def coerce_token(spec: ParamSpec, key: str, raw: str) -> Any:
    """
    Coerce one CLI token into a value for ``key``.

    Args:
        spec: The parameter's spec
        key: Parameter name, used in error messages as ``--key``
        raw: Token text with quotes already stripped

    Returns:
        The coerced value (a single item for array params unless the
        token is a JSON array literal)

    Raises:
        DecodeError: If the token can't be coerced to the param's shape
    """
    match spec:
        case StringParam() | EnumParam():
            return raw
        case NumberParam():
            return _parse_number(raw, key)
        case BooleanParam():
            return parse_boolean_like(raw, f"--{key}")
        case ObjectParam():
            return parse_json_object(raw, f"--{key}")
        case ArrayParam(items=items):
            if raw.strip().startswith("["):
                return parse_json_array(raw.strip(), f"--{key}")
            match items:
                case StringParam() | EnumParam():
                    return raw
                case NumberParam():
                    return _parse_number(raw, key)
                case None:
                    raise DecodeError(f"--{key} must be a JSON array")
    raise TypeError(f"Unsupported param spec for {key}: {spec!r}")


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _mismatch(key: str, expected: str, value: Any) -> ValidationError:
    return ValidationError(
        f'Invalid value for "{key}": expected {expected}, received {_type_name(value)}',
        field=key,
    )


def validate_value(spec: ParamSpec, key: str, value: Any) -> Any:
    """Check ``value`` against ``spec`` and return the parsed value."""
    match spec:
        case StringParam():
            if not isinstance(value, str):
                raise _mismatch(key, "string", value)
            if spec.strip:
                value = value.strip()
            if len(value) < spec.min_length:
                raise ValidationError(
                    f'Invalid value for "{key}": must contain at least {spec.min_length} character(s)',
                    field=key,
                )
            return value
        case NumberParam():
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise _mismatch(key, "number", value)
            if spec.integer and not float(value).is_integer():
                raise _mismatch(key, "integer", value)
            if spec.minimum is not None and value < spec.minimum:
                raise ValidationError(
                    f'Invalid value for "{key}": must be >= {spec.minimum}', field=key
                )
            return value
        case BooleanParam():
            if not isinstance(value, bool):
                raise _mismatch(key, "boolean", value)
            return value
        case EnumParam():
            if not isinstance(value, str) or value not in spec.values:
                choices = ", ".join(repr(v) for v in spec.values)
                raise ValidationError(
                    f'Invalid value for "{key}": expected one of {choices}, received {value!r}',
                    field=key,
                )
            return value
        case ArrayParam():
            if not isinstance(value, list):
                raise _mismatch(key, "array", value)
            if spec.items is None:
                return list(value)
            return [validate_value(spec.items, f"{key}[{i}]", item) for i, item in enumerate(value)]
        case ObjectParam():
            if not isinstance(value, dict):
                raise _mismatch(key, "object", value)
            return dict(value)
    raise TypeError(f"Unsupported param spec for {key}: {spec!r}")


def validate_params(schema: dict[str, ParamSpec], raw: dict[str, Any]) -> dict[str, Any]:
    """
    Validate raw params against a tool schema.

    Missing optional params get their default (if any). Keys the schema
    doesn't declare are dropped.

    Raises:
        ValidationError: Naming the first offending field
    """
    params: dict[str, Any] = {}
    for key, spec in schema.items():
        value = raw.get(key)
        if value is None:
            if spec.required:
                raise ValidationError(f'Missing required parameter "{key}"', field=key)
            if spec.default is not None:
                params[key] = spec.default
            continue
        params[key] = validate_value(spec, key, value)

    unknown = set(raw) - set(schema)
    if unknown:
        logger.debug(f"Ignoring undeclared params: {sorted(unknown)}")
    return params


def spec_json_schema(spec: ParamSpec) -> dict[str, Any]:
    """JSON Schema fragment for one param, used when listing tools."""
    match spec:
        case StringParam():
            result: dict[str, Any] = {"type": "string"}
            if spec.min_length:
                result["minLength"] = spec.min_length
        case NumberParam():
            result = {"type": "integer" if spec.integer else "number"}
            if spec.minimum is not None:
                result["minimum"] = spec.minimum
        case BooleanParam():
            result = {"type": "boolean"}
        case EnumParam():
            result = {"type": "string", "enum": list(spec.values)}
        case ArrayParam():
            result = {"type": "array"}
            if spec.items is not None:
                result["items"] = spec_json_schema(spec.items)
        case ObjectParam():
            result = {"type": "object"}
        case _:
            raise TypeError(f"Unsupported param spec: {spec!r}")
    if spec.description:
        result["description"] = spec.description
    if spec.default is not None:
        result["default"] = spec.default
    return result


def schema_to_json_schema(schema: dict[str, ParamSpec]) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {key: spec_json_schema(spec) for key, spec in schema.items()},
        "required": [key for key, spec in schema.items() if spec.required],
    }
