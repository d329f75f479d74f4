"""
VAX SDTO Schema

Typed field rules for the ``sdto`` object of an action. A provider declares
the fields an action type carries with a SchemaBuilder and publishes the
schema (build() gives the JSON transport form). A consumer fills a
FluentAction field by field; every set() is checked against its FieldSpec
and failures are collected, so finalize() either returns the canonical SAE
bytes or raises one SchemaValidationError listing every problem.

Field types:
    string   length bounds (min/max, in characters) or an enum of values
    number   inclusive numeric bounds, compared exactly
    sign     a non-empty signature string of one of the listed sign types

Bounds travel as decimal strings, e.g. FieldSpec("number", min="0", max="100").
Every field in a schema is required.
"""

import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import InvalidInputError, SchemaValidationError
from .sae import SemanticActionEnvelope, create_sae

FIELD_TYPES = ("string", "number", "sign")
SIGN_TYPES = ("ed25519", "rsa", "ecdsa")

Bound = Union[str, int, float, None]


def _bound_str(bound: Bound, field_name: str) -> Optional[str]:
    if bound is None:
        return None
    if isinstance(bound, bool) or not isinstance(bound, (str, int, float)):
        raise InvalidInputError(f"{field_name} must be a decimal string", {"field": field_name})
    return str(bound)


@dataclass(frozen=True)
class FieldSpec:
    """
    Validation rule for one sdto field.

    Fields:
    - type: "string", "number" or "sign"
    - min / max: Inclusive bounds as decimal strings (length for strings)
    - enum: Allowed values for strings, allowed sign types for sign fields
    """
    type: str
    min: Optional[str] = None
    max: Optional[str] = None
    enum: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.type not in FIELD_TYPES:
            raise InvalidInputError(f"unknown field type {self.type!r}", {"type": self.type})
        object.__setattr__(self, "min", _bound_str(self.min, "min"))
        object.__setattr__(self, "max", _bound_str(self.max, "max"))
        if not isinstance(self.enum, (list, tuple)) or not all(isinstance(v, str) for v in self.enum):
            raise InvalidInputError("enum must be a sequence of strings", {"field": "enum"})
        object.__setattr__(self, "enum", tuple(self.enum))
        # Parse once so a malformed bound fails when the schema is built
        self._bounds()

    def _bounds(self) -> Tuple[Optional[Decimal], Optional[Decimal]]:
        bounds = []
        for name, raw in (("min", self.min), ("max", self.max)):
            if raw is None:
                bounds.append(None)
                continue
            try:
                value = Decimal(raw.strip())
            except InvalidOperation:
                raise InvalidInputError(f"{name} is not a number: {raw!r}", {"field": name})
            if not value.is_finite():
                raise InvalidInputError(f"{name} must be finite: {raw!r}", {"field": name})
            if self.type == "string" and (value != value.to_integral_value() or value < 0):
                raise InvalidInputError(
                    f"string {name} must be a non-negative integer: {raw!r}", {"field": name}
                )
            bounds.append(value)
        return bounds[0], bounds[1]

    def validate(self, value: Any) -> Optional[str]:
        """
        Check a value against this rule.

        Returns:
            None if the value is acceptable, otherwise a short reason
        """
        if self.type == "string":
            return self._validate_string(value)
        if self.type == "number":
            return self._validate_number(value)
        return self._validate_sign(value)

    def _validate_string(self, value: Any) -> Optional[str]:
        if not isinstance(value, str):
            return "expected string"

        # An enum replaces the length bounds
        if self.enum:
            if value not in self.enum:
                return f"value {value!r} not in enum"
            return None

        low, high = self._bounds()
        if low is not None and len(value) < low:
            return f"string length {len(value)} < min {self.min}"
        if high is not None and len(value) > high:
            return f"string length {len(value)} > max {self.max}"
        return None

    def _validate_number(self, value: Any) -> Optional[str]:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return "expected number"
        if isinstance(value, float) and not math.isfinite(value):
            return "number must be finite"

        exact = Decimal(value)
        low, high = self._bounds()
        if low is not None and exact < low:
            return f"number < min {self.min}"
        if high is not None and exact > high:
            return f"number > max {self.max}"
        return None

    def _validate_sign(self, value: Any) -> Optional[str]:
        if not isinstance(value, str):
            return "sign field expects string value"
        if not value:
            return "sign value cannot be empty"
        return None

    def to_dict(self) -> Dict[str, Any]:
        """JSON transport form; unset bounds and an empty enum are omitted."""
        d: Dict[str, Any] = {"type": self.type}
        if self.min is not None:
            d["min"] = self.min
        if self.max is not None:
            d["max"] = self.max
        if self.enum:
            d["enum"] = list(self.enum)
        return d

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'FieldSpec':
        if not isinstance(data, Mapping) or "type" not in data:
            raise InvalidInputError("field spec must be an object with a type")
        return cls(
            type=data["type"],
            min=data.get("min"),
            max=data.get("max"),
            enum=data.get("enum") or (),
        )


Schema = Dict[str, FieldSpec]


def parse_schema(raw: Mapping[str, Any]) -> Schema:
    """
    Convert a transport schema into FieldSpecs.

    Accepts either the ``properties`` mapping or the full object produced by
    SchemaBuilder.build().

    Raises:
        InvalidInputError: If any field spec is malformed
    """
    if raw.get("type") == "object" and isinstance(raw.get("properties"), Mapping):
        raw = raw["properties"]
    schema: Schema = {}
    for name, spec in raw.items():
        try:
            schema[name] = FieldSpec.from_dict(spec)
        except InvalidInputError as e:
            raise InvalidInputError(f"field {name}: {e.message}", {"field": name})
    return schema


class SchemaBuilder:
    """
    Provider-side builder for an action's sdto schema.

    Usage:
        schema = (
            SchemaBuilder()
            .string_length("name", 1, 50)
            .number_range("amount", 0, 1000000)
            .enum("currency", ["EUR", "USD"])
            .build_schema()
        )
    """

    def __init__(self):
        self.fields: Schema = {}

    def string_length(self, name: str, min: Bound, max: Bound) -> 'SchemaBuilder':
        self.fields[name] = FieldSpec("string", min=min, max=max)
        return self

    def number_range(self, name: str, min: Bound, max: Bound) -> 'SchemaBuilder':
        self.fields[name] = FieldSpec("number", min=min, max=max)
        return self

    def enum(self, name: str, values: Sequence[str]) -> 'SchemaBuilder':
        if isinstance(values, str) or not values:
            raise InvalidInputError("enum needs a non-empty list of values", {"field": name})
        self.fields[name] = FieldSpec("string", enum=tuple(values))
        return self

    def sign(self, name: str, *sign_types: str) -> 'SchemaBuilder':
        """Declare a signature field accepting any of the given sign types."""
        sign_types = sign_types or ("ed25519",)
        unsupported = [t for t in sign_types if t not in SIGN_TYPES]
        if unsupported:
            raise InvalidInputError(
                f"unsupported sign types: {unsupported}", {"supported": list(SIGN_TYPES)}
            )
        self.fields[name] = FieldSpec("sign", enum=tuple(sign_types))
        return self

    def build_schema(self) -> Schema:
        """FieldSpecs for FluentAction / validate_data."""
        return dict(self.fields)

    def build(self) -> Dict[str, Any]:
        """JSON transport form, readable back with parse_schema()."""
        return {
            "type": "object",
            "properties": {name: spec.to_dict() for name, spec in self.fields.items()},
        }


def _check_fields(data: Mapping[str, Any], schema: Schema) -> List[str]:
    errors = []
    for name, spec in schema.items():
        if name not in data:
            errors.append(f"missing required field: {name}")
            continue
        reason = spec.validate(data[name])
        if reason:
            errors.append(f"field {name}: {reason}")
    for name in data:
        if name not in schema:
            errors.append(f"unknown field: {name}")
    return errors


def validate_data(data: Mapping[str, Any], schema: Schema) -> None:
    """
    Check a complete sdto against a schema, e.g. on the receiving side.

    Raises:
        SchemaValidationError: Listing missing, invalid and unknown fields
    """
    if not isinstance(data, Mapping):
        raise InvalidInputError("sdto must be an object/dict", {"field": "sdto"})
    errors = _check_fields(data, schema)
    if errors:
        raise SchemaValidationError(errors)


class FluentAction:
    """
    Consumer-side builder that validates each sdto field as it is set.

    Usage:
        payload = (
            FluentAction("transfer", schema)
            .set("name", "alice")
            .set("amount", 500)
            .finalize()
        )
        anchor = state.append(payload)
    """

    def __init__(self, action_type: str, schema: Schema):
        if not isinstance(action_type, str) or not action_type:
            raise InvalidInputError("action_type must be a non-empty string", {"field": "action_type"})
        self.action_type = action_type
        self.schema = dict(schema)
        self.data: Dict[str, Any] = {}
        self._errors: List[str] = []
        self._failed = set()

    @property
    def errors(self) -> List[str]:
        return list(self._errors)

    def set(self, key: str, value: Any) -> 'FluentAction':
        spec = self.schema.get(key)
        if spec is None:
            self._errors.append(f"unknown field: {key}")
            return self

        reason = spec.validate(value)
        if reason:
            self._errors.append(f"field {key}: {reason}")
            self._failed.add(key)
            return self

        self.data[key] = value
        return self

    def envelope(self, timestamp: Optional[int] = None) -> SemanticActionEnvelope:
        """
        Build the unsigned SAE once every field is set and valid.

        Raises:
            SchemaValidationError: Listing every failed set() and missing field
        """
        errors = self._errors + [
            f"missing required field: {name}"
            for name in self.schema
            if name not in self.data and name not in self._failed
        ]
        if errors:
            raise SchemaValidationError(errors, {"action_type": self.action_type})
        return create_sae(self.action_type, dict(self.data), timestamp)

    def finalize(self, timestamp: Optional[int] = None) -> bytes:
        """Canonical SAE bytes, ready for ChainState.append()."""
        return self.envelope(timestamp).to_bytes()
