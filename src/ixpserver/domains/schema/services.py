"""Schema Domain Service.

``SchemaValidator`` runs ``jsonschema``'s Draft 7 validator over the source
of a compiled :class:`SchemaNode` and turns every reported error into a
:class:`Violation`, so callers can report the complete list in one round
trip.
"""
from __future__ import annotations

import logging
import math
import re
from typing import Any, Iterable, List, Mapping, Set, Type, Union

from jsonschema import Draft7Validator, validators
from jsonschema.exceptions import ValidationError

from ixpserver.domains.shared.errors import SchemaValidationError

from .value_objects import (
    SchemaNode,
    ValidationMode,
    ValidationResult,
    Violation,
    format_path,
    parse_schema,
)

logger = logging.getLogger(__name__)

SchemaLike = Union[SchemaNode, Mapping[str, Any]]

_BASE_TYPES = Draft7Validator.TYPE_CHECKER

# Values reach the validator as Python objects rather than parsed JSON.
_TYPE_CHECKER = _BASE_TYPES.redefine_many({
    "array": lambda checker, value: isinstance(value, (list, tuple)),
    "object": lambda checker, value: isinstance(value, Mapping),
    "number": lambda checker, value: (
        _BASE_TYPES.is_type(value, "number")
        and not (isinstance(value, float) and math.isnan(value))
    ),
})

IXPDraft7Validator = validators.extend(Draft7Validator, type_checker=_TYPE_CHECKER)


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


def _undeclared_keys(error: ValidationError) -> List[str]:
    declared = error.schema.get("properties") or {}
    patterns = list(error.schema.get("patternProperties") or {})
    return [
        key for key in error.instance
        if key not in declared and not any(re.search(p, key) for p in patterns)
    ]


class SchemaValidator:
    """Validates values against JSON Schema (Draft 7) definitions.

    Usage:

        validator = SchemaValidator()
        result = validator.validate({"name": "Ada"}, {
            "type": "object",
            "properties": {"name": {"type": "string"}},
            "required": ["name"],
        })
        assert result.valid
    """

    def validate(self, value: Any, schema: SchemaLike) -> ValidationResult:
        """Validate ``value`` and return every violation found.

        Raises:
            SchemaDefinitionError: If ``schema`` is a raw mapping that does
                not compile
        """
        node = parse_schema(schema)
        errors = IXPDraft7Validator(node.source).iter_errors(value)
        violations = self._to_violations(errors)
        return ValidationResult(valid=not violations, errors=tuple(violations))

    def check(
        self,
        value: Any,
        schema: SchemaLike,
        mode: ValidationMode = ValidationMode.STRICT,
        subject: str = "Value",
        error_cls: Type[SchemaValidationError] = SchemaValidationError,
    ) -> ValidationResult:
        """Validate and apply the mode's policy to any violations.

        STRICT raises ``error_cls`` carrying all violations. ADVISORY logs a
        warning and returns the (invalid) result so the caller can keep the
        value.
        """
        result = self.validate(value, schema)
        if result.valid:
            return result
        if mode is ValidationMode.STRICT:
            raise error_cls(subject, result.errors)
        logger.warning(
            "%s failed schema validation (%d violation(s)): %s",
            subject,
            len(result.errors),
            "; ".join(str(e) for e in result.errors),
        )
        return result

    # ------------------------------------------------------------------
    # Error translation
    # ------------------------------------------------------------------

    @staticmethod
    def _to_violations(errors: Iterable[ValidationError]) -> List[Violation]:
        """One Violation per offending location.

        ``required`` and ``additionalProperties`` are reported on the
        missing or undeclared key rather than on the enclosing object.
        """
        violations: List[Violation] = []
        reported: Set[str] = set()
        for error in errors:
            path = format_path(error.absolute_path)
            keyword = str(error.validator)

            if keyword == "type":
                expected = error.validator_value
                if isinstance(expected, str):
                    expected = [expected]
                violations.append(Violation(
                    path, keyword,
                    f"expected {' or '.join(expected)}, got {_type_name(error.instance)}",
                ))
            elif keyword == "required":
                for name in error.validator_value:
                    location = format_path([*error.absolute_path, name])
                    if name not in error.instance and location not in reported:
                        reported.add(location)
                        violations.append(Violation(location, keyword, "is required"))
            elif keyword == "additionalProperties" and error.validator_value is False:
                for key in _undeclared_keys(error):
                    violations.append(Violation(
                        format_path([*error.absolute_path, key]), keyword, "is not allowed",
                    ))
            else:
                violations.append(Violation(path, keyword, error.message))
        return violations
