"""Error taxonomy shared by every IXP bounded context.

Each error carries a stable wire ``code``, the HTTP-class ``status_code``
the composition root answers with, and an ``ErrorCategory`` so operators can
tell intent-author mistakes apart from platform misconfiguration.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


class ErrorCategory(str, Enum):
    """Coarse classification used for logging and alert routing."""

    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    DATA_PROVIDER = "data_provider"
    REGISTRY = "registry"
    RENDER = "render"
    SECURITY = "security"
    INTERNAL = "internal"


class IXPError(Exception):
    """Base class for all structured IXP errors.

    Attributes:
        code: Stable machine readable error code (e.g. ``INTENT_NOT_FOUND``)
        status_code: HTTP status the composition root maps this error to
        category: ErrorCategory used to separate client and platform faults
        details: Optional JSON-serialisable payload for diagnostics
        timestamp: ISO-8601 UTC creation time
    """

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_response(self) -> Dict[str, Any]:
        """Render the error in the ``{success, error}`` wire shape."""
        error: Dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "timestamp": self.timestamp,
        }
        if self.details is not None:
            error["details"] = self.details
        return {"success": False, "error": error}

    @classmethod
    def from_exception(cls, exc: BaseException) -> "IXPError":
        """Wrap an arbitrary exception; IXP errors pass through unchanged."""
        if isinstance(exc, IXPError):
            return exc
        return IXPError(
            str(exc) or exc.__class__.__name__,
            details={"originalError": exc.__class__.__name__},
        )


# ============================================================
# Not found
# ============================================================


class IntentNotFoundError(IXPError):
    """Raised when a request names an intent that is not registered."""

    code = "INTENT_NOT_FOUND"
    status_code = 404
    category = ErrorCategory.NOT_FOUND

    def __init__(self, intent_name: str) -> None:
        super().__init__(
            f"Intent '{intent_name}' not found",
            details={"intentName": intent_name},
        )
        self.intent_name = intent_name


class ComponentNotFoundError(IXPError):
    """Raised when a component lookup by name fails."""

    code = "COMPONENT_NOT_FOUND"
    status_code = 404
    category = ErrorCategory.NOT_FOUND

    def __init__(self, component_name: str, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"Component '{component_name}' not found",
            details={"componentName": component_name},
        )
        self.component_name = component_name


class ComponentMappingError(ComponentNotFoundError):
    """An intent points at a component that is not registered.

    Keeps the ``COMPONENT_NOT_FOUND`` wire code but is categorised as a
    configuration fault: the intent author did nothing wrong, the server's
    registries disagree.
    """

    category = ErrorCategory.CONFIGURATION

    def __init__(self, intent_name: str, component_name: str) -> None:
        super().__init__(
            component_name,
            message=(
                f"Component '{component_name}' mapped by intent "
                f"'{intent_name}' not found"
            ),
        )
        self.intent_name = intent_name
        self.details = {"componentName": component_name, "intentName": intent_name}


# ============================================================
# Validation
# ============================================================


class InvalidRequestError(IXPError):
    """Malformed request envelope (missing fields, bad cursor, bad limit)."""

    code = "INVALID_REQUEST"
    status_code = 400
    category = ErrorCategory.VALIDATION


class SchemaValidationError(IXPError):
    """A value violated a schema in strict mode.

    Carries every violation, never only the first one.
    """

    code = "SCHEMA_VALIDATION_FAILED"
    status_code = 400
    category = ErrorCategory.VALIDATION

    def __init__(self, subject: str, violations: Iterable[Any]) -> None:
        self.violations: List[Any] = list(violations)
        messages = [str(v) for v in self.violations]
        super().__init__(
            f"{subject} validation failed: {'; '.join(messages)}",
            details={"validationErrors": [_violation_to_dict(v) for v in self.violations]},
        )
        self.subject = subject


class ParameterValidationError(SchemaValidationError):
    """Intent parameters do not satisfy the intent's parameter schema."""

    code = "PARAMETER_VALIDATION_FAILED"

    def to_response(self) -> Dict[str, Any]:
        response = super().to_response()
        response["error"]["details"] = [
            _violation_to_dict(v) for v in self.violations
        ]
        return response


class SchemaDefinitionError(IXPError):
    """A schema definition itself is malformed."""

    code = "INVALID_SCHEMA"
    status_code = 500
    category = ErrorCategory.CONFIGURATION


# ============================================================
# Registry mutation
# ============================================================


class DuplicateNameError(IXPError):
    """A definition with the same name is already registered."""

    code = "DUPLICATE_NAME"
    status_code = 409
    category = ErrorCategory.REGISTRY

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(
            f"{kind} '{name}' is already registered",
            details={"kind": kind, "name": name},
        )
        self.kind = kind
        self.name = name


class InvalidDefinitionError(IXPError):
    """An intent or component definition is structurally invalid."""

    code = "INVALID_DEFINITION"
    status_code = 400
    category = ErrorCategory.REGISTRY


class InvalidSourceError(IXPError):
    """A crawler data source is missing required members or has bad config."""

    code = "INVALID_SOURCE"
    status_code = 400
    category = ErrorCategory.REGISTRY


# ============================================================
# Collaborators, rendering, security
# ============================================================


class DataProviderError(IXPError):
    """The external Data Provider failed; never reclassified as validation."""

    code = "DATA_PROVIDER_ERROR"
    status_code = 500
    category = ErrorCategory.DATA_PROVIDER

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        details = None
        if cause is not None:
            details = {"originalError": cause.__class__.__name__, "reason": str(cause)}
        super().__init__(f"Data provider error: {message}", details=details)
        self.cause = cause


class RenderError(IXPError):
    """The renderer could not build an artifact for the request."""

    code = "RENDER_ERROR"
    status_code = 500
    category = ErrorCategory.RENDER


class OriginNotAllowedError(IXPError):
    """The calling origin may not load the resolved component."""

    code = "ORIGIN_NOT_ALLOWED"
    status_code = 403
    category = ErrorCategory.SECURITY

    def __init__(self, origin: str, component_name: str) -> None:
        super().__init__(
            f"Origin '{origin}' not allowed for component '{component_name}'",
            details={"origin": origin, "componentName": component_name},
        )


def _violation_to_dict(violation: Any) -> Any:
    to_dict = getattr(violation, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return str(violation)
