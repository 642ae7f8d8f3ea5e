"""Shared Kernel - Types shared across bounded contexts."""

from ixpserver.domains.shared.errors import (
    ComponentMappingError,
    ComponentNotFoundError,
    DataProviderError,
    DuplicateNameError,
    ErrorCategory,
    IntentNotFoundError,
    InvalidDefinitionError,
    InvalidRequestError,
    InvalidSourceError,
    IXPError,
    OriginNotAllowedError,
    ParameterValidationError,
    RenderError,
    SchemaDefinitionError,
    SchemaValidationError,
)
from ixpserver.domains.shared.kernel import (
    CoercedBool,
    CoercedParameters,
    CoercedStringList,
    JsonDict,
    JsonValue,
    NormalizedFramework,
    OptionalCoercedStringList,
)

__all__ = [
    "ComponentMappingError",
    "ComponentNotFoundError",
    "DataProviderError",
    "DuplicateNameError",
    "ErrorCategory",
    "IntentNotFoundError",
    "InvalidDefinitionError",
    "InvalidRequestError",
    "InvalidSourceError",
    "IXPError",
    "OriginNotAllowedError",
    "ParameterValidationError",
    "RenderError",
    "SchemaDefinitionError",
    "SchemaValidationError",
    "CoercedBool",
    "CoercedParameters",
    "CoercedStringList",
    "JsonDict",
    "JsonValue",
    "NormalizedFramework",
    "OptionalCoercedStringList",
]
