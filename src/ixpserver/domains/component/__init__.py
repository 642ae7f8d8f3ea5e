"""Component Bounded Context.

Remote, framework-tagged UI bundle references and the renderer that turns
them into safe markup for a client-side loader.
"""
from .value_objects import (
    FallbackReference, PerformanceMetadata, RenderArtifact, RenderContext,
    RenderRequest, RenderTiming, SecurityPolicy, parse_size,
)
from .entities import WILDCARD_ORIGIN, ComponentDefinition
from .aggregates import ComponentRegistry
from .services import ComponentRenderer, create_template_environment, script_safe_json

__all__ = [
    "FallbackReference", "PerformanceMetadata", "RenderArtifact", "RenderContext",
    "RenderRequest", "RenderTiming", "SecurityPolicy", "parse_size",
    "WILDCARD_ORIGIN", "ComponentDefinition",
    "ComponentRegistry",
    "ComponentRenderer", "create_template_environment", "script_safe_json",
]
