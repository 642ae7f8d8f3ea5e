"""Component Domain Value Objects.

Immutable types that carry no identity. Equality is structural.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Mapping, Optional

from ixpserver.domains.shared.kernel import pick

_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([KMG]?B)?\s*$", re.IGNORECASE)
_SIZE_UNITS = {"B": 1, "KB": 1024, "MB": 1024 ** 2, "GB": 1024 ** 3}


def parse_size(value: Optional[str]) -> Optional[int]:
    """Parse a human size string into bytes.

    Examples:
        >>> parse_size("45KB")
        46080
        >>> parse_size("1.5MB")
        1572864
        >>> parse_size("unknown") is None
        True
    """
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    match = _SIZE_PATTERN.match(str(value))
    if not match:
        return None
    number, unit = match.groups()
    return int(float(number) * _SIZE_UNITS[(unit or "B").upper()])


@dataclass(frozen=True)
class SecurityPolicy:
    """Loading constraints for a remote bundle.

    Attributes:
        allow_eval: Permit ``'unsafe-eval'`` in the emitted CSP
        max_bundle_size: Advisory ceiling for ``bundle_size`` (e.g. "200KB")
        sandboxed: Ask the client loader to isolate the component
    """
    allow_eval: bool = False
    max_bundle_size: Optional[str] = None
    sandboxed: bool = True

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "SecurityPolicy":
        if not data:
            return cls()
        return cls(
            allow_eval=pick(data, "allowEval", False),
            max_bundle_size=pick(data, "maxBundleSize"),
            sandboxed=pick(data, "sandboxed", True),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowEval": self.allow_eval,
            "maxBundleSize": self.max_bundle_size,
            "sandboxed": self.sandboxed,
        }


@dataclass(frozen=True)
class PerformanceMetadata:
    """Declared performance characteristics (informational)."""
    tti: Optional[str] = None
    bundle_size_gzipped: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "PerformanceMetadata":
        if not data:
            return cls()
        return cls(
            tti=pick(data, "tti"),
            bundle_size_gzipped=pick(data, "bundleSizeGzipped"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"tti": self.tti, "bundleSizeGzipped": self.bundle_size_gzipped}


@dataclass(frozen=True)
class FallbackReference:
    """What the client shows when the primary bundle fails to load.

    Attributes:
        component: Name of another registered component to try instead
        message: Text for the built-in error fallback
    """
    component: Optional[str] = None
    message: Optional[str] = None

    DEFAULT_MESSAGE: ClassVar[str] = "This component failed to load."

    @classmethod
    def from_dict(cls, data: Any) -> Optional["FallbackReference"]:
        if data is None:
            return None
        if isinstance(data, str):
            return cls(component=data)
        return cls(component=pick(data, "component"), message=pick(data, "message"))

    def to_dict(self) -> Dict[str, Any]:
        return {"component": self.component, "message": self.message}


@dataclass(frozen=True)
class RenderRequest:
    """Input to :meth:`ComponentRenderer.render`."""
    component_name: str
    props: Dict[str, Any] = field(default_factory=dict)
    intent_id: Optional[str] = None
    theme: Optional[Dict[str, Any]] = None
    api_base: str = ""


@dataclass(frozen=True)
class RenderContext:
    """Identifiers and settings handed to the client loader."""
    component_id: str
    intent_id: Optional[str] = None
    theme: Dict[str, Any] = field(default_factory=dict)
    api_base: str = ""

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "componentId": self.component_id,
            "theme": self.theme,
            "apiBase": self.api_base,
        }
        if self.intent_id is not None:
            result["intentId"] = self.intent_id
        return result


@dataclass(frozen=True)
class RenderTiming:
    render_time_ms: float
    bundle_size: str

    def to_dict(self) -> Dict[str, Any]:
        return {"renderTime": self.render_time_ms, "bundleSize": self.bundle_size}


@dataclass(frozen=True)
class RenderArtifact:
    """The renderer's output: markup plus the references it points at.

    Attributes:
        html: Mount container, props blob, error fallback and bootstrap
        bundle_url: Remote module the client loader imports
        export_name: Named export the loader mounts
        props: Props serialised into the artifact
        context: Render identifiers
        csp: Content-Security-Policy matching the emitted markup
        nonce: Nonce carried by the bootstrap scripts
        performance: Server-side timing and declared bundle size
        warnings: Non-fatal issues noticed while rendering
    """
    html: str
    bundle_url: str
    export_name: str
    props: Dict[str, Any]
    context: RenderContext
    csp: str
    nonce: str
    performance: RenderTiming
    warnings: tuple = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "html": self.html,
            "bundleUrl": self.bundle_url,
            "exportName": self.export_name,
            "props": self.props,
            "context": self.context.to_dict(),
            "csp": self.csp,
            "performance": self.performance.to_dict(),
            "warnings": list(self.warnings),
        }
