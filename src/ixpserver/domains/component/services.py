"""Component Domain Service.

The ComponentRenderer turns a component reference plus props into markup a
separate client-side loader can act on. It never fetches, inspects or runs
the remote bundle: the artifact only *references* it.

Safety rules for the emitted markup:
    - props travel in a ``<script type="application/json">`` blob with
      ``<``, ``>``, ``&`` and all non-ASCII escaped; they are never spliced
      into code
    - markup comes from the autoescaping Jinja2 templates in
      ``ixpserver/templates``; only the props blob bypasses escaping
    - the only executable script is a static bootstrap carrying a nonce
    - the CSP admits the bundle origins and the explicitly allowed origins
    - loading and error states are declared up front, since the server
      cannot observe client-side failures
"""
from __future__ import annotations

import json
import logging
import re
import secrets
import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Union

from jinja2 import Environment, PackageLoader, StrictUndefined, select_autoescape

from ixpserver.domains.schema.services import SchemaValidator
from ixpserver.domains.shared.errors import ComponentNotFoundError, RenderError

from .aggregates import ComponentRegistry
from .entities import WILDCARD_ORIGIN, ComponentDefinition
from .value_objects import (
    FallbackReference,
    RenderArtifact,
    RenderContext,
    RenderRequest,
    RenderTiming,
)

if TYPE_CHECKING:
    from ixpserver.domains.intent.value_objects import ResolutionRecord

logger = logging.getLogger(__name__)

DEFAULT_PAGE_TITLE = "IXP Component"

_JSON_SCRIPT_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
}
_SLUG = re.compile(r"[^a-z0-9]+")


def create_template_environment() -> Environment:
    """Jinja2 environment for the artifact and page templates.

    HTML templates autoescape; the bootstrap script only receives
    JSON produced by :func:`script_safe_json`.
    """
    return Environment(
        loader=PackageLoader("ixpserver", "templates"),
        autoescape=select_autoescape(["html", "xml"]),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def script_safe_json(value: Any) -> str:
    """Serialise ``value`` as JSON that is inert inside a ``<script>`` element.

    Raises:
        TypeError: If the value is not JSON serialisable
        ValueError: If it contains NaN or infinities
    """
    encoded = json.dumps(value, ensure_ascii=True, allow_nan=False, separators=(",", ":"))
    for char, escape in _JSON_SCRIPT_ESCAPES.items():
        encoded = encoded.replace(char, escape)
    return encoded


@dataclass
class ComponentRenderer:
    """Builds RenderArtifacts for registered components.

    Usage:

        renderer = ComponentRenderer(component_registry)
        artifact = renderer.render(RenderRequest("Greeter", {"name": "Ada"}))
        page = renderer.generate_page(artifact, title="Hello")
    """
    component_registry: ComponentRegistry
    validator: SchemaValidator = field(default_factory=SchemaValidator)
    validate_props: bool = True
    templates: Environment = field(default_factory=create_template_environment, repr=False)

    def render(self, request: Union[RenderRequest, Mapping[str, Any]]) -> RenderArtifact:
        """Render a component reference.

        Raises:
            ComponentNotFoundError: If the component is not registered
            RenderError: If props violate the props schema or cannot be
                serialised
        """
        started = time.perf_counter()
        if not isinstance(request, RenderRequest):
            request = _request_from_mapping(request)

        component = self.component_registry.get(request.component_name)
        if component is None:
            raise ComponentNotFoundError(request.component_name)

        props = dict(request.props or {})
        warnings: List[str] = []
        if component.deprecated:
            warnings.append(f"Component '{component.name}' is deprecated")
            logger.warning("Rendering deprecated component '%s'", component.name)

        if self.validate_props:
            result = self.validator.validate(props, component.props_node)
            if not result.valid:
                raise RenderError(
                    f"Props for component '{component.name}' failed validation: "
                    + "; ".join(str(e) for e in result.errors),
                    details={"validationErrors": [e.to_dict() for e in result.errors]},
                )

        context = RenderContext(
            component_id=self._component_id(component.name),
            intent_id=request.intent_id,
            theme=dict(request.theme or {}),
            api_base=request.api_base,
        )
        nonce = secrets.token_urlsafe(16)
        fallback_component = self._fallback_component(component, warnings)

        config = {
            "componentId": context.component_id,
            "component": component.name,
            "framework": component.framework,
            "bundleUrl": component.remote_url,
            "exportName": component.export_name,
            "props": props,
            "context": context.to_dict(),
            "sandboxed": component.security_policy.sandboxed,
            "fallback": (
                {
                    "bundleUrl": fallback_component.remote_url,
                    "exportName": fallback_component.export_name,
                }
                if fallback_component is not None
                else None
            ),
        }
        try:
            config_json = script_safe_json(config)
        except (TypeError, ValueError) as exc:
            raise RenderError(
                f"Props for component '{component.name}' are not JSON serialisable: {exc}"
            ) from exc

        markup = self._markup(component, context, nonce, config_json)
        csp = self.build_csp(component, nonce, fallback_component, include_frame_ancestors=True)

        elapsed_ms = round((time.perf_counter() - started) * 1000, 3)
        logger.debug("Rendered component '%s' as %s in %.3fms",
                     component.name, context.component_id, elapsed_ms)
        return RenderArtifact(
            html=markup,
            bundle_url=component.remote_url,
            export_name=component.export_name,
            props=props,
            context=context,
            csp=csp,
            nonce=nonce,
            performance=RenderTiming(
                render_time_ms=elapsed_ms,
                bundle_size=component.bundle_size or "0KB",
            ),
            warnings=tuple(warnings),
        )

    def render_record(
        self,
        record: "ResolutionRecord",
        theme: Optional[Dict[str, Any]] = None,
        api_base: str = "",
    ) -> RenderArtifact:
        """Render the component a ResolutionRecord points at."""
        return self.render(RenderRequest(
            component_name=record.component.name,
            props=record.props,
            intent_id=record.intent.name,
            theme=theme,
            api_base=api_base,
        ))

    def generate_page(
        self,
        artifact: RenderArtifact,
        title: str = DEFAULT_PAGE_TITLE,
        meta: Optional[Mapping[str, str]] = None,
        sdk_url: Optional[str] = None,
    ) -> str:
        """Wrap an artifact in a complete HTML document.

        The CSP meta tag repeats the artifact's policy minus
        ``frame-ancestors``, which browsers ignore in meta elements. The
        runtime SDK script is only emitted when ``sdk_url`` is given.
        """
        page_csp = "; ".join(
            directive for directive in artifact.csp.split("; ")
            if not directive.startswith("frame-ancestors")
        )
        return self.templates.get_template("page.html").render(
            csp=page_csp,
            title=title,
            meta=list((meta or {}).items()),
            sdk_url=sdk_url,
            nonce=artifact.nonce,
            artifact_html=artifact.html,
        )

    @staticmethod
    def build_csp(
        component: ComponentDefinition,
        nonce: str,
        fallback: Optional[ComponentDefinition] = None,
        include_frame_ancestors: bool = True,
    ) -> str:
        """Content-Security-Policy for one rendered component.

        ``script-src`` admits the page itself, the bootstrap nonce, the
        bundle origin(s) and any explicitly allowed origins; a ``"*"``
        entry never widens ``script-src``. ``frame-ancestors`` mirrors
        ``allowed_origins``.
        """
        bundle_origins = [component.bundle_origin]
        if fallback is not None and fallback.bundle_origin not in bundle_origins:
            bundle_origins.append(fallback.bundle_origin)

        script_src = ["'self'", f"'nonce-{nonce}'", *bundle_origins]
        for origin in component.allowed_origins:
            if origin != WILDCARD_ORIGIN and origin not in script_src:
                script_src.append(origin)
        if component.security_policy.allow_eval:
            script_src.append("'unsafe-eval'")

        directives = [
            "default-src 'self'",
            "script-src " + " ".join(script_src),
            "connect-src " + " ".join(["'self'", *bundle_origins]),
            "object-src 'none'",
            "base-uri 'none'",
        ]
        if include_frame_ancestors:
            if component.allows_any_origin():
                directives.append("frame-ancestors *")
            else:
                directives.append("frame-ancestors " + " ".join(component.allowed_origins))
        return "; ".join(directives)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _fallback_component(
        self, component: ComponentDefinition, warnings: List[str]
    ) -> Optional[ComponentDefinition]:
        reference = component.fallback
        if reference is None or not reference.component:
            return None
        fallback = self.component_registry.get(reference.component)
        if fallback is None:
            warnings.append(
                f"Fallback component '{reference.component}' for '{component.name}' is not registered"
            )
            logger.warning("Fallback component '%s' for '%s' is not registered",
                           reference.component, component.name)
        return fallback

    @staticmethod
    def _component_id(name: str) -> str:
        slug = _SLUG.sub("-", name.lower()).strip("-") or "component"
        return f"{slug}-{uuid.uuid4().hex[:12]}"

    def _markup(
        self,
        component: ComponentDefinition,
        context: RenderContext,
        nonce: str,
        config_json: str,
    ) -> str:
        fallback_message = (
            (component.fallback.message if component.fallback else None)
            or FallbackReference.DEFAULT_MESSAGE
        )
        return self.templates.get_template("component.html").render(
            component=component,
            component_id=context.component_id,
            component_id_json=script_safe_json(context.component_id),
            sandboxed=component.security_policy.sandboxed,
            fallback_message=fallback_message,
            config_json=config_json,
            nonce=nonce,
        )


def _request_from_mapping(data: Mapping[str, Any]) -> RenderRequest:
    name = data.get("componentName") or data.get("component_name")
    if not name:
        raise RenderError("Render request is missing 'componentName'")
    return RenderRequest(
        component_name=name,
        props=dict(data.get("props") or {}),
        intent_id=data.get("intentId") or data.get("intent_id"),
        theme=data.get("theme"),
        api_base=data.get("apiBase") or data.get("api_base") or "",
    )
