"""Intent Domain Service.

The IntentResolver is the core domain service that converts an intent
request into a component reference plus merged props. It coordinates
between:
- IntentRegistry (intent lookup)
- ComponentRegistry (mapped component lookup)
- SchemaValidator (parameter validation)
- DataProvider (optional external data, awaited)
"""
from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol, Union

from ixpserver.domains.component.aggregates import ComponentRegistry
from ixpserver.domains.component.entities import ComponentDefinition
from ixpserver.domains.component.value_objects import parse_size
from ixpserver.domains.schema.services import SchemaValidator
from ixpserver.domains.schema.value_objects import ValidationMode, ValidationResult
from ixpserver.domains.shared.errors import (
    ComponentMappingError,
    DataProviderError,
    IntentNotFoundError,
    InvalidRequestError,
    IXPError,
    ParameterValidationError,
)

from .aggregates import IntentRegistry
from .entities import IntentDefinition
from .events import DeprecatedDefinitionUsed, IntentResolutionFailed, IntentResolved
from .value_objects import IntentRequest, ResolutionRecord

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300
DEPRECATED_TTL = 60
CRAWLABLE_MIN_TTL = 600
LARGE_BUNDLE_MIN_TTL = 900
LARGE_BUNDLE_BYTES = 50 * 1024


class DataProvider(Protocol):
    """Protocol for the external data collaborator.

    Both methods are optional; the resolver and the crawler endpoint check
    for them before calling. Implementations may be sync or async.
    """
    async def resolve_intent_data(
        self, request: IntentRequest, context: Optional[Dict[str, Any]]
    ) -> Mapping[str, Any]:
        """Return extra props for a resolved intent."""
        ...

    async def get_crawler_content(self, options: Mapping[str, Any]) -> Mapping[str, Any]:
        """Return ``{"contents": [...], "pagination": {...}}``."""
        ...


class EventPublisher(Protocol):
    """Protocol for publishing domain events."""
    def publish(self, event: object) -> None: ...


@dataclass(frozen=True)
class TtlPolicy:
    """Cache hint heuristics used when neither request nor intent set a TTL.

    Deprecated definitions get a short TTL so callers pick up replacements
    quickly. Crawlable intents and large bundles get longer ones.
    """
    default: int = DEFAULT_TTL
    deprecated: int = DEPRECATED_TTL
    crawlable_min: int = CRAWLABLE_MIN_TTL
    large_bundle_min: int = LARGE_BUNDLE_MIN_TTL
    large_bundle_bytes: int = LARGE_BUNDLE_BYTES

    def compute(self, intent: IntentDefinition, component: ComponentDefinition) -> int:
        if intent.deprecated or component.deprecated:
            return self.deprecated
        ttl = self.default
        if intent.crawlable:
            ttl = max(ttl, self.crawlable_min)
        gzipped = parse_size(component.performance.bundle_size_gzipped)
        if gzipped is not None and gzipped > self.large_bundle_bytes:
            ttl = max(ttl, self.large_bundle_min)
        return ttl


@dataclass
class IntentResolver:
    """Resolves intent requests into component references.

    Usage from the composition root:

        resolver = IntentResolver(intents, components, data_provider=provider)
        record = await resolver.resolve_intent(
            IntentRequest(name="greet", parameters={"name": "Ada"})
        )
        # record.module_url == "https://cdn/x.js"
        # record.props == {"name": "Ada"}

    The resolver holds no mutable state of its own; concurrent calls are
    independent.
    """
    intent_registry: IntentRegistry
    component_registry: ComponentRegistry
    data_provider: Optional[Any] = None
    event_publisher: Optional[EventPublisher] = None
    validator: SchemaValidator = field(default_factory=SchemaValidator)
    ttl_policy: TtlPolicy = field(default_factory=TtlPolicy)

    async def resolve_intent(
        self, request: Union[IntentRequest, Mapping[str, Any]]
    ) -> ResolutionRecord:
        """Resolve an intent request.

        Args:
            request: IntentRequest, or its ``{intent: {name, parameters}}``
                mapping form

        Returns:
            ResolutionRecord with module URL, export name, merged props, TTL

        Raises:
            IntentNotFoundError: Unknown intent name
            ParameterValidationError: Parameters violate the intent schema;
                carries every violation
            ComponentMappingError: The intent maps to an unregistered component
            DataProviderError: The Data Provider raised or returned a non-object
            InvalidRequestError: Malformed request or negative TTL override

        Resolution algorithm:
            1. Look up the intent
            2. Validate parameters strictly, collecting every violation
            3. Look up the mapped component
            4. Await the Data Provider, if one is configured
            5. Merge props: component defaults < provider data < parameters
            6. Pick the TTL: request override, intent ttl, then TtlPolicy
            7. Return the record (cache_hit is always False)
        """
        if not isinstance(request, IntentRequest):
            request = IntentRequest.from_dict(request)
        try:
            return await self._resolve(request)
        except IXPError as exc:
            self._publish(IntentResolutionFailed(
                intent_name=request.name,
                code=exc.code,
                category=exc.category.value,
                message=exc.message,
            ))
            raise

    async def _resolve(self, request: IntentRequest) -> ResolutionRecord:
        # Step 1: Intent lookup
        intent = self.intent_registry.get(request.name)
        if intent is None:
            raise IntentNotFoundError(request.name)

        # Step 2: Parameter validation
        parameters = dict(request.parameters or {})
        self.validate_parameters(intent, parameters)

        # Step 3: Component lookup (forward references resolve here)
        component = self.component_registry.get(intent.component)
        if component is None:
            logger.error(
                "Intent '%s' is mapped to unregistered component '%s'",
                intent.name, intent.component,
            )
            raise ComponentMappingError(intent.name, intent.component)

        self._warn_deprecated(intent, component)

        # Step 4: External data
        provider_data = await self._fetch_provider_data(request)

        # Step 5: Merge
        props: Dict[str, Any] = component.default_props()
        props.update(provider_data)
        props.update(parameters)
        self.validate_component_props(component, props)

        # Step 6: TTL
        ttl = self._select_ttl(request, intent, component)

        record = ResolutionRecord(
            module_url=component.remote_url,
            export_name=component.export_name,
            props=props,
            ttl=ttl,
            intent=intent,
            component=component,
        )
        logger.debug("Resolved intent '%s' -> '%s' (ttl=%s)", intent.name, component.name, ttl)
        self._publish(IntentResolved(
            intent_name=intent.name,
            component_name=component.name,
            ttl=ttl,
            used_data_provider=self._provider_method("resolve_intent_data") is not None,
        ))
        return record

    def validate_parameters(
        self, intent: IntentDefinition, parameters: Mapping[str, Any]
    ) -> ValidationResult:
        """Strictly validate parameters against the intent's schema.

        Raises:
            ParameterValidationError: Carrying every violation found
        """
        return self.validator.check(
            dict(parameters),
            intent.parameter_schema,
            mode=ValidationMode.STRICT,
            subject=f"Parameters for intent '{intent.name}'",
            error_cls=ParameterValidationError,
        )

    def validate_component_props(
        self, component: ComponentDefinition, props: Mapping[str, Any]
    ) -> ValidationResult:
        """Advisory check of merged props against the component's props schema.

        Provider data is outside the intent author's control, so mismatches
        are logged and the props are kept.
        """
        return self.validator.check(
            dict(props),
            component.props_node,
            mode=ValidationMode.ADVISORY,
            subject=f"Props for component '{component.name}'",
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _fetch_provider_data(self, request: IntentRequest) -> Dict[str, Any]:
        method = self._provider_method("resolve_intent_data")
        if method is None:
            return {}
        try:
            result = method(request, request.context)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            logger.error("Data provider failed for intent '%s': %s", request.name, exc)
            raise DataProviderError(
                f"failed to resolve data for intent '{request.name}'", cause=exc
            ) from exc

        if result is None:
            return {}
        if not isinstance(result, Mapping):
            raise DataProviderError(
                f"expected an object for intent '{request.name}', "
                f"got {type(result).__name__}"
            )
        return dict(result)

    def _provider_method(self, name: str) -> Optional[Any]:
        if self.data_provider is None:
            return None
        method = getattr(self.data_provider, name, None)
        return method if callable(method) else None

    def _select_ttl(
        self,
        request: IntentRequest,
        intent: IntentDefinition,
        component: ComponentDefinition,
    ) -> int:
        if request.ttl is not None:
            ttl = request.ttl
            if isinstance(ttl, bool) or not isinstance(ttl, int):
                raise InvalidRequestError("ttl must be an integer number of seconds")
            if ttl < 0:
                raise InvalidRequestError("ttl must not be negative")
            return ttl
        if intent.ttl is not None:
            return intent.ttl
        return self.ttl_policy.compute(intent, component)

    def _warn_deprecated(self, intent: IntentDefinition, component: ComponentDefinition) -> None:
        if intent.deprecated:
            logger.warning("Resolving deprecated intent '%s'", intent.name)
            self._publish(DeprecatedDefinitionUsed(
                kind="intent", name=intent.name, intent_name=intent.name,
            ))
        if component.deprecated:
            logger.warning(
                "Intent '%s' resolves to deprecated component '%s'",
                intent.name, component.name,
            )
            self._publish(DeprecatedDefinitionUsed(
                kind="component", name=component.name, intent_name=intent.name,
            ))

    def _publish(self, event: object) -> None:
        """Publish an event if a publisher is configured."""
        if self.event_publisher is not None:
            self.event_publisher.publish(event)
