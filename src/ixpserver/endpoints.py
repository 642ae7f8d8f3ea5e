"""Transport-neutral IXP endpoint handlers.

Each handler returns ``(status_code, payload)`` and never raises for
domain errors: IXP errors become their ``{success: False, error}`` wire
form, anything else becomes ``INTERNAL_ERROR``. The FastMCP tools and the
HTTP routes in :mod:`ixpserver.server` are thin bindings over these.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

from ixpserver.container import IXPContainer
from ixpserver.domains.component.value_objects import RenderArtifact, RenderRequest
from ixpserver.domains.crawler.value_objects import (
    ContentRequest,
    CrawlerCursor,
    SourceCursor,
)
from ixpserver.domains.intent.value_objects import IntentRequest
from ixpserver.domains.shared.errors import (
    DataProviderError,
    ErrorCategory,
    InvalidRequestError,
    IXPError,
    OriginNotAllowedError,
)
from ixpserver.domains.shared.kernel import parse_bool, parse_list

logger = logging.getLogger(__name__)

Result = Tuple[int, Dict[str, Any]]

INTENT_LISTING_SOURCE = "intents"


def error_result(exc: BaseException) -> Result:
    """Translate an exception into a status code and error payload."""
    error = IXPError.from_exception(exc)
    if not isinstance(exc, IXPError):
        logger.error("Unexpected error handling IXP request", exc_info=exc)
    elif error.category is ErrorCategory.CONFIGURATION or error.status_code >= 500:
        logger.error("%s: %s", error.code, error.message)
    else:
        logger.debug("%s: %s", error.code, error.message)
    return error.status_code, error.to_response()


@dataclass
class IXPEndpoints:
    """Request handlers bound to one container."""

    container: IXPContainer

    async def render(self, body: Any, origin: Optional[str] = None) -> Result:
        """``POST /ixp/render``: resolve an intent to a component reference."""
        try:
            request = IntentRequest.from_dict(body)
            record = await self.container.intent_resolver.resolve_intent(request)
            self._check_origin(record.component.name, origin)
        except Exception as exc:
            return error_result(exc)
        return 200, {
            "success": True,
            "component": record.to_component_payload(),
            "ttl": record.ttl,
            "resolvedAt": record.resolved_at.isoformat(),
            "cacheHit": record.cache_hit,
        }

    async def render_page(self, body: Any, origin: Optional[str] = None) -> Tuple[int, Dict[str, Any], Optional[RenderArtifact]]:
        """``POST /ixp/page``: render a full HTML document.

        The body names either an intent (``{"intent": {...}}``) or a
        component directly (``{"component": {"name", "props"}}``). Optional
        ``theme``, ``apiBase``, ``title`` and ``meta`` shape the page.
        """
        try:
            if not isinstance(body, Mapping):
                raise InvalidRequestError("Request body must be a JSON object")
            artifact = await self._render_artifact(body, origin)
            page = self.container.renderer.generate_page(
                artifact,
                title=body.get("title") or self.container.config.PAGE_TITLE,
                meta=body.get("meta"),
                sdk_url=self.container.config.SDK_URL or None,
            )
        except Exception as exc:
            status, payload = error_result(exc)
            return status, payload, None
        return 200, {"success": True, "html": page, "artifact": artifact.to_dict()}, artifact

    def list_intents(
        self,
        crawlable: Any = None,
        category: Optional[str] = None,
        tags: Any = None,
    ) -> Result:
        """``GET /ixp/intents``: registry dump, no resolution performed."""
        try:
            intents = self.container.intent_registry.find_by_criteria(
                crawlable=None if crawlable in (None, "") else parse_bool(crawlable),
                category=category or None,
                tags=parse_list(tags),
            )
        except Exception as exc:
            return error_result(exc)
        return 200, {
            "success": True,
            "intents": [intent.to_dict() for intent in intents],
            "total": len(intents),
        }

    def list_components(self, framework: Optional[str] = None) -> Result:
        """``GET /ixp/components``: registry dump."""
        try:
            components = self.container.component_registry.find_by_criteria(
                framework=framework or None,
            )
        except Exception as exc:
            return error_result(exc)
        return 200, {
            "success": True,
            "components": [component.to_dict() for component in components],
            "total": len(components),
        }

    async def crawler_content(self, params: Mapping[str, Any]) -> Result:
        """``GET /ixp/crawler_content``.

        Uses the registered crawler sources; with none registered, falls back
        to the Data Provider's ``get_crawler_content`` and then to a listing
        of crawlable intents.
        """
        try:
            request = ContentRequest.from_query(params)
            if request.limit is not None and request.limit < 1:
                raise InvalidRequestError("limit must be a positive integer")
            if len(self.container.crawler_registry):
                page = await self.container.crawler_registry.get_content(request)
                return 200, {"success": True, **page.to_dict()}
            provided = await self._provider_crawler_content(request)
            if provided is not None:
                return 200, {"success": True, **provided}
            return 200, {"success": True, **self._crawlable_intents(request)}
        except Exception as exc:
            return error_result(exc)

    def health(self) -> Result:
        try:
            return 200, {"success": True, **self.container.get_health()}
        except Exception as exc:
            return error_result(exc)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_origin(self, component_name: str, origin: Optional[str]) -> None:
        if not origin or not self.container.config.ENFORCE_ORIGIN_CHECK:
            return
        if not self.container.component_registry.is_origin_allowed(component_name, origin):
            logger.warning("Origin '%s' rejected for component '%s'", origin, component_name)
            raise OriginNotAllowedError(origin, component_name)

    async def _render_artifact(self, body: Mapping[str, Any], origin: Optional[str]) -> RenderArtifact:
        theme = body.get("theme")
        api_base = body.get("apiBase") or ""
        if "intent" in body:
            request = IntentRequest.from_dict(body)
            record = await self.container.intent_resolver.resolve_intent(request)
            self._check_origin(record.component.name, origin)
            return self.container.renderer.render_record(record, theme=theme, api_base=api_base)

        component = body.get("component")
        if not isinstance(component, Mapping) or not component.get("name"):
            raise InvalidRequestError("Request must name an 'intent' or a 'component'")
        if self.container.component_registry.has(component["name"]):
            self._check_origin(component["name"], origin)
        return self.container.renderer.render(RenderRequest(
            component_name=component["name"],
            props=dict(component.get("props") or {}),
            theme=theme,
            api_base=api_base,
        ))

    async def _provider_crawler_content(self, request: ContentRequest) -> Optional[Dict[str, Any]]:
        provider = self.container.data_provider
        method = getattr(provider, "get_crawler_content", None) if provider is not None else None
        if not callable(method):
            return None
        options: Dict[str, Any] = {
            "cursor": request.cursor,
            "limit": request.limit or self.container.config.CRAWLER_DEFAULT_LIMIT,
        }
        if request.last_updated:
            options["lastUpdated"] = request.last_updated
        try:
            result = method(options)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            raise DataProviderError("failed to get crawler content", cause=exc) from exc
        if not isinstance(result, Mapping) or not isinstance(result.get("contents"), list):
            raise DataProviderError("crawler content must be an object with a 'contents' list")

        pagination = result.get("pagination") or {}
        return {
            "contents": result["contents"],
            "pagination": {
                "nextCursor": pagination.get("nextCursor"),
                "hasMore": bool(pagination.get("hasMore", False)),
            },
            "lastUpdated": result.get("lastUpdated") or _now(),
        }

    def _crawlable_intents(self, request: ContentRequest) -> Dict[str, Any]:
        config = self.container.config
        limit = min(request.limit or config.CRAWLER_DEFAULT_LIMIT, config.CRAWLER_MAX_LIMIT)
        state = CrawlerCursor.decode(request.cursor).for_source(INTENT_LISTING_SOURCE)
        intents = self.container.intent_registry.find_by_criteria(crawlable=True)
        window = intents[state.offset:state.offset + limit]
        now = _now()
        contents = [
            {
                "type": "intent",
                "id": intent.name,
                "title": intent.name,
                "description": intent.description,
                "lastUpdated": now,
                "source": INTENT_LISTING_SOURCE,
                "component": intent.component,
                "version": intent.version,
                "category": intent.category,
                "tags": list(intent.tags),
            }
            for intent in window
        ]
        offset = state.offset + len(window)
        has_more = offset < len(intents)
        next_cursor = None
        if has_more:
            next_cursor = CrawlerCursor(
                sources={INTENT_LISTING_SOURCE: SourceCursor(offset=offset)}
            ).encode()
        return {
            "contents": contents,
            "pagination": {"nextCursor": next_cursor, "hasMore": has_more},
            "lastUpdated": now,
        }


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
