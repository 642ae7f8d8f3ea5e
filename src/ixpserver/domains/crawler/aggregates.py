"""Crawler Domain Aggregate Root.

The CrawlerDataSourceRegistry owns the registered data sources and
aggregates their paginated content into one resumable page stream.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from ixpserver.domains.schema.services import SchemaValidator
from ixpserver.domains.schema.value_objects import ObjectSchema, ValidationMode
from ixpserver.domains.shared.errors import (
    DuplicateNameError,
    InvalidRequestError,
    InvalidSourceError,
    SchemaDefinitionError,
)

from .entities import MIN_RATE_LIMIT_WINDOW_MS, CrawlerDataSource, CrawlerSourceConfig
from .value_objects import (
    ContentPage,
    ContentRequest,
    CrawlerCursor,
    CrawlerFetchOptions,
    Pagination,
    SourceCursor,
    SourcePage,
)

logger = logging.getLogger(__name__)

SourceLike = Union[CrawlerDataSource, Mapping[str, Any]]


@dataclass
class _SourceOutcome:
    name: str
    state: SourceCursor
    items: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class CrawlerDataSourceRegistry:
    """Registry of crawler data sources plus the content aggregator.

    Invariants:
        - Each name has at most one source
        - Every stored source passed :meth:`validate_configuration`

    Fan-out:
        ``get_content`` calls every selected source concurrently with no
        concurrency cap and no timeout. This is fine for a handful of
        sources; large source counts need an outer limit.

    The registry never caches handler results and never enforces the
    declared rate limits; both are hints for outer layers.
    """
    _sources: Dict[str, CrawlerDataSource] = field(default_factory=dict)
    validator: SchemaValidator = field(default_factory=SchemaValidator)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def register(self, source: SourceLike) -> CrawlerDataSource:
        """Register a data source.

        Raises:
            DuplicateNameError: If the name is already registered
            InvalidSourceError: If the source or its config is invalid
        """
        source = self._coerce(source)
        self._validate_source(source)
        if source.name in self._sources:
            raise DuplicateNameError("Crawler data source", source.name)
        self._sources[source.name] = source
        logger.info("Crawler data source '%s' registered (version %s)", source.name, source.version)
        return source

    def unregister(self, name: str) -> bool:
        removed = self._sources.pop(name, None) is not None
        if removed:
            logger.info("Crawler data source '%s' unregistered", name)
        return removed

    def enable(self, name: str) -> bool:
        return self._set_enabled(name, True)

    def disable(self, name: str) -> bool:
        return self._set_enabled(name, False)

    def clear(self) -> None:
        self._sources = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, name: str) -> Optional[CrawlerDataSource]:
        return self._sources.get(name)

    def get_all(self) -> List[CrawlerDataSource]:
        return list(self._sources.values())

    def has(self, name: str) -> bool:
        return name in self._sources

    def __len__(self) -> int:
        return len(self._sources)

    def find_by_criteria(
        self,
        enabled: Optional[bool] = None,
        has_auth: Optional[bool] = None,
    ) -> List[CrawlerDataSource]:
        results = []
        for source in self._sources.values():
            if enabled is not None and source.enabled != enabled:
                continue
            if has_auth is not None and source.config.auth_required != has_auth:
                continue
            results.append(source)
        return results

    def get_stats(self) -> Dict[str, int]:
        sources = self._sources.values()
        return {
            "total": len(self._sources),
            "enabled": sum(1 for s in sources if s.enabled),
            "withAuth": sum(1 for s in sources if s.config.auth_required),
            "withCache": sum(1 for s in sources if s.config.cache and s.config.cache.enabled),
            "withRateLimit": sum(1 for s in sources if s.config.rate_limit is not None),
        }

    def get_schema_info(self) -> Dict[str, Dict[str, Any]]:
        """Per-source schema summary for discovery endpoints."""
        info: Dict[str, Dict[str, Any]] = {}
        for source in self._sources.values():
            properties = source.schema.get("properties") or {}
            required = list(source.schema.get("required") or [])
            info[source.name] = {
                "schema": source.schema,
                "version": source.version,
                "requiredFields": required,
                "optionalFields": [name for name in properties if name not in required],
                "fieldTypes": {
                    name: definition.get("type") for name, definition in properties.items()
                },
            }
        return info

    def validate_configuration(self, source: SourceLike) -> Dict[str, Any]:
        """Validate a source without registering it.

        Returns:
            ``{"valid": bool, "errors": [message, ...]}``
        """
        try:
            self._validate_source(self._coerce(source))
        except InvalidSourceError as exc:
            return {"valid": False, "errors": [exc.message]}
        return {"valid": True, "errors": []}

    # ------------------------------------------------------------------
    # Content aggregation
    # ------------------------------------------------------------------

    async def get_content(
        self, request: Union[ContentRequest, Mapping[str, Any], None] = None
    ) -> ContentPage:
        """Fetch one page of content from the selected sources.

        Every selected source that is not exhausted under the incoming
        cursor is called once. The returned cursor resumes each of them
        exactly where this page stopped.

        Raises:
            InvalidRequestError: Malformed cursor (code ``INVALID_CURSOR``)
                or a limit below 1
        """
        if request is None:
            request = ContentRequest()
        elif not isinstance(request, ContentRequest):
            request = ContentRequest.from_query(request)
        if request.limit is not None and request.limit < 1:
            raise InvalidRequestError("limit must be a positive integer")

        cursor = CrawlerCursor.decode(request.cursor)
        selected = self._select_sources(request.sources)
        pending = [s for s in selected if not cursor.for_source(s.name).exhausted]

        outcomes = await asyncio.gather(
            *(self._fetch_source(source, cursor.for_source(source.name), request)
              for source in pending)
        )

        states = dict(cursor.sources)
        contents: List[Dict[str, Any]] = []
        failed: List[Dict[str, str]] = []
        for outcome in outcomes:
            states[outcome.name] = outcome.state
            contents.extend(outcome.items)
            if outcome.error is not None:
                failed.append({"source": outcome.name, "error": outcome.error})

        has_more = any(
            not states.get(source.name, SourceCursor()).exhausted for source in selected
        )
        next_cursor = CrawlerCursor(sources=states).encode() if has_more else None

        metadata = None
        if request.include_metadata or failed:
            metadata = {
                "sources": [o.name for o in outcomes if o.error is None],
                "totalSources": len(selected),
                "failedSources": failed,
            }
            if request.include_metadata:
                metadata["schema"] = self._combined_schema(selected)

        return ContentPage(
            data=contents,
            pagination=Pagination(next_cursor=next_cursor, has_more=has_more),
            last_updated=datetime.now(timezone.utc).isoformat(),
            metadata=metadata,
        )

    async def _fetch_source(
        self,
        source: CrawlerDataSource,
        state: SourceCursor,
        request: ContentRequest,
    ) -> _SourceOutcome:
        options = CrawlerFetchOptions(
            limit=source.config.pagination.effective_limit(request.limit),
            offset=state.offset,
            cursor=state.cursor,
            fields=request.fields,
            last_updated=request.last_updated,
        )
        try:
            result = source.handler(options)
            if inspect.isawaitable(result):
                result = await result
            page = SourcePage.from_result(result, options.limit)
        except Exception as exc:
            logger.error("Error retrieving data from crawler source '%s': %s",
                         source.name, exc, exc_info=True)
            return _SourceOutcome(name=source.name, state=state, error=str(exc) or type(exc).__name__)

        items = self._to_content_items(source, page.data, state.offset)
        logger.debug("Retrieved %d items from crawler source '%s' (offset %d)",
                     len(items), source.name, state.offset)
        return _SourceOutcome(name=source.name, state=state.advance(page), items=items)

    def _to_content_items(
        self, source: CrawlerDataSource, records: List[Any], offset: int
    ) -> List[Dict[str, Any]]:
        now = datetime.now(timezone.utc).isoformat()
        items = []
        for index, record in enumerate(records):
            if not isinstance(record, Mapping):
                logger.warning("Crawler source '%s' returned a non-object record at %d; skipped",
                               source.name, offset + index)
                continue
            self.validator.check(
                dict(record),
                source.schema_node,
                mode=ValidationMode.ADVISORY,
                subject=f"Record {offset + index} from crawler source '{source.name}'",
            )
            items.append({
                "type": source.name,
                "id": record.get("id") or record.get("_id") or f"{source.name}-{offset + index}",
                "title": record.get("title") or record.get("name") or "Untitled",
                "description": record.get("description") or record.get("summary") or "",
                "lastUpdated": record.get("lastUpdated") or record.get("updatedAt") or now,
                "source": source.name,
                "url": record.get("url") or record.get("link"),
                **record,
            })
        return items

    def _select_sources(self, names: Optional[Tuple[str, ...]]) -> List[CrawlerDataSource]:
        if not names:
            return [s for s in self._sources.values() if s.enabled]
        selected = []
        for name in dict.fromkeys(names):
            source = self._sources.get(name)
            if source is None:
                logger.debug("Ignoring unknown crawler source '%s'", name)
                continue
            if source.enabled:
                selected.append(source)
        return selected

    @staticmethod
    def _combined_schema(sources: List[CrawlerDataSource]) -> Dict[str, Any]:
        properties: Dict[str, Any] = {}
        required: List[str] = []
        for source in sources:
            properties.update(source.schema.get("properties") or {})
            for name in source.schema.get("required") or []:
                if name not in required:
                    required.append(name)
        return {"type": "object", "properties": properties, "required": required}

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _set_enabled(self, name: str, enabled: bool) -> bool:
        source = self._sources.get(name)
        if source is None:
            return False
        source.enabled = enabled
        logger.info("Crawler data source '%s' %s", name, "enabled" if enabled else "disabled")
        return True

    @staticmethod
    def _coerce(source: SourceLike) -> CrawlerDataSource:
        if isinstance(source, CrawlerDataSource):
            return source
        return CrawlerDataSource.from_dict(source)

    @staticmethod
    def _validate_source(source: CrawlerDataSource) -> None:
        if not isinstance(source.name, str) or not source.name:
            raise InvalidSourceError("Data source name is required and must be a string")
        if not callable(source.handler):
            raise InvalidSourceError(
                f"Data source '{source.name}' handler is required and must be callable"
            )
        if not isinstance(source.version, str) or not source.version:
            raise InvalidSourceError(
                f"Data source '{source.name}' version is required and must be a string"
            )
        if not isinstance(source.schema, Mapping) or source.schema.get("type") != "object":
            raise InvalidSourceError(
                f"Data source '{source.name}' schema is required and must be an object schema"
            )
        try:
            node = source.schema_node
        except SchemaDefinitionError as exc:
            raise InvalidSourceError(
                f"Data source '{source.name}' has an invalid schema: {exc.message}"
            ) from exc
        if not isinstance(node, ObjectSchema):
            raise InvalidSourceError(f"Data source '{source.name}' schema must be an object schema")
        for name in node.required:
            if name not in node.properties:
                raise InvalidSourceError(
                    f"Data source '{source.name}' required field '{name}' "
                    f"not found in schema properties"
                )
        _validate_source_config(source.name, source.config)


def _validate_source_config(name: str, config: CrawlerSourceConfig) -> None:
    pagination = config.pagination
    for label, value in (("defaultLimit", pagination.default_limit),
                         ("maxLimit", pagination.max_limit)):
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise InvalidSourceError(
                f"Data source '{name}' pagination {label} must be a positive integer"
            )
    if pagination.default_limit > pagination.max_limit:
        raise InvalidSourceError(
            f"Data source '{name}' pagination defaultLimit cannot exceed maxLimit"
        )

    cache = config.cache
    if cache is not None:
        if not isinstance(cache.enabled, bool):
            raise InvalidSourceError(f"Data source '{name}' cache enabled must be a boolean")
        if cache.enabled and (
            isinstance(cache.ttl, bool) or not isinstance(cache.ttl, (int, float)) or cache.ttl <= 0
        ):
            raise InvalidSourceError(
                f"Data source '{name}' cache ttl must be positive when caching is enabled"
            )

    rate_limit = config.rate_limit
    if rate_limit is not None:
        requests = rate_limit.requests
        if isinstance(requests, bool) or not isinstance(requests, int) or requests < 1:
            raise InvalidSourceError(
                f"Data source '{name}' rate limit requests must be a positive integer"
            )
        window = rate_limit.window_ms
        if isinstance(window, bool) or not isinstance(window, (int, float)) or window < MIN_RATE_LIMIT_WINDOW_MS:
            raise InvalidSourceError(
                f"Data source '{name}' rate limit window must be at least "
                f"{MIN_RATE_LIMIT_WINDOW_MS}ms"
            )
