"""Crawler Domain Entities.

A CrawlerDataSource is identified by its ``name``. Unlike intent and
component definitions it is mutable: sources are enabled and disabled in
place without being removed.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

from ixpserver.domains.schema.value_objects import SchemaNode, parse_schema
from ixpserver.domains.shared.errors import InvalidSourceError
from ixpserver.domains.shared.kernel import pick

from .value_objects import CrawlerFetchOptions

DEFAULT_PAGE_LIMIT = 100
MAX_PAGE_LIMIT = 1000
MIN_RATE_LIMIT_WINDOW_MS = 1000

SourceHandler = Callable[[CrawlerFetchOptions], Union[Awaitable[Any], Any]]


@dataclass(frozen=True)
class PaginationConfig:
    default_limit: int = DEFAULT_PAGE_LIMIT
    max_limit: int = MAX_PAGE_LIMIT

    def effective_limit(self, requested: Optional[int]) -> int:
        """Requested limit (or the default) capped at ``max_limit``."""
        return min(requested or self.default_limit, self.max_limit)


@dataclass(frozen=True)
class CacheConfig:
    """Declared cache hint. The registry itself never caches."""
    enabled: bool = False
    ttl: Optional[int] = None


@dataclass(frozen=True)
class RateLimitConfig:
    """Declared rate limit. Enforcement belongs to outer middleware."""
    requests: int
    window_ms: int


@dataclass(frozen=True)
class CrawlerSourceConfig:
    """Per-source configuration.

    Attributes:
        pagination: Default and maximum page sizes
        cache: Optional cache hint
        rate_limit: Optional rate limit hint
        auth_required: Whether the source's content needs authentication
    """
    pagination: PaginationConfig = field(default_factory=PaginationConfig)
    cache: Optional[CacheConfig] = None
    rate_limit: Optional[RateLimitConfig] = None
    auth_required: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "CrawlerSourceConfig":
        """Build from the camelCase config form.

        Values are taken as given; :meth:`CrawlerDataSourceRegistry.validate_configuration`
        checks them.
        """
        if not data:
            return cls()
        if not isinstance(data, Mapping):
            raise InvalidSourceError("Crawler source config must be an object")

        pagination_raw = data.get("pagination") or {}
        pagination = PaginationConfig(
            default_limit=pick(pagination_raw, "defaultLimit", DEFAULT_PAGE_LIMIT),
            max_limit=pick(pagination_raw, "maxLimit", MAX_PAGE_LIMIT),
        )

        cache_raw = data.get("cache")
        cache = None
        if isinstance(cache_raw, Mapping):
            cache = CacheConfig(enabled=cache_raw.get("enabled", False), ttl=cache_raw.get("ttl"))

        rate_raw = pick(data, "rateLimit")
        rate_limit = None
        if isinstance(rate_raw, Mapping):
            rate_limit = RateLimitConfig(
                requests=rate_raw.get("requests"),
                window_ms=pick(rate_raw, "windowMs", rate_raw.get("window")),
            )

        auth = data.get("auth") or {}
        return cls(
            pagination=pagination,
            cache=cache,
            rate_limit=rate_limit,
            auth_required=bool(auth.get("required", False)) if isinstance(auth, Mapping) else bool(auth),
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "pagination": {
                "defaultLimit": self.pagination.default_limit,
                "maxLimit": self.pagination.max_limit,
            },
            "auth": {"required": self.auth_required},
        }
        if self.cache is not None:
            result["cache"] = {"enabled": self.cache.enabled, "ttl": self.cache.ttl}
        if self.rate_limit is not None:
            result["rateLimit"] = {
                "requests": self.rate_limit.requests,
                "windowMs": self.rate_limit.window_ms,
            }
        return result


@dataclass(eq=False)
class CrawlerDataSource:
    """A pluggable, paginated content provider.

    The handler receives :class:`CrawlerFetchOptions` and returns either a
    ``{"data": [...], "pagination": {"hasMore", "nextCursor"}}`` mapping or
    a plain list of records. It may be a coroutine function.

    Examples:
        >>> async def list_articles(options):
        ...     rows = ARTICLES[options.offset:options.offset + options.limit]
        ...     return {"data": rows, "pagination": {
        ...         "hasMore": options.offset + len(rows) < len(ARTICLES)}}
        >>> CrawlerDataSource(
        ...     name="articles",
        ...     version="1.0.0",
        ...     schema={"type": "object", "properties": {"title": {"type": "string"}}},
        ...     handler=list_articles,
        ... )
    """
    name: str
    version: str
    schema: Dict[str, Any]
    handler: SourceHandler
    description: str = ""
    enabled: bool = True
    config: CrawlerSourceConfig = field(default_factory=CrawlerSourceConfig)

    @cached_property
    def schema_node(self) -> SchemaNode:
        return parse_schema(self.schema)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CrawlerDataSource":
        if not isinstance(data, Mapping):
            raise InvalidSourceError(
                f"Crawler source must be an object, got {type(data).__name__}"
            )
        config_raw = data.get("config")
        enabled = data.get("enabled")
        if enabled is None and isinstance(config_raw, Mapping):
            enabled = config_raw.get("enabled")
        return cls(
            name=data.get("name"),
            version=data.get("version"),
            schema=data.get("schema"),
            handler=data.get("handler"),
            description=data.get("description") or "",
            enabled=True if enabled is None else bool(enabled),
            config=CrawlerSourceConfig.from_dict(config_raw),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Descriptor without the handler."""
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "enabled": self.enabled,
            "schema": self.schema,
            "config": self.config.to_dict(),
        }
