"""Crawler Bounded Context.

Pluggable, paginated content sources for search and crawler consumption,
aggregated behind one opaque resumable cursor.
"""
from .value_objects import (
    ContentPage, ContentRequest, CrawlerCursor, CrawlerFetchOptions,
    Pagination, SourceCursor, SourcePage,
)
from .entities import (
    CacheConfig, CrawlerDataSource, CrawlerSourceConfig,
    PaginationConfig, RateLimitConfig,
)
from .aggregates import CrawlerDataSourceRegistry

__all__ = [
    "ContentPage", "ContentRequest", "CrawlerCursor", "CrawlerFetchOptions",
    "Pagination", "SourceCursor", "SourcePage",
    "CacheConfig", "CrawlerDataSource", "CrawlerSourceConfig",
    "PaginationConfig", "RateLimitConfig",
    "CrawlerDataSourceRegistry",
]
