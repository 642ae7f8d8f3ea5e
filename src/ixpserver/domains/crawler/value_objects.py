"""Crawler Domain Value Objects.

Request, page and cursor types for the crawler content aggregator.

The aggregate cursor is opaque to callers: url-safe base64 of a versioned
JSON document holding, per source, the next offset, the source's own
cursor and whether the source is exhausted.
"""
from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ixpserver.domains.shared.errors import InvalidRequestError
from ixpserver.domains.shared.kernel import parse_bool, parse_list

CURSOR_VERSION = 1
INVALID_CURSOR = "INVALID_CURSOR"


@dataclass(frozen=True)
class CrawlerFetchOptions:
    """What a source handler is asked for.

    ``offset`` counts records this source already returned under the
    current crawl; ``cursor`` echoes the source's own ``nextCursor``.
    Handlers may use either.
    """
    limit: int
    offset: int = 0
    cursor: Optional[str] = None
    fields: Optional[Tuple[str, ...]] = None
    last_updated: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"limit": self.limit, "offset": self.offset}
        if self.cursor is not None:
            result["cursor"] = self.cursor
        if self.fields:
            result["fields"] = list(self.fields)
        if self.last_updated is not None:
            result["lastUpdated"] = self.last_updated
        return result


@dataclass(frozen=True)
class SourcePage:
    """A handler's result, normalised."""
    data: List[Any]
    has_more: bool = False
    next_cursor: Optional[str] = None
    total: Optional[int] = None

    @classmethod
    def from_result(cls, result: Any, limit: int) -> "SourcePage":
        """Accept a ``{data, pagination}`` mapping or a bare list.

        A bare list reports more content when it filled the whole page.

        Raises:
            TypeError: If the result has neither shape
        """
        if result is None:
            return cls(data=[])
        if isinstance(result, list):
            return cls(data=result, has_more=len(result) >= limit)
        if not isinstance(result, Mapping):
            raise TypeError(f"handler returned {type(result).__name__}, expected object or list")
        data = result.get("data")
        if data is None:
            data = result.get("contents", [])
        if not isinstance(data, list):
            raise TypeError("handler result 'data' must be a list")
        pagination = result.get("pagination") or {}
        next_cursor = pagination.get("nextCursor", pagination.get("next_cursor"))
        return cls(
            data=data,
            has_more=bool(pagination.get("hasMore", pagination.get("has_more", False))),
            next_cursor=next_cursor,
            total=pagination.get("total"),
        )


@dataclass(frozen=True)
class SourceCursor:
    """Resume point for one source."""
    offset: int = 0
    cursor: Optional[str] = None
    exhausted: bool = False

    def advance(self, page: SourcePage) -> "SourceCursor":
        return SourceCursor(
            offset=self.offset + len(page.data),
            cursor=page.next_cursor,
            exhausted=not page.has_more,
        )


@dataclass(frozen=True)
class CrawlerCursor:
    """Aggregate resume point across sources."""
    sources: Dict[str, SourceCursor] = field(default_factory=dict)

    def for_source(self, name: str) -> SourceCursor:
        return self.sources.get(name, SourceCursor())

    def encode(self) -> str:
        payload = {
            "v": CURSOR_VERSION,
            "s": {
                name: {"o": state.offset, "c": state.cursor, "x": state.exhausted}
                for name, state in self.sources.items()
            },
        }
        raw = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    @classmethod
    def decode(cls, token: Optional[str]) -> "CrawlerCursor":
        """Parse a cursor produced by :meth:`encode`.

        Raises:
            InvalidRequestError: With code ``INVALID_CURSOR`` on any
                malformed or foreign token
        """
        if not token:
            return cls()
        try:
            padded = token + "=" * (-len(token) % 4)
            payload = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        except (binascii.Error, UnicodeError, ValueError) as exc:
            raise _invalid_cursor("cursor is not decodable") from exc

        if not isinstance(payload, dict) or payload.get("v") != CURSOR_VERSION:
            raise _invalid_cursor("unsupported cursor version")
        entries = payload.get("s")
        if not isinstance(entries, dict):
            raise _invalid_cursor("cursor has no source entries")

        sources: Dict[str, SourceCursor] = {}
        for name, entry in entries.items():
            if not isinstance(entry, dict):
                raise _invalid_cursor(f"cursor entry for '{name}' is malformed")
            offset = entry.get("o", 0)
            inner = entry.get("c")
            exhausted = entry.get("x", False)
            if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
                raise _invalid_cursor(f"cursor offset for '{name}' is invalid")
            if inner is not None and not isinstance(inner, str):
                raise _invalid_cursor(f"cursor value for '{name}' is invalid")
            if not isinstance(exhausted, bool):
                raise _invalid_cursor(f"cursor state for '{name}' is invalid")
            sources[name] = SourceCursor(offset=offset, cursor=inner, exhausted=exhausted)
        return cls(sources=sources)


def _invalid_cursor(reason: str) -> InvalidRequestError:
    return InvalidRequestError(f"Invalid cursor: {reason}", code=INVALID_CURSOR)


@dataclass(frozen=True)
class ContentRequest:
    """Input to :meth:`CrawlerDataSourceRegistry.get_content`.

    Attributes:
        sources: Source names to query; None means every enabled source
        cursor: Opaque cursor from a previous page
        limit: Records per source per page
        include_metadata: Attach source and schema metadata to the page
        fields: Field projection hint forwarded to handlers
        last_updated: Incremental-crawl hint forwarded to handlers
    """
    sources: Optional[Tuple[str, ...]] = None
    cursor: Optional[str] = None
    limit: Optional[int] = None
    include_metadata: bool = False
    fields: Optional[Tuple[str, ...]] = None
    last_updated: Optional[str] = None

    @classmethod
    def from_query(cls, params: Mapping[str, Any]) -> "ContentRequest":
        """Build from ``/ixp/crawler_content`` query parameters.

        Raises:
            InvalidRequestError: If ``limit`` is not an integer
        """
        limit_raw = params.get("limit")
        limit = None
        if limit_raw not in (None, ""):
            try:
                limit = int(limit_raw)
            except (TypeError, ValueError) as exc:
                raise InvalidRequestError(f"limit must be an integer, got {limit_raw!r}") from exc
        sources = parse_list(params.get("sources") or params.get("source"))
        fields = parse_list(params.get("fields"))
        return cls(
            sources=tuple(sources) if sources else None,
            cursor=params.get("cursor") or None,
            limit=limit,
            include_metadata=parse_bool(params.get("includeMetadata"), default=False),
            fields=tuple(fields) if fields else None,
            last_updated=params.get("lastUpdated") or None,
        )


@dataclass(frozen=True)
class Pagination:
    next_cursor: Optional[str]
    has_more: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"nextCursor": self.next_cursor, "hasMore": self.has_more}


@dataclass(frozen=True)
class ContentPage:
    """One page of aggregated crawler content."""
    data: List[Dict[str, Any]]
    pagination: Pagination
    last_updated: str
    metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "contents": self.data,
            "pagination": self.pagination.to_dict(),
            "lastUpdated": self.last_updated,
        }
        if self.metadata is not None:
            result["metadata"] = self.metadata
        return result
