"""Shared Kernel - Core types shared across the IXP bounded contexts.

Kept deliberately small: JSON aliases, camelCase helpers used by the
``from_dict``/``to_dict`` converters, and the pydantic coercion types the
tool layer uses to accept loosely-typed arguments.
"""

from __future__ import annotations

import json
import re
from typing import Annotated, Any, Dict, List, Mapping, Optional, Union

from pydantic import BeforeValidator

JsonDict = Dict[str, Any]
JsonValue = Union[None, bool, int, float, str, List[Any], Dict[str, Any]]

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake(name: str) -> str:
    """``remoteUrl`` -> ``remote_url``."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def to_camel(name: str) -> str:
    """``remote_url`` -> ``remoteUrl``."""
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def pick(data: Mapping[str, Any], camel: str, default: Any = None) -> Any:
    """Read a key accepting either its camelCase or snake_case spelling."""
    if camel in data:
        return data[camel]
    return data.get(to_snake(camel), default)


def _normalize_str(v: Any) -> Any:
    """Strip and lower-case strings; pass everything else through."""
    if isinstance(v, str):
        return v.strip().lower()
    return v


def _coerce_string_to_list(v: Any) -> Any:
    """Coerce stringified JSON arrays and comma-separated strings to lists.

    1. JSON array string:  '["blog", "docs"]' -> ["blog", "docs"]
    2. Comma-separated:    'blog,docs'        -> ["blog", "docs"]
    3. Single value:       'blog'             -> ["blog"]

    Non-string inputs pass through unchanged.
    """
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        v_stripped = v.strip()
        if v_stripped.startswith("["):
            try:
                parsed = json.loads(v_stripped)
                if isinstance(parsed, list):
                    return parsed
            except json.JSONDecodeError:
                pass
        if "," in v_stripped:
            return [item.strip() for item in v_stripped.split(",") if item.strip()]
        if v_stripped:
            return [v_stripped]
    return v


def _coerce_string_to_dict(v: Any) -> Any:
    """Coerce a stringified JSON object to a dict; other inputs pass through."""
    if isinstance(v, str) and v.strip().startswith("{"):
        try:
            parsed = json.loads(v)
        except json.JSONDecodeError:
            return v
        if isinstance(parsed, dict):
            return parsed
    return v


def _coerce_bool(v: Any) -> Any:
    """Accept ``"true"``/``"1"``/``"yes"`` style query-string booleans."""
    if isinstance(v, str):
        return v.strip().lower() in {"1", "true", "yes", "on"}
    return v


CoercedStringList = Annotated[List[str], BeforeValidator(_coerce_string_to_list)]
OptionalCoercedStringList = Annotated[
    Optional[List[str]], BeforeValidator(_coerce_string_to_list)
]
CoercedParameters = Annotated[
    Optional[Dict[str, Any]], BeforeValidator(_coerce_string_to_dict)
]
CoercedBool = Annotated[bool, BeforeValidator(_coerce_bool)]
NormalizedFramework = Annotated[Optional[str], BeforeValidator(_normalize_str)]


def parse_bool(v: Any, default: bool = False) -> bool:
    """Plain-function form of :data:`CoercedBool` for query strings."""
    if v is None:
        return default
    coerced = _coerce_bool(v)
    return bool(coerced)


def parse_list(v: Any) -> Optional[List[str]]:
    """Plain-function form of :data:`OptionalCoercedStringList`."""
    if v is None:
        return None
    coerced = _coerce_string_to_list(v)
    return coerced if isinstance(coerced, list) else None
