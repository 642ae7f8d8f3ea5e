"""Shared definitions and builders for the IXP test suite."""

from __future__ import annotations

import copy
from typing import Any, Dict, List

GREET_INTENT: Dict[str, Any] = {
    "name": "greet",
    "description": "Say hello to someone",
    "parameters": {
        "type": "object",
        "properties": {"name": {"type": "string", "minLength": 1}},
        "required": ["name"],
    },
    "component": "Greeter",
    "version": "1.0.0",
}

GREETER_COMPONENT: Dict[str, Any] = {
    "name": "Greeter",
    "framework": "react",
    "remoteUrl": "https://cdn/x.js",
    "exportName": "Greeter",
    "propsSchema": {
        "type": "object",
        "properties": {
            "name": {"type": "string"},
            "greeting": {"type": "string", "default": "Hello"},
        },
    },
    "version": "1.0.0",
    "allowedOrigins": ["*"],
    "bundleSize": "12KB",
    "performance": {"tti": "0.4s", "bundleSizeGzipped": "4KB"},
    "securityPolicy": {"allowEval": False, "maxBundleSize": "100KB", "sandboxed": True},
}


def make_intent(**overrides: Any) -> Dict[str, Any]:
    """GREET_INTENT with top-level keys replaced."""
    data = copy.deepcopy(GREET_INTENT)
    data.update(overrides)
    return data


def make_component(**overrides: Any) -> Dict[str, Any]:
    """GREETER_COMPONENT with top-level keys replaced."""
    data = copy.deepcopy(GREETER_COMPONENT)
    data.update(overrides)
    return data


def make_records(prefix: str, count: int) -> List[Dict[str, Any]]:
    return [
        {"id": f"{prefix}-{i}", "title": f"{prefix.title()} {i}", "url": f"https://example.com/{prefix}/{i}"}
        for i in range(count)
    ]


def offset_handler(records: List[Dict[str, Any]]):
    """Async handler paging ``records`` by offset."""

    async def handler(options):
        window = records[options.offset:options.offset + options.limit]
        return {
            "data": window,
            "pagination": {"hasMore": options.offset + len(window) < len(records)},
        }

    return handler


class MockEventPublisher:
    """Collects published events."""

    def __init__(self):
        self.events: list = []

    def publish(self, event: object) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> list:
        return [e for e in self.events if isinstance(e, event_type)]
