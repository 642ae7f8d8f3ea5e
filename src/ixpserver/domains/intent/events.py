"""Intent Domain Events.

Events emitted during intent resolution for observability and analytics.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class IntentResolved:
    """Emitted when an intent is successfully resolved to a component.

    Consumers:
    - Analytics (intent usage frequency per component)
    """
    intent_name: str
    component_name: str
    ttl: int
    used_data_provider: bool
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class IntentResolutionFailed:
    """Emitted when resolution fails for any reason.

    Consumers:
    - Operators (separate intent-author bugs from platform faults by ``category``)
    """
    intent_name: str
    code: str
    category: str
    message: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class DeprecatedDefinitionUsed:
    """Emitted when a deprecated intent or component is resolved.

    ``kind`` is ``"intent"`` or ``"component"``.
    """
    kind: str
    name: str
    intent_name: str
    timestamp: datetime = field(default_factory=datetime.now)
