"""Intent Bounded Context.

Named, versioned user goals mapped to remote components. Resolves intent
requests into validated component references with merged props.
"""
from .entities import IntentDefinition
from .value_objects import IntentRequest, ResolutionRecord
from .aggregates import IntentRegistry
from .services import DataProvider, EventPublisher, IntentResolver, TtlPolicy
from .events import DeprecatedDefinitionUsed, IntentResolutionFailed, IntentResolved

__all__ = [
    "IntentDefinition",
    "IntentRequest", "ResolutionRecord",
    "IntentRegistry",
    "DataProvider", "EventPublisher", "IntentResolver", "TtlPolicy",
    "DeprecatedDefinitionUsed", "IntentResolutionFailed", "IntentResolved",
]
