"""Domain-Driven Design bounded contexts for the IXP server.

- Shared Kernel: error taxonomy, JSON aliases, argument coercion
- Schema Context: recursive schema nodes and the validator visitor
- Intent Context: intent definitions, registry and resolver
- Component Context: component definitions, registry and renderer
- Crawler Context: data sources, cursor codec and content aggregator
"""
