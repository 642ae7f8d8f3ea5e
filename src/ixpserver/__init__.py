"""IXP Server - Intent-to-component resolution and crawler content aggregation."""

__version__ = "0.1.0"
