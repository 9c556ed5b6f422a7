"""
Native Ingester

Consumes native publication events from the queue and writes them, enriched
with audit fields and a content hash, to the native store.
"""

__version__ = "0.1.0"
