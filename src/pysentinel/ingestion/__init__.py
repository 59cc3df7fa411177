"""Ingestion layer.

Translates decoded protocol messages into store events.
"""

__all__: list[str] = []
