"""
Common helpers
--------------

Shared HTTP, logging and exception utilities used by the ingestion,
transformation and analysis layers.
"""
