"""
DBBench console telemetry core.

Keeps the console's in-memory view (series, logs, status) in sync with the
benchmark server over a websocket push channel and an HTTP poll fallback.
"""

__version__ = "0.1.0"
