"""
Backend connectors for the benchmark console.
"""

from dashboard.connectors.benchmark_api import COMMANDS, BenchmarkApiClient

__all__ = ["COMMANDS", "BenchmarkApiClient"]
