"""
API Stress Tester

Drives HTTP endpoints at a fixed request rate for a fixed duration, bounded by
a maximum number of in-flight requests, and checks every response against a
status/body expectation.
"""

from api_stress.config import EndpointConfig, ExpectConfig, StressConfig, load_config
from api_stress.errors import (
    ConfigurationError,
    StressError,
    TransportError,
    ValidationError,
)
from api_stress.limiter import ConcurrencyLimiter
from api_stress.scheduler import RunStatistics, RunSummary, run_all, run_endpoint

__version__ = "0.1.0"

__all__ = [
    "ConcurrencyLimiter",
    "ConfigurationError",
    "EndpointConfig",
    "ExpectConfig",
    "RunStatistics",
    "RunSummary",
    "StressConfig",
    "StressError",
    "TransportError",
    "ValidationError",
    "load_config",
    "run_all",
    "run_endpoint",
]
