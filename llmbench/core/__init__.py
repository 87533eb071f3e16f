"""Core primitives shared across llmbench."""

from .exceptions import (
    CallFailedError,
    ComparisonMismatchError,
    ConfigError,
    EmptyResultSetError,
    LLMBenchError,
    ModelNotAvailableError,
    ProbeError,
    ServerUnavailableError,
)

__all__ = [
    "LLMBenchError",
    "ProbeError",
    "ServerUnavailableError",
    "ModelNotAvailableError",
    "CallFailedError",
    "EmptyResultSetError",
    "ComparisonMismatchError",
    "ConfigError",
]
