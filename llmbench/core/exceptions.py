"""Custom exceptions for llmbench.

This module provides the exceptions raised by the probe, the benchmark
runner and the comparator.
"""

from typing import Any


class LLMBenchError(Exception):
    """Base exception for all llmbench errors."""

    def __init__(
        self,
        message: str,
        error_type: str = "internal_error",
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_type = error_type
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a serializable error document."""
        return {
            "error": {
                "message": self.message,
                "type": self.error_type,
                **self.details,
            }
        }


class ProbeError(LLMBenchError):
    """Host resource detection failed."""

    def __init__(self, message: str):
        super().__init__(
            message=f"System detection failed: {message}",
            error_type="probe_error",
        )


class ServerUnavailableError(LLMBenchError):
    """Inference server is not reachable."""

    def __init__(self, base_url: str):
        super().__init__(
            message=f"Inference server at {base_url} is not reachable",
            error_type="server_unavailable",
            details={"base_url": base_url},
        )


class ModelNotAvailableError(LLMBenchError):
    """Requested model is not installed on the inference server."""

    def __init__(self, model: str, reason: str | None = None):
        message = f"Model '{model}' is not available on the inference server"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            error_type="model_not_available",
            details={"model": model},
        )
        self.model = model


class CallFailedError(LLMBenchError):
    """A single inference call failed (HTTP error, network error or bad payload)."""

    def __init__(self, model: str, reason: str, status_code: int | None = None):
        details: dict[str, Any] = {"model": model}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(
            message=f"Call to model '{model}' failed: {reason}",
            error_type="call_failed",
            details=details,
        )
        self.model = model
        self.reason = reason
        self.status_code = status_code


class EmptyResultSetError(LLMBenchError):
    """A model produced no successful samples."""

    def __init__(self, model: str):
        super().__init__(
            message=f"No successful samples for model '{model}'",
            error_type="empty_result_set",
            details={"model": model},
        )
        self.model = model


class ComparisonMismatchError(LLMBenchError):
    """Two reports share no model names."""

    def __init__(self, baseline_models: list[str], current_models: list[str]):
        super().__init__(
            message="Baseline and current reports have no models in common",
            error_type="comparison_mismatch",
            details={"baseline_models": baseline_models, "current_models": current_models},
        )


class ConfigError(LLMBenchError):
    """Configuration loading or validation failed."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(
            message=message,
            error_type="config_error",
            details=details,
        )
