"""Host resource snapshot types."""

from dataclasses import dataclass, field
from typing import Any

APPLE_OS = "darwin"
ARM64_ARCHITECTURES = ("arm64", "aarch64")


@dataclass(frozen=True)
class Accelerator:
    """One GPU / accelerator device."""

    vendor: str
    model: str
    memory_mb: int = 0
    driver_version: str = "unknown"
    cuda_capable: bool = False
    compute_capability: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "vendor": self.vendor,
            "model": self.model,
            "memory_mb": self.memory_mb,
            "driver_version": self.driver_version,
            "cuda_capable": self.cuda_capable,
            "compute_capability": self.compute_capability,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Accelerator":
        return cls(
            vendor=data.get("vendor", "unknown"),
            model=data.get("model", "unknown"),
            memory_mb=int(data.get("memory_mb", 0)),
            driver_version=data.get("driver_version", "unknown"),
            cuda_capable=bool(data.get("cuda_capable", False)),
            compute_capability=data.get("compute_capability"),
        )


@dataclass(frozen=True)
class CPUInfo:
    """CPU description."""

    brand: str = "unknown"
    cores: int = 0
    physical_cores: int = 0
    clock_mhz: float = 0.0
    feature_flags: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "brand": self.brand,
            "cores": self.cores,
            "physical_cores": self.physical_cores,
            "clock_mhz": self.clock_mhz,
            "feature_flags": list(self.feature_flags),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CPUInfo":
        return cls(
            brand=data.get("brand", "unknown"),
            cores=int(data.get("cores", 0)),
            physical_cores=int(data.get("physical_cores", 0)),
            clock_mhz=float(data.get("clock_mhz", 0.0)),
            feature_flags=tuple(data.get("feature_flags", ())),
        )


@dataclass(frozen=True)
class SystemProfile:
    """Immutable snapshot of host resources taken once per invocation."""

    total_memory_gb: float
    available_memory_gb: float
    os_name: str
    architecture: str
    accelerators: tuple[Accelerator, ...] = ()
    cpu: CPUInfo = field(default_factory=CPUInfo)
    inference_server_version: str | None = None
    inference_server_reachable: bool = False

    @property
    def has_accelerator(self) -> bool:
        return len(self.accelerators) > 0

    @property
    def has_cuda(self) -> bool:
        return any(acc.cuda_capable for acc in self.accelerators)

    @property
    def is_apple_silicon(self) -> bool:
        return self.os_name == APPLE_OS and self.architecture in ARM64_ARCHITECTURES

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_memory_gb": self.total_memory_gb,
            "available_memory_gb": self.available_memory_gb,
            "os_name": self.os_name,
            "architecture": self.architecture,
            "accelerators": [acc.to_dict() for acc in self.accelerators],
            "cpu": self.cpu.to_dict(),
            "inference_server_version": self.inference_server_version,
            "inference_server_reachable": self.inference_server_reachable,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SystemProfile":
        return cls(
            total_memory_gb=float(data.get("total_memory_gb", 0.0)),
            available_memory_gb=float(data.get("available_memory_gb", 0.0)),
            os_name=data.get("os_name", "unknown"),
            architecture=data.get("architecture", "unknown"),
            accelerators=tuple(Accelerator.from_dict(a) for a in data.get("accelerators", [])),
            cpu=CPUInfo.from_dict(data.get("cpu", {})),
            inference_server_version=data.get("inference_server_version"),
            inference_server_reachable=bool(data.get("inference_server_reachable", False)),
        )
