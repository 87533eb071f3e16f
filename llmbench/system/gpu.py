"""GPU detection for llmbench.

Provides GPU detection for NVIDIA (using pynvml, falling back to nvidia-smi)
and Apple Silicon. Detection is best-effort: any failure yields no devices or
a device reported without CUDA capability.
"""

import json
import logging
import platform
import subprocess

from .profile import Accelerator

logger = logging.getLogger(__name__)

# Known NVIDIA model numbers and their CUDA compute capability
COMPUTE_CAPABILITY_MAP = {
    # RTX 40 series
    "4090": "8.9",
    "4080": "8.9",
    "4070": "8.9",
    "4060": "8.9",
    # RTX 30 series
    "3090": "8.6",
    "3080": "8.6",
    "3070": "8.6",
    "3060": "8.6",
    # RTX 20 series
    "2080": "7.5",
    "2070": "7.5",
    "2060": "7.5",
    # GTX 16 series
    "1660": "7.5",
    "1650": "7.5",
    # GTX 10 series
    "1080": "6.1",
    "1070": "6.1",
    "1060": "6.1",
    # Data center / workstation
    "A100": "8.0",
    "A6000": "8.6",
    "V100": "7.0",
    "T4": "7.5",
}

DEFAULT_COMPUTE_CAPABILITY = "5.0"


def lookup_compute_capability(model: str) -> str:
    """Map a GPU model name to its compute capability, defaulting to the CUDA minimum."""
    for key, value in COMPUTE_CAPABILITY_MAP.items():
        if key in model:
            return value
    return DEFAULT_COMPUTE_CAPABILITY


class GPUDetector:
    """Detect and report accelerator information."""

    def detect(self) -> list[Accelerator]:
        """Detect available accelerators.

        Never raises; returns an empty list when nothing can be detected.
        """
        if platform.system() == "Darwin":
            return self._detect_apple_silicon()

        # pynvml first (desktop NVIDIA GPUs), then nvidia-smi (Tegra/Jetson)
        gpus = self._detect_nvidia_pynvml()
        if gpus:
            return gpus
        return self._detect_nvidia_smi()

    def _detect_apple_silicon(self) -> list[Accelerator]:
        """Detect Apple Silicon GPU information."""
        if platform.machine() != "arm64":
            # Intel Mac - no GPU info to report
            return []

        try:
            result = subprocess.run(
                ["system_profiler", "SPDisplaysDataType", "-json"],
                capture_output=True,
                text=True,
                timeout=10,
            )
        except (subprocess.SubprocessError, FileNotFoundError) as e:
            logger.warning(f"Apple Silicon GPU detection failed: {e}")
            return []

        if result.returncode != 0:
            logger.warning("system_profiler failed")
            return []

        try:
            displays = json.loads(result.stdout).get("SPDisplaysDataType", [])
        except (ValueError, AttributeError):
            return []

        # Unified memory: the GPU shares system RAM, so no dedicated VRAM is reported
        return [
            Accelerator(
                vendor="Apple",
                model=display.get("sppci_model", "Apple Silicon GPU"),
                memory_mb=0,
                driver_version=display.get("spdisplays_mtlgpufamilysupport", "metal"),
                cuda_capable=False,
            )
            for display in displays
        ]

    def _detect_nvidia_pynvml(self) -> list[Accelerator]:
        """Detect NVIDIA GPUs using pynvml."""
        try:
            import pynvml
        except ImportError:
            logger.debug("pynvml (nvidia-ml-py) not installed")
            return []

        try:
            pynvml.nvmlInit()
        except pynvml.NVMLError as e:
            logger.debug(f"pynvml init failed: {e}")
            return []

        try:
            driver = pynvml.nvmlSystemGetDriverVersion()
            if isinstance(driver, bytes):
                driver = driver.decode("utf-8")

            gpus = []
            for i in range(pynvml.nvmlDeviceGetCount()):
                handle = pynvml.nvmlDeviceGetHandleByIndex(i)

                name = pynvml.nvmlDeviceGetName(handle)
                if isinstance(name, bytes):
                    name = name.decode("utf-8")

                mem_info = pynvml.nvmlDeviceGetMemoryInfo(handle)

                try:
                    major, minor = pynvml.nvmlDeviceGetCudaComputeCapability(handle)
                    capability = f"{major}.{minor}"
                except pynvml.NVMLError:
                    capability = lookup_compute_capability(name)

                gpus.append(
                    Accelerator(
                        vendor="NVIDIA",
                        model=name,
                        memory_mb=int(mem_info.total // (1024 * 1024)),
                        driver_version=driver,
                        cuda_capable=True,
                        compute_capability=capability,
                    )
                )
            return gpus
        except pynvml.NVMLError as e:
            logger.debug(f"pynvml GPU detection failed: {e}")
            return []
        finally:
            try:
                pynvml.nvmlShutdown()
            except pynvml.NVMLError:
                pass

    def _parse_nvidia_smi_value(self, value: str) -> float | None:
        """Parse a value from nvidia-smi output, returning None for [N/A] or invalid."""
        value = value.strip()
        if not value or value.startswith("[N/A]") or value == "N/A" or value == "Not Supported":
            return None
        try:
            return float(value)
        except (ValueError, TypeError):
            return None

    def _detect_nvidia_smi(self) -> list[Accelerator]:
        """Detect NVIDIA GPUs using the nvidia-smi command."""
        try:
            result = subprocess.run(
                [
                    "nvidia-smi",
                    "--query-gpu=name,memory.total,driver_version,compute_cap",
                    "--format=csv,noheader,nounits",
                ],
                capture_output=True,
                text=True,
                timeout=10,
            )
        except FileNotFoundError:
            logger.debug("nvidia-smi not found")
            return []
        except subprocess.SubprocessError as e:
            logger.warning(f"nvidia-smi GPU detection failed: {e}")
            return []

        if result.returncode != 0:
            logger.debug(f"nvidia-smi failed: {result.stderr}")
            return []

        return self.parse_nvidia_smi_output(result.stdout)

    def parse_nvidia_smi_output(self, output: str) -> list[Accelerator]:
        """Parse `name, memory.total, driver_version, compute_cap` CSV rows."""
        gpus = []
        for line in output.strip().split("\n"):
            parts = [p.strip() for p in line.split(",")]
            if len(parts) < 4 or not parts[0]:
                continue

            name = parts[0]
            memory = self._parse_nvidia_smi_value(parts[1])
            capability = self._parse_nvidia_smi_value(parts[3])

            gpus.append(
                Accelerator(
                    vendor="NVIDIA",
                    model=name,
                    # [N/A] on unified memory platforms (Tegra/DGX Spark)
                    memory_mb=int(memory) if memory is not None else 0,
                    driver_version=parts[2] or "unknown",
                    # nvidia-smi answering a compute_cap query means a working CUDA driver
                    cuda_capable=True,
                    compute_capability=(
                        parts[3] if capability is not None else lookup_compute_capability(name)
                    ),
                )
            )

        if gpus:
            logger.debug(f"Detected {len(gpus)} GPU(s) via nvidia-smi")
        return gpus
