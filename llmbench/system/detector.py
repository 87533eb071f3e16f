"""System information detection for llmbench.

Provides RAM, CPU, accelerator and inference-server information as an
immutable SystemProfile. Supports both host and container environments.
"""

import asyncio
import logging
import os
import platform
import subprocess
from pathlib import Path

import psutil

from llmbench.core.exceptions import ProbeError
from llmbench.services.ollama import OllamaClient

from .gpu import GPUDetector
from .profile import CPUInfo, SystemProfile

logger = logging.getLogger(__name__)

BYTES_PER_GB = 1024**3

# cgroup v1 reports this for "unlimited"
CGROUP_UNLIMITED = "9223372036854771712"


class SystemDetector:
    """Detect host resources.

    Memory is container-aware: a cgroup limit smaller than host memory wins.
    """

    def __init__(
        self,
        server_url: str = "http://localhost:11434",
        control_timeout: float = 5.0,
        gpu_detector: GPUDetector | None = None,
        client: OllamaClient | None = None,
        retries: int = 0,
        retry_delay: float = 1.0,
    ):
        self.server_url = server_url
        self.control_timeout = control_timeout
        # extra version checks before the server counts as unreachable
        self.retries = retries
        self.retry_delay = retry_delay
        self.gpu_detector = gpu_detector or GPUDetector()
        self._client = client

    def _read_cgroup_file(self, *paths: str) -> str | None:
        """Try to read from cgroup files (v1 and v2 compatible)."""
        for path in paths:
            try:
                if os.path.exists(path):
                    return Path(path).read_text().strip()
            except OSError:
                continue
        return None

    def get_memory_info(self) -> tuple[float, float]:
        """Return (total_gb, available_gb), preferring cgroup limits in containers."""
        host_mem = psutil.virtual_memory()

        # Try cgroups v2 first, then v1
        mem_max = self._read_cgroup_file("/sys/fs/cgroup/memory.max")
        mem_current = self._read_cgroup_file("/sys/fs/cgroup/memory.current")
        if not mem_max:
            mem_max = self._read_cgroup_file("/sys/fs/cgroup/memory/memory.limit_in_bytes")
            mem_current = self._read_cgroup_file("/sys/fs/cgroup/memory/memory.usage_in_bytes")

        if mem_max and mem_max not in ("max", CGROUP_UNLIMITED):
            try:
                total = int(mem_max)
                used = int(mem_current) if mem_current else 0
                if 0 < total < host_mem.total:
                    available = min(max(0, total - used), host_mem.available)
                    return self._to_gb(total), self._to_gb(available)
            except ValueError:
                pass

        return self._to_gb(host_mem.total), self._to_gb(host_mem.available)

    @staticmethod
    def _to_gb(value: int) -> float:
        return round(value / BYTES_PER_GB, 2)

    def get_cpu_info(self) -> CPUInfo:
        """Get CPU info."""
        cores = psutil.cpu_count(logical=True) or 0
        physical_cores = psutil.cpu_count(logical=False) or cores
        cpu_freq = psutil.cpu_freq()

        return CPUInfo(
            brand=self._get_cpu_brand(),
            cores=cores,
            physical_cores=physical_cores,
            clock_mhz=round(cpu_freq.current, 1) if cpu_freq else 0.0,
            feature_flags=tuple(self._get_cpu_flags()),
        )

    def _get_cpu_brand(self) -> str:
        if self.get_os_type() == "darwin":
            output = self._run_sysctl("machdep.cpu.brand_string")
            if output:
                return output
        else:
            for line in self._read_cpuinfo():
                if line.startswith("model name"):
                    return line.split(":", 1)[1].strip()
        return platform.processor() or "unknown"

    def _get_cpu_flags(self) -> list[str]:
        """Best-effort CPU feature flags (e.g. avx2)."""
        if self.get_os_type() == "darwin":
            output = self._run_sysctl("machdep.cpu.features", "machdep.cpu.leaf7_features")
            return sorted({flag.lower() for flag in output.split()}) if output else []

        for line in self._read_cpuinfo():
            if line.startswith(("flags", "Features")):
                return sorted(set(line.split(":", 1)[1].split()))
        return []

    def _read_cpuinfo(self) -> list[str]:
        try:
            return Path("/proc/cpuinfo").read_text().splitlines()
        except OSError:
            return []

    def _run_sysctl(self, *keys: str) -> str:
        try:
            result = subprocess.run(
                ["sysctl", "-n", *keys],
                capture_output=True,
                text=True,
                timeout=5,
            )
        except (subprocess.SubprocessError, FileNotFoundError):
            return ""
        return result.stdout.strip() if result.returncode == 0 else ""

    def get_os_type(self) -> str:
        """Detect operating system type."""
        system = platform.system().lower()
        if system == "darwin":
            return "darwin"
        elif system == "windows":
            return "windows"
        return "linux"

    def get_architecture(self) -> str:
        machine = platform.machine().lower()
        if machine in ("x86_64", "amd64"):
            return "x64"
        return machine or "unknown"

    async def check_server(self) -> str | None:
        """Return the inference server version, or None if unreachable."""
        if self._client is not None:
            return await self._client.get_version()

        async with OllamaClient(
            self.server_url,
            timeout=self.control_timeout,
            control_timeout=self.control_timeout,
        ) as client:
            return await client.get_version()

    async def wait_for_server(self, retries: int = 5, delay: float = 2.0) -> str | None:
        """Poll the version endpoint until the server answers.

        Returns the server version, or None after `retries` failed attempts.
        """
        for attempt in range(retries):
            version = await self.check_server()
            if version is not None:
                return version
            if attempt < retries - 1:
                logger.debug(f"Inference server not ready, retrying in {delay}s")
                await asyncio.sleep(delay)
        return None

    async def probe(self) -> SystemProfile:
        """Take a snapshot of host resources.

        Raises:
            ProbeError: if OS-level resource queries are unavailable
        """
        try:
            total_gb, available_gb = self.get_memory_info()
            cpu = self.get_cpu_info()
        except (OSError, RuntimeError, psutil.Error) as e:
            raise ProbeError(str(e)) from e

        accelerators = tuple(self.gpu_detector.detect())
        version = await self.wait_for_server(self.retries + 1, self.retry_delay)

        profile = SystemProfile(
            total_memory_gb=total_gb,
            available_memory_gb=available_gb,
            os_name=self.get_os_type(),
            architecture=self.get_architecture(),
            accelerators=accelerators,
            cpu=cpu,
            inference_server_version=version,
            inference_server_reachable=version is not None,
        )
        logger.debug(
            f"System profile: {total_gb}GB RAM ({available_gb}GB available), "
            f"{len(accelerators)} accelerator(s), server reachable={profile.inference_server_reachable}"
        )
        return profile
