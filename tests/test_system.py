"""
Tests for host probing and GPU detection.
"""

from types import SimpleNamespace

import psutil
import pytest

from llmbench.core.exceptions import ProbeError
from llmbench.system import GPUDetector, SystemDetector, SystemProfile, lookup_compute_capability
from llmbench.system.profile import CPUInfo
from tests.conftest import CUDA_GPU, make_profile

GB = 1024**3


class StaticGPUDetector(GPUDetector):
    def __init__(self, accelerators=()):
        self.accelerators = list(accelerators)

    def detect(self):
        return list(self.accelerators)


@pytest.fixture
def host_memory(monkeypatch):
    monkeypatch.setattr(
        psutil,
        "virtual_memory",
        lambda: SimpleNamespace(total=32 * GB, available=20 * GB, used=12 * GB),
    )


@pytest.fixture
def no_cgroup(monkeypatch):
    monkeypatch.setattr(SystemDetector, "_read_cgroup_file", lambda self, *paths: None)


class TestNvidiaSmiParsing:
    def test_parses_rows(self):
        output = "NVIDIA GeForce RTX 3090, 24576, 550.54, 8.6\nTesla T4, 15360, 535.1, 7.5\n"

        gpus = GPUDetector().parse_nvidia_smi_output(output)

        assert len(gpus) == 2
        assert gpus[0].model == "NVIDIA GeForce RTX 3090"
        assert gpus[0].memory_mb == 24576
        assert gpus[0].driver_version == "550.54"
        assert gpus[0].compute_capability == "8.6"
        assert all(gpu.cuda_capable for gpu in gpus)

    def test_unified_memory_reports_zero(self):
        gpus = GPUDetector().parse_nvidia_smi_output("NVIDIA GB10, [N/A], 580.95, 12.1")

        assert gpus[0].memory_mb == 0
        assert gpus[0].compute_capability == "12.1"

    def test_missing_capability_falls_back_to_lookup(self):
        gpus = GPUDetector().parse_nvidia_smi_output("NVIDIA A100-SXM4-40GB, 40960, 535.1, [N/A]")
        assert gpus[0].compute_capability == "8.0"

    def test_skips_malformed_rows(self):
        assert GPUDetector().parse_nvidia_smi_output("garbage\n\n, 1, 2, 3") == []


class TestComputeCapability:
    @pytest.mark.parametrize(
        "model,expected",
        [
            ("NVIDIA GeForce RTX 4090", "8.9"),
            ("NVIDIA GeForce GTX 1080 Ti", "6.1"),
            ("Tesla V100-PCIE-16GB", "7.0"),
            ("Some Unknown GPU", "5.0"),
        ],
    )
    def test_lookup(self, model, expected):
        assert lookup_compute_capability(model) == expected


class TestMemoryInfo:
    def test_host_memory(self, host_memory, no_cgroup):
        assert SystemDetector().get_memory_info() == (32.0, 20.0)

    def test_cgroup_limit_wins(self, host_memory, monkeypatch):
        files = {
            "/sys/fs/cgroup/memory.max": str(8 * GB),
            "/sys/fs/cgroup/memory.current": str(2 * GB),
        }
        monkeypatch.setattr(
            SystemDetector,
            "_read_cgroup_file",
            lambda self, *paths: next((files[p] for p in paths if p in files), None),
        )

        assert SystemDetector().get_memory_info() == (8.0, 6.0)

    def test_unlimited_cgroup_ignored(self, host_memory, monkeypatch):
        monkeypatch.setattr(
            SystemDetector,
            "_read_cgroup_file",
            lambda self, *paths: "max" if "/sys/fs/cgroup/memory.max" in paths else None,
        )

        assert SystemDetector().get_memory_info() == (32.0, 20.0)


class TestProbe:
    @pytest.fixture
    def detector(self, client, host_memory, no_cgroup, monkeypatch):
        detector = SystemDetector(
            gpu_detector=StaticGPUDetector([CUDA_GPU]),
            client=client,
        )
        monkeypatch.setattr(
            detector, "get_cpu_info", lambda: CPUInfo(brand="Test", cores=8, physical_cores=4)
        )
        return detector

    @pytest.mark.asyncio
    async def test_probe_reachable(self, detector):
        profile = await detector.probe()

        assert isinstance(profile, SystemProfile)
        assert profile.total_memory_gb == 32.0
        assert profile.available_memory_gb == 20.0
        assert profile.accelerators == (CUDA_GPU,)
        assert profile.has_cuda
        assert profile.inference_server_reachable
        assert profile.inference_server_version == "0.5.7"

    @pytest.mark.asyncio
    async def test_probe_unreachable_server(self, detector, fake_server):
        fake_server.version = None

        profile = await detector.probe()

        assert not profile.inference_server_reachable
        assert profile.inference_server_version is None

    @pytest.mark.asyncio
    async def test_probe_retries_version_check(self, detector, fake_server):
        fake_server.version = None
        detector.retries = 2
        detector.retry_delay = 0

        profile = await detector.probe()

        assert not profile.inference_server_reachable
        assert fake_server.paths().count("/api/version") == 3

    @pytest.mark.asyncio
    async def test_probe_error(self, client, monkeypatch):
        def broken():
            raise OSError("no /proc")

        monkeypatch.setattr(psutil, "virtual_memory", broken)
        detector = SystemDetector(gpu_detector=StaticGPUDetector(), client=client)

        with pytest.raises(ProbeError):
            await detector.probe()

    @pytest.mark.asyncio
    async def test_wait_for_server(self, client, fake_server):
        detector = SystemDetector(client=client)
        assert await detector.wait_for_server(retries=1, delay=0) == "0.5.7"

        fake_server.version = None
        assert not await detector.wait_for_server(retries=2, delay=0)
        assert fake_server.paths().count("/api/version") == 3


class TestProfile:
    def test_apple_silicon(self):
        assert make_profile(os_name="darwin", architecture="arm64").is_apple_silicon
        assert not make_profile(os_name="darwin", architecture="x64").is_apple_silicon
        assert not make_profile(os_name="linux", architecture="arm64").is_apple_silicon

    def test_dict_round_trip(self, cuda_profile):
        assert SystemProfile.from_dict(cuda_profile.to_dict()) == cuda_profile

    def test_architecture_normalised(self, monkeypatch):
        monkeypatch.setattr("platform.machine", lambda: "AMD64")
        assert SystemDetector().get_architecture() == "x64"
