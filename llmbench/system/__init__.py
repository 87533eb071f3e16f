"""Host resource detection for llmbench.

This package provides:
- GPU / accelerator detection (gpu.py)
- RAM, CPU and inference-server probing (detector.py)
- The immutable SystemProfile snapshot (profile.py)
"""

from .detector import SystemDetector
from .gpu import GPUDetector, lookup_compute_capability
from .profile import Accelerator, CPUInfo, SystemProfile

__all__ = [
    "Accelerator",
    "CPUInfo",
    "SystemProfile",
    "GPUDetector",
    "SystemDetector",
    "lookup_compute_capability",
]
