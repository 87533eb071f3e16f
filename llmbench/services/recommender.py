"""Hardware-aware model recommendation.

Maps a SystemProfile to a RAM tier, computes an overall hardware fitness
score, and ranks catalog models by how well they fit the machine.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from llmbench.system.profile import SystemProfile

from .catalog import MODEL_TIERS, ModelDescriptor, ModelTier, all_models

# RAM kept free for the host OS when sizing models
SYSTEM_MEMORY_RESERVE_GB = 2.0

# rank() scoring weights
CUDA_OPTIMIZED_BONUS = 50
GPU_OPTIMIZED_BONUS = 20
CPU_ONLY_BONUS = 30
APPLE_SILICON_BONUS = 15
UTILIZATION_BONUS = 10
UNDERUTILIZATION_PENALTY = 10
SIZE_BONUS_FACTOR = 5


def effective_memory_gb(available_memory_gb: float) -> float:
    """Memory usable for model weights after the host reserve."""
    return max(0.0, available_memory_gb - SYSTEM_MEMORY_RESERVE_GB)


def tier_for(
    total_memory_gb: float,
    tiers: Sequence[ModelTier] = MODEL_TIERS,
) -> ModelTier | None:
    """Return the single tier whose RAM band contains total_memory_gb."""
    for tier in tiers:
        if tier.contains(total_memory_gb):
            return tier
    return None


def models_for_ram(total_memory_gb: float) -> list[ModelDescriptor]:
    """Models of the matching tier ordered by priority."""
    tier = tier_for(total_memory_gb)
    if tier is None:
        return []
    return sorted(tier.models, key=lambda m: m.priority)


def recommended_for_ram(total_memory_gb: float, count: int = 3) -> list[ModelDescriptor]:
    return models_for_ram(total_memory_gb)[:count]


def score_model(profile: SystemProfile, model: ModelDescriptor) -> float:
    """Hardware-fit score of one catalog entry; higher is better.

    Assumes the model already fits in effective memory.
    """
    effective = effective_memory_gb(profile.available_memory_gb)
    score = 100.0 - model.priority

    if profile.has_cuda and model.accelerator_optimized:
        score += CUDA_OPTIMIZED_BONUS
    elif profile.has_accelerator and model.accelerator_optimized:
        score += GPU_OPTIMIZED_BONUS

    if not profile.has_accelerator and model.cpu_optimized:
        score += CPU_ONLY_BONUS

    if profile.is_apple_silicon and model.cpu_optimized:
        score += APPLE_SILICON_BONUS

    if effective > 0:
        utilization = model.memory_requirement_gb / effective
        if 0.5 <= utilization <= 0.8:
            score += UTILIZATION_BONUS
        elif utilization < 0.3:
            score -= UNDERUTILIZATION_PENALTY

    # log of a zero-size model is undefined; such entries get no size bonus
    if model.memory_requirement_gb > 0:
        score += math.log(model.memory_requirement_gb) * SIZE_BONUS_FACTOR

    return score


def rank(
    profile: SystemProfile,
    catalog: Sequence[ModelDescriptor] | None = None,
    count: int = 3,
) -> list[ModelDescriptor]:
    """Rank catalog models by hardware fit and return the best `count`.

    Models that do not fit in effective memory are discarded. Equal scores
    are ordered by ascending priority, then catalog order.
    """
    if catalog is None:
        catalog = all_models()

    effective = effective_memory_gb(profile.available_memory_gb)
    viable = [m for m in catalog if m.memory_requirement_gb <= effective]

    scored = [(score_model(profile, m), m) for m in viable]
    scored.sort(key=lambda item: (-item[0], item[1].priority))
    return [model for _, model in scored[: max(0, count)]]


@dataclass
class HardwareScore:
    """Overall machine fitness for local inference (0-100)"""

    score: float
    cpu_score: float
    gpu_score: float
    ram_score: float
    has_gpu: bool
    has_cuda: bool
    effective_memory_gb: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": round(self.score, 1),
            "cpu_score": round(self.cpu_score, 1),
            "gpu_score": round(self.gpu_score, 1),
            "ram_score": round(self.ram_score, 1),
            "has_gpu": self.has_gpu,
            "has_cuda": self.has_cuda,
            "effective_memory_gb": self.effective_memory_gb,
        }


def hardware_score(profile: SystemProfile) -> HardwareScore:
    """Weighted CPU (max 30) + GPU (max 50) + RAM (max 20) score."""
    effective = effective_memory_gb(profile.available_memory_gb)

    cpu = profile.cpu
    cpu_score = min(cpu.physical_cores * 2, 16)
    cpu_score += min(cpu.clock_mhz / 1000, 4) * 2
    if profile.is_apple_silicon:
        cpu_score += 6
    elif "avx2" in cpu.feature_flags:
        cpu_score += 4

    gpu_score = 0.0
    if profile.has_accelerator:
        best = max(profile.accelerators, key=lambda acc: acc.memory_mb)
        gpu_score += min(best.memory_mb / 1024, 24)
        if best.cuda_capable:
            gpu_score += 20
            try:
                capability = float(best.compute_capability or 0)
            except ValueError:
                capability = 0.0
            if capability >= 8.0:
                gpu_score += 6
            elif capability >= 7.0:
                gpu_score += 4
            elif capability >= 6.0:
                gpu_score += 2

    ram_score = min(effective * 0.625, 20)

    return HardwareScore(
        score=cpu_score + gpu_score + ram_score,
        cpu_score=cpu_score,
        gpu_score=gpu_score,
        ram_score=ram_score,
        has_gpu=profile.has_accelerator,
        has_cuda=profile.has_cuda,
        effective_memory_gb=effective,
    )
