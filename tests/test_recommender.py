"""
Tests for tier matching, model ranking and hardware scoring.
"""

import math

import pytest

from llmbench.services.catalog import MODEL_TIERS, ModelDescriptor, all_models, get_model
from llmbench.services.recommender import (
    effective_memory_gb,
    hardware_score,
    models_for_ram,
    rank,
    recommended_for_ram,
    score_model,
    tier_for,
)
from llmbench.system.profile import Accelerator
from tests.conftest import CUDA_GPU, make_profile


def descriptor(name, priority=1, memory=2.0, gpu=False, cpu=False) -> ModelDescriptor:
    return ModelDescriptor(
        name=name,
        priority=priority,
        memory_requirement_gb=memory,
        accelerator_optimized=gpu,
        cpu_optimized=cpu,
    )


class TestTiers:
    def test_twenty_gb_is_tier_three(self):
        tier = tier_for(20)
        assert tier is not None
        assert tier.level == 3

    @pytest.mark.parametrize(
        "ram,level",
        [(4, 1), (7.99, 1), (8, 2), (15.5, 2), (16, 3), (31.9, 3), (32, 4), (512, 4)],
    )
    def test_band_boundaries(self, ram, level):
        assert tier_for(ram).level == level

    def test_below_smallest_tier(self):
        assert tier_for(3.5) is None
        assert models_for_ram(2) == []

    def test_bands_do_not_overlap(self):
        for ram in (4, 6, 8, 12, 16, 24, 32, 64):
            assert sum(1 for tier in MODEL_TIERS if tier.contains(ram)) == 1

    def test_models_sorted_by_priority(self):
        models = models_for_ram(12)
        assert [m.priority for m in models] == sorted(m.priority for m in models)
        assert [m.name for m in recommended_for_ram(12, count=2)] == ["phi3:3.8b", "gemma2:9b"]

    def test_range_labels(self):
        assert MODEL_TIERS[0].ram_range_label == "4GB-7GB"
        assert MODEL_TIERS[-1].ram_range_label == "32GB+"


class TestCatalog:
    def test_all_models_unique(self):
        names = [m.name for m in all_models()]
        assert len(names) == len(set(names))

    def test_first_occurrence_wins(self):
        assert get_model("phi3:3.8b").priority == 4
        assert get_model("not-a-model") is None


class TestRank:
    def test_effective_memory_reserve(self):
        assert effective_memory_gb(16) == 14
        assert effective_memory_gb(1.5) == 0

    def test_model_above_effective_memory_is_excluded(self):
        profile = make_profile(available_memory_gb=6)
        catalog = [descriptor("big", priority=1, memory=5), descriptor("small", priority=2, memory=3)]

        ranked = rank(profile, catalog)

        assert [m.name for m in ranked] == ["small"]

    def test_cuda_optimized_model_outranks(self, cuda_profile):
        catalog = [
            descriptor("cpu-first", priority=1, memory=2, cpu=True),
            descriptor("gpu-second", priority=2, memory=2, gpu=True),
        ]

        ranked = rank(cuda_profile, catalog)

        assert [m.name for m in ranked] == ["gpu-second", "cpu-first"]

    def test_non_cuda_accelerator_gets_smaller_bonus(self):
        metal = Accelerator(vendor="Apple", model="Apple M2", memory_mb=16384)
        cuda = make_profile(accelerators=(CUDA_GPU,))
        other = make_profile(accelerators=(metal,))
        model = descriptor("gpu", gpu=True)

        assert score_model(cuda, model) - score_model(other, model) == pytest.approx(30)

    def test_cpu_only_bonus(self, cpu_profile, cuda_profile):
        model = descriptor("cpu", cpu=True)
        assert score_model(cpu_profile, model) - score_model(cuda_profile, model) == 30

    def test_apple_silicon_bonus(self):
        apple = make_profile(os_name="darwin", architecture="arm64")
        linux = make_profile()
        model = descriptor("cpu", cpu=True)

        assert score_model(apple, model) - score_model(linux, model) == pytest.approx(15)

    def test_utilization_adjustments(self):
        profile = make_profile(available_memory_gb=12)  # 10GB effective
        base = 100 - 1

        sweet_spot = descriptor("sweet", memory=6)
        assert score_model(profile, sweet_spot) == pytest.approx(base + 10 + math.log(6) * 5)

        tiny = descriptor("tiny", memory=2)
        assert score_model(profile, tiny) == pytest.approx(base - 10 + math.log(2) * 5)

        middling = descriptor("middling", memory=4)
        assert score_model(profile, middling) == pytest.approx(base + math.log(4) * 5)

    def test_zero_size_model_has_finite_score(self, cpu_profile):
        assert math.isfinite(score_model(cpu_profile, descriptor("zero", memory=0)))

    def test_never_exceeds_effective_memory(self):
        for available in (3, 6, 10, 20, 40):
            profile = make_profile(available_memory_gb=available)
            effective = effective_memory_gb(available)
            ranked = rank(profile, count=50)
            assert all(m.memory_requirement_gb <= effective for m in ranked)

    def test_scores_non_increasing(self, cuda_profile):
        ranked = rank(cuda_profile, count=50)
        scores = [score_model(cuda_profile, m) for m in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_ties_broken_by_priority(self, cpu_profile):
        catalog = [descriptor("b", priority=1), descriptor("a", priority=1)]
        assert [m.name for m in rank(cpu_profile, catalog)] == ["b", "a"]

    def test_count_limits_results(self, cuda_profile):
        assert len(rank(cuda_profile, count=2)) == 2
        assert rank(cuda_profile, count=0) == []

    def test_empty_catalog(self, cpu_profile):
        assert rank(cpu_profile, []) == []

    def test_nothing_fits(self):
        assert rank(make_profile(available_memory_gb=2)) == []


class TestHardwareScore:
    def test_cuda_machine(self, cuda_profile):
        score = hardware_score(cuda_profile)

        # 4 physical cores at 3GHz, RTX 4090 24GB cc 8.9, 14GB effective
        assert score.cpu_score == pytest.approx(14)
        assert score.gpu_score == pytest.approx(50)
        assert score.ram_score == pytest.approx(8.75)
        assert score.score == pytest.approx(72.75)
        assert score.has_gpu and score.has_cuda

    def test_cpu_only_machine(self, cpu_profile):
        score = hardware_score(cpu_profile)

        assert score.gpu_score == 0
        assert not score.has_gpu
        assert score.to_dict()["score"] == round(score.score, 1)

    def test_ram_score_capped(self):
        assert hardware_score(make_profile(available_memory_gb=128)).ram_score == 20

    def test_apple_cpu_bonus(self):
        apple = hardware_score(make_profile(os_name="darwin", architecture="arm64"))
        linux = hardware_score(make_profile())
        assert apple.cpu_score - linux.cpu_score == pytest.approx(6)
