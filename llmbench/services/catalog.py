"""Model catalog.

Static reference data: the candidate models grouped into four RAM tiers.
"""

from dataclasses import dataclass, replace
from typing import Any


@dataclass(frozen=True)
class ModelDescriptor:
    """Catalog entry for one model"""

    name: str
    priority: int
    memory_requirement_gb: float
    accelerator_optimized: bool = False
    cpu_optimized: bool = False
    quantization: str = "Q4_0"
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "priority": self.priority,
            "memory_requirement_gb": self.memory_requirement_gb,
            "accelerator_optimized": self.accelerator_optimized,
            "cpu_optimized": self.cpu_optimized,
            "quantization": self.quantization,
            "description": self.description,
        }


@dataclass(frozen=True)
class ModelTier:
    """RAM band and the models assumed to fit it"""

    level: int
    name: str
    min_ram_gb: float
    max_ram_gb: float | None  # exclusive upper bound, None = unbounded
    models: tuple[ModelDescriptor, ...]

    def contains(self, ram_gb: float) -> bool:
        if ram_gb < self.min_ram_gb:
            return False
        return self.max_ram_gb is None or ram_gb < self.max_ram_gb

    @property
    def ram_range_label(self) -> str:
        if self.max_ram_gb is None:
            return f"{self.min_ram_gb:g}GB+"
        return f"{self.min_ram_gb:g}GB-{self.max_ram_gb - 1:g}GB"


def make_tier(
    level: int,
    min_ram_gb: float,
    max_ram_gb: float | None,
    models: tuple[ModelDescriptor, ...],
) -> ModelTier:
    """Build a tier named after its level and RAM band, e.g. "Tier 2 (8GB-15GB)"."""
    tier = ModelTier(level, "", min_ram_gb, max_ram_gb, models)
    return replace(tier, name=f"Tier {level} ({tier.ram_range_label})")


def _model(
    name: str,
    priority: int,
    memory: float,
    description: str,
    gpu: bool = False,
    cpu: bool = False,
) -> ModelDescriptor:
    return ModelDescriptor(
        name=name,
        priority=priority,
        memory_requirement_gb=memory,
        accelerator_optimized=gpu,
        cpu_optimized=cpu,
        description=description,
    )


MODEL_TIERS: tuple[ModelTier, ...] = (
    ModelTier(
        level=1,
        name="Tier 1 (4GB-7GB)",
        min_ram_gb=4,
        max_ram_gb=8,
        models=(
            _model("deepseek-r1:1.5b", 1, 1.2, "DeepSeek R1 1.5B - Lightweight reasoning model", cpu=True),
            _model("gemma:2b", 2, 1.5, "Google Gemma 2B - Efficient small model", cpu=True),
            _model("phi:2.7b", 3, 2.0, "Microsoft Phi 2.7B - Small but capable", cpu=True),
            _model("phi3:3.8b", 4, 2.8, "Microsoft Phi-3 3.8B - Enhanced small model", gpu=True, cpu=True),
        ),
    ),
    ModelTier(
        level=2,
        name="Tier 2 (8GB-15GB)",
        min_ram_gb=8,
        max_ram_gb=16,
        models=(
            _model("phi3:3.8b", 1, 2.8, "Microsoft Phi-3 3.8B - Enhanced small model", gpu=True, cpu=True),
            _model("gemma2:9b", 2, 5.5, "Google Gemma 2 9B - Balanced performance", gpu=True),
            _model("mistral:7b", 3, 4.1, "Mistral 7B - High-performance medium model", gpu=True),
            _model("llama3.1:8b", 4, 4.7, "Meta Llama 3.1 8B - Latest Llama model", gpu=True),
            _model("deepseek-r1:8b", 5, 4.9, "DeepSeek R1 8B - Medium reasoning model", gpu=True),
            _model("llava:7b", 6, 4.5, "LLaVA 7B - Multimodal vision-language model", gpu=True),
        ),
    ),
    ModelTier(
        level=3,
        name="Tier 3 (16GB-31GB)",
        min_ram_gb=16,
        max_ram_gb=32,
        models=(
            _model("gemma2:9b", 1, 5.5, "Google Gemma 2 9B - Balanced performance", gpu=True),
            _model("mistral:7b", 2, 4.1, "Mistral 7B - High-performance medium model", gpu=True),
            _model("phi4:14b", 3, 8.2, "Microsoft Phi-4 14B - Advanced reasoning", gpu=True),
            _model("deepseek-r1:8b", 4, 4.9, "DeepSeek R1 8B - Medium reasoning model", gpu=True),
            _model("deepseek-r1:14b", 5, 8.5, "DeepSeek R1 14B - Large reasoning model", gpu=True),
            _model("llava:7b", 6, 4.5, "LLaVA 7B - Multimodal vision-language model", gpu=True),
            _model("llava:13b", 7, 7.8, "LLaVA 13B - Large multimodal model", gpu=True),
        ),
    ),
    ModelTier(
        level=4,
        name="Tier 4 (32GB+)",
        min_ram_gb=32,
        max_ram_gb=None,
        models=(
            _model("phi4:14b", 1, 8.2, "Microsoft Phi-4 14B - Advanced reasoning", gpu=True),
            _model("deepseek-r1:14b", 2, 8.5, "DeepSeek R1 14B - Large reasoning model", gpu=True),
            _model("deepseek-r1:32b", 3, 18.9, "DeepSeek R1 32B - Extra large reasoning model", gpu=True),
        ),
    ),
)


def all_models(tiers: tuple[ModelTier, ...] = MODEL_TIERS) -> list[ModelDescriptor]:
    """All unique models across tiers; the first occurrence of a name wins."""
    seen: dict[str, ModelDescriptor] = {}
    for tier in tiers:
        for model in tier.models:
            seen.setdefault(model.name, model)
    return list(seen.values())


def get_tier(level: int, tiers: tuple[ModelTier, ...] = MODEL_TIERS) -> ModelTier | None:
    for tier in tiers:
        if tier.level == level:
            return tier
    return None


def get_model(name: str) -> ModelDescriptor | None:
    for model in all_models():
        if model.name == name:
            return model
    return None
