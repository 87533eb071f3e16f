"""Model discovery.

A curated list of popular Ollama models with category, popularity and
download-size data, plus search, per-RAM suggestions and download-size
estimates for models that are not installed yet.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from llmbench.services.ollama import OllamaClient

logger = logging.getLogger(__name__)

CATEGORIES = ("chat", "code", "reasoning", "vision")

BYTES_PER_GB = 1024**3


@dataclass(frozen=True)
class DiscoveryModel:
    """Registry entry for a model that can be pulled"""

    name: str
    description: str
    family: str
    parameter_size: str
    min_ram_gb: float
    category: str
    popularity: int
    download_size_gb: float
    disk_size_gb: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "family": self.family,
            "parameter_size": self.parameter_size,
            "min_ram_gb": self.min_ram_gb,
            "category": self.category,
            "popularity": self.popularity,
            "download_size_gb": self.download_size_gb,
            "disk_size_gb": self.disk_size_gb,
        }


def _entry(
    name: str,
    description: str,
    family: str,
    parameter_size: str,
    min_ram_gb: float,
    category: str,
    popularity: int,
    size_gb: float,
) -> DiscoveryModel:
    return DiscoveryModel(
        name=name,
        description=description,
        family=family,
        parameter_size=parameter_size,
        min_ram_gb=min_ram_gb,
        category=category,
        popularity=popularity,
        download_size_gb=size_gb,
        disk_size_gb=size_gb,
    )


POPULAR_MODELS: tuple[DiscoveryModel, ...] = (
    # chat
    _entry("llama3.1:8b", "Meta Llama 3.1 8B - Excellent general purpose model", "llama", "8B", 8, "chat", 95, 4.7),
    _entry("llama3.1:70b", "Meta Llama 3.1 70B - High-performance large model", "llama", "70B", 64, "chat", 90, 40.0),
    _entry("mistral:7b", "Mistral 7B - Fast and efficient", "mistral", "7B", 8, "chat", 88, 4.1),
    _entry("gemma2:9b", "Google Gemma 2 9B - Balanced performance", "gemma", "9B", 8, "chat", 85, 5.4),
    _entry("phi3:3.8b", "Microsoft Phi-3 3.8B - Small but capable", "phi", "3.8B", 4, "chat", 80, 2.2),
    # code
    _entry("deepseek-coder:6.7b", "DeepSeek Coder 6.7B - Excellent for coding", "deepseek", "6.7B", 8, "code", 92, 3.8),
    _entry("codellama:7b", "Code Llama 7B - Meta's coding model", "llama", "7B", 8, "code", 88, 3.8),
    _entry("codegemma:7b", "Google CodeGemma 7B - Code generation", "gemma", "7B", 8, "code", 82, 5.0),
    # reasoning
    _entry("deepseek-r1:8b", "DeepSeek R1 8B - Advanced reasoning", "deepseek", "8B", 8, "reasoning", 89, 4.9),
    _entry("deepseek-r1:14b", "DeepSeek R1 14B - Large reasoning model", "deepseek", "14B", 16, "reasoning", 87, 8.1),
    _entry("qwq:32b", "QwQ 32B - Mathematical reasoning", "qwen", "32B", 32, "reasoning", 84, 20.0),
    # vision
    _entry("llava:7b", "LLaVA 7B - Vision-language model", "llava", "7B", 8, "vision", 86, 4.5),
    _entry("llava:13b", "LLaVA 13B - Large vision model", "llava", "13B", 16, "vision", 83, 8.0),
    # small / efficient
    _entry("gemma:2b", "Google Gemma 2B - Very efficient", "gemma", "2B", 4, "chat", 78, 1.4),
    _entry("gemma3:4b", "Google Gemma 3 4B - Latest Gemma model", "gemma3", "4B", 4, "chat", 82, 3.3),
    _entry("qwen3:latest", "Qwen 3 Latest - Advanced Chinese and English model", "qwen3", "8B", 8, "chat", 85, 5.2),
    _entry("phi:2.7b", "Microsoft Phi 2.7B - Compact model", "phi", "2.7B", 4, "chat", 75, 1.6),
)

# (name fragments, estimated size in GB), checked largest first
_SIZE_ESTIMATES: tuple[tuple[tuple[str, ...], float], ...] = (
    (("70b", "72b"), 40.0),
    (("30b", "32b", "34b"), 20.0),
    (("13b", "14b", "15b"), 8.0),
    (("7b", "8b", "9b"), 4.5),
    (("3b", "4b"), 2.5),
    (("1b", "2b"), 1.5),
)
DEFAULT_SIZE_ESTIMATE_GB = 4.0

# (parameter size fragments, suitable RAM tier levels), checked largest first
_TIER_HINTS: tuple[tuple[tuple[str, ...], tuple[int, ...]], ...] = (
    (("70b", "72b"), ()),
    (("30b", "32b", "34b"), (4,)),
    (("13b", "14b", "15b"), (3, 4)),
    (("7b", "8b", "9b"), (2, 3, 4)),
    (("1.5b", "2b", "3b", "4b"), (1, 2, 3, 4)),
)


def popular_models(category: str | None = None) -> list[DiscoveryModel]:
    """Registry entries, most popular first, optionally for one category."""
    models = [m for m in POPULAR_MODELS if category is None or m.category == category]
    return sorted(models, key=lambda m: m.popularity, reverse=True)


def trending_models(limit: int = 10) -> list[DiscoveryModel]:
    return popular_models()[:limit]


def models_by_category() -> dict[str, list[DiscoveryModel]]:
    categories: dict[str, list[DiscoveryModel]] = {}
    for model in popular_models():
        categories.setdefault(model.category, []).append(model)
    return categories


def search_models(query: str) -> list[DiscoveryModel]:
    """Case-insensitive match on name, description or family."""
    term = query.lower()
    return [
        m
        for m in POPULAR_MODELS
        if term in m.name.lower() or term in m.description.lower() or term in m.family.lower()
    ]


def suggest_for_ram(
    ram_gb: float,
    category: str | None = None,
    limit: int = 5,
) -> list[DiscoveryModel]:
    """Most popular models whose minimum RAM fits."""
    return [m for m in popular_models(category) if m.min_ram_gb <= ram_gb][:limit]


def split_installed(
    recommended: Iterable[DiscoveryModel],
    installed_names: Iterable[str],
) -> tuple[list[DiscoveryModel], list[DiscoveryModel]]:
    """Split suggestions into (already installed, installable)."""
    installed_set = set(installed_names)
    have, missing = [], []
    for model in recommended:
        (have if model.name in installed_set else missing).append(model)
    return have, missing


def get_discovery_model(name: str) -> DiscoveryModel | None:
    for model in POPULAR_MODELS:
        if model.name == name:
            return model
    return None


def estimate_model_size(name: str) -> float:
    """Rough download size in GB from the parameter count in a model name."""
    lowered = name.lower()
    for fragments, size_gb in _SIZE_ESTIMATES:
        if any(fragment in lowered for fragment in fragments):
            return size_gb
    return DEFAULT_SIZE_ESTIMATE_GB


def tiers_for_parameter_size(parameter_size: str) -> tuple[int, ...]:
    """RAM tier levels a model of this parameter size runs well in."""
    lowered = parameter_size.lower()
    for fragments, levels in _TIER_HINTS:
        if any(fragment in lowered for fragment in fragments):
            return levels
    return (2, 3, 4)


def format_size(size_gb: float) -> str:
    if size_gb < 1:
        return f"{size_gb * 1024:.0f}MB"
    if size_gb < 10:
        return f"{size_gb:.1f}GB"
    return f"{size_gb:.0f}GB"


@dataclass(frozen=True)
class DownloadItem:
    name: str
    download_gb: float
    disk_gb: float
    installed: bool = False
    estimated: bool = False


@dataclass
class DownloadEstimate:
    """Download and disk requirements for a set of models"""

    items: list[DownloadItem] = field(default_factory=list)

    @property
    def total_download_gb(self) -> float:
        return sum(item.download_gb for item in self.items)

    @property
    def total_disk_gb(self) -> float:
        return sum(item.disk_gb for item in self.items)

    @property
    def installed_count(self) -> int:
        return sum(1 for item in self.items if item.installed)

    @property
    def missing_count(self) -> int:
        return len(self.items) - self.installed_count


def _estimate_missing(name: str) -> DownloadItem:
    known = get_discovery_model(name)
    if known is not None:
        return DownloadItem(name, known.download_size_gb, known.disk_size_gb)
    size_gb = estimate_model_size(name)
    return DownloadItem(name, size_gb, size_gb, estimated=True)


def estimate_download(
    names: Iterable[str],
    installed: dict[str, float] | None = None,
) -> DownloadEstimate:
    """Estimate what pulling `names` costs.

    `installed` maps installed model names to their size in GB; those models
    need no download and count with their actual size on disk.
    """
    installed = installed or {}
    items = []
    for name in names:
        if name in installed:
            items.append(DownloadItem(name, 0.0, installed[name], installed=True))
        else:
            items.append(_estimate_missing(name))
    return DownloadEstimate(items)


async def estimate_missing_download(client: OllamaClient, names: Iterable[str]) -> DownloadEstimate:
    """Like estimate_download, with installed sizes read from the server."""
    installed = {
        model["name"]: (model.get("size") or 0) / BYTES_PER_GB
        for model in await client.list_models()
        if model.get("name")
    }
    logger.debug(f"{len(installed)} model(s) installed on the server")
    return estimate_download(names, installed)
