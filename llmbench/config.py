"""Application configuration"""

from dataclasses import replace
from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from llmbench.core.exceptions import ConfigError
from llmbench.services.benchmark.config import (
    PROMPT_SETS,
    BenchmarkConfig,
    GenerationOptions,
)
from llmbench.services.catalog import (
    MODEL_TIERS,
    ModelDescriptor,
    ModelTier,
    get_model,
    make_tier,
)
from llmbench.services.discovery import estimate_model_size

CONFIG_VERSION = "1.0.0"


class Settings(BaseSettings):
    """Process settings, read from LLMBENCH_* environment variables"""

    app_name: str = "llmbench"

    # Inference server
    server_url: str = "http://localhost:11434"
    request_timeout: float = 300.0  # list / load calls
    control_timeout: float = 5.0  # version / show calls
    pull_timeout: float = 1800.0  # 30 min for model downloads
    server_retries: int = 3  # extra version checks while probing

    # Default configuration file, used when present
    config_path: Path = Path("./config/default.yml")

    # Reports
    output_dir: Path = Path("./benchmark-results")

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="LLMBENCH_", env_file=".env")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# =============================================================================
# File configuration
# =============================================================================


class BenchmarkSection(BaseModel):
    """Defaults for benchmark runs."""

    timeout: float = Field(default=300.0, gt=0)
    iterations: int = Field(default=5, ge=1)
    concurrency: int = Field(default=1, ge=1)
    warmup_iterations: int = Field(default=2, ge=0)
    temperature: float = Field(default=0.7, ge=0)
    top_p: float = Field(default=0.9, gt=0, le=1)
    num_predict: int = Field(default=256, ge=1)


class PromptsSection(BaseModel):
    """Named prompt sets."""

    default: list[str] = Field(default_factory=lambda: list(PROMPT_SETS["default"]), min_length=1)
    coding: list[str] = Field(default_factory=lambda: list(PROMPT_SETS["coding"]))
    creative: list[str] = Field(default_factory=lambda: list(PROMPT_SETS["creative"]))
    reasoning: list[str] = Field(default_factory=lambda: list(PROMPT_SETS["reasoning"]))

    def get(self, name: str) -> list[str]:
        """Return the named prompt set, or the default set when unknown or empty."""
        prompts = getattr(self, name, None) if name in type(self).model_fields else None
        return list(prompts or self.default)


class OutputSection(BaseModel):
    """Report output settings."""

    formats: list[Literal["json", "csv", "markdown"]] = Field(
        default_factory=lambda: ["json", "csv", "markdown"], min_length=1
    )
    include_system_info: bool = True
    save_raw_samples: bool = False
    directory: str = "./benchmark-results"


class ServerSection(BaseModel):
    """Inference server settings."""

    base_url: str = "http://localhost:11434"
    timeout: float = Field(default=300.0, gt=0)
    retries: int = Field(default=3, ge=0)


class TierModelEntry(BaseModel):
    name: str = Field(min_length=1)
    priority: int = Field(default=1, ge=1)


class RamTierConfig(BaseModel):
    """One RAM band; max_ram_gb is exclusive, None means unbounded."""

    min_ram_gb: float = Field(ge=0)
    max_ram_gb: float | None = None
    models: list[TierModelEntry] = Field(min_length=1)

    @model_validator(mode="after")
    def check_band(self) -> "RamTierConfig":
        if self.max_ram_gb is not None and self.min_ram_gb >= self.max_ram_gb:
            raise ValueError("min_ram_gb must be less than max_ram_gb")
        return self


def _tier_defaults(level: int) -> RamTierConfig:
    tier = MODEL_TIERS[level - 1]
    return RamTierConfig(
        min_ram_gb=tier.min_ram_gb,
        max_ram_gb=tier.max_ram_gb,
        models=[TierModelEntry(name=m.name, priority=m.priority) for m in tier.models],
    )


def _descriptor(entry: TierModelEntry) -> ModelDescriptor:
    known = get_model(entry.name)
    if known is not None:
        return replace(known, priority=entry.priority)
    return ModelDescriptor(
        name=entry.name,
        priority=entry.priority,
        memory_requirement_gb=estimate_model_size(entry.name),
    )


class RamTiersSection(BaseModel):
    """Model tiers by total RAM, replacing the built-in catalog tiers."""

    tier1: RamTierConfig = Field(default_factory=lambda: _tier_defaults(1))
    tier2: RamTierConfig = Field(default_factory=lambda: _tier_defaults(2))
    tier3: RamTierConfig = Field(default_factory=lambda: _tier_defaults(3))
    tier4: RamTierConfig = Field(default_factory=lambda: _tier_defaults(4))

    def ordered(self) -> list[RamTierConfig]:
        return [self.tier1, self.tier2, self.tier3, self.tier4]

    @model_validator(mode="after")
    def check_bands_ascending(self) -> "RamTiersSection":
        tiers = self.ordered()
        for level, (lower, upper) in enumerate(zip(tiers, tiers[1:]), start=1):
            if lower.max_ram_gb is None or lower.max_ram_gb > upper.min_ram_gb:
                raise ValueError(f"tier{level} overlaps tier{level + 1}")
        return self

    def build(self) -> tuple[ModelTier, ...]:
        """Catalog tiers; unknown model names get a size estimated from the name."""
        return tuple(
            make_tier(
                level,
                tier.min_ram_gb,
                tier.max_ram_gb,
                tuple(_descriptor(entry) for entry in tier.models),
            )
            for level, tier in enumerate(self.ordered(), start=1)
        )


class AppConfig(BaseModel):
    """Complete file configuration."""

    version: str = CONFIG_VERSION
    benchmark: BenchmarkSection = Field(default_factory=BenchmarkSection)
    prompts: PromptsSection = Field(default_factory=PromptsSection)
    output: OutputSection = Field(default_factory=OutputSection)
    server: ServerSection = Field(default_factory=ServerSection)
    ram_tiers: RamTiersSection = Field(default_factory=RamTiersSection)


class BenchmarkOverrides(BaseModel):
    """Per-invocation overrides; None keeps the configured value."""

    models: list[str] | None = None
    prompt_set: str | None = None
    prompts: list[str] | None = None
    iterations: int | None = None
    concurrency: int | None = None
    timeout: float | None = None
    warmup_iterations: int | None = None


def _format_validation_error(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        problems.append(f"{location}: {item['msg']}")
    return "; ".join(problems)


def parse_config(data: dict) -> AppConfig:
    """Validate a configuration mapping.

    Missing sections and fields take their defaults.
    """
    try:
        return AppConfig.model_validate(data or {})
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {_format_validation_error(e)}") from e


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    An explicit path must exist. Without a path, the default location from
    settings is used when present, otherwise built-in defaults.
    """
    if path is None:
        default_path = get_settings().config_path
        if not default_path.exists():
            return AppConfig()
        path = default_path

    config_path = Path(path)
    try:
        content = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to load config file: {config_path}") from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file {config_path} is not valid YAML: {e}") from e

    if data is not None and not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    return parse_config(data or {})


def save_config(config: AppConfig, path: str | Path) -> Path:
    """Write configuration as YAML, creating parent directories."""
    config_path = Path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        yaml.safe_dump(config.model_dump(mode="json"), sort_keys=False, indent=2, width=80),
        encoding="utf-8",
    )
    return config_path


def generate_sample_config(path: str | Path) -> Path:
    """Write the built-in defaults to a file."""
    return save_config(AppConfig(), path)


def resolve_settings(settings: Settings, config: AppConfig) -> Settings:
    """Fill settings from the file's server and output sections.

    Values given explicitly to Settings (environment, .env, constructor)
    win over the file; the file wins over built-in defaults.
    """
    from_file = {}
    if "base_url" in config.server.model_fields_set:
        from_file["server_url"] = config.server.base_url
    if "timeout" in config.server.model_fields_set:
        from_file["request_timeout"] = config.server.timeout
    if "retries" in config.server.model_fields_set:
        from_file["server_retries"] = config.server.retries
    if "directory" in config.output.model_fields_set:
        from_file["output_dir"] = Path(config.output.directory)

    update = {k: v for k, v in from_file.items() if k not in settings.model_fields_set}
    return settings.model_copy(update=update) if update else settings


def apply_overrides(base: AppConfig, overrides: BenchmarkOverrides) -> BenchmarkConfig:
    """Resolve the benchmark configuration from file defaults and overrides.

    Pure: neither argument is modified.
    """
    bench = base.benchmark

    prompt_set = overrides.prompt_set or "default"
    if prompt_set not in PromptsSection.model_fields:
        raise ConfigError(
            f"Unknown prompt set '{prompt_set}'; expected one of "
            f"{', '.join(PromptsSection.model_fields)}",
            field="prompts",
        )

    if overrides.prompts:
        prompts = list(overrides.prompts)
    else:
        prompts = base.prompts.get(prompt_set)

    def pick(value, default):
        return default if value is None else value

    return BenchmarkConfig(
        models=list(overrides.models or []),
        prompts=prompts,
        iterations=pick(overrides.iterations, bench.iterations),
        concurrency=pick(overrides.concurrency, bench.concurrency),
        timeout_seconds=pick(overrides.timeout, bench.timeout),
        warmup_iterations=pick(overrides.warmup_iterations, bench.warmup_iterations),
        options=GenerationOptions(
            temperature=bench.temperature,
            top_p=bench.top_p,
            num_predict=bench.num_predict,
        ),
    )


def validate_config_file(path: str | Path) -> list[str]:
    """Return the list of problems in a config file, empty when valid."""
    try:
        load_config(path)
    except ConfigError as e:
        return [e.message]
    return []
