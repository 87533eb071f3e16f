"""llmbench command-line interface.

Subcommands:
- info: show detected hardware and inference server
- recommend: rank catalog models for this machine
- discover: browse, search and size popular models
- models: list models installed on the server
- pull: download a model
- run: benchmark models and write a report
- load: fire concurrent requests at one model
- compare: compare two saved reports
- config: generate, validate or show configuration
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

from llmbench import __version__
from llmbench.config import (
    AppConfig,
    BenchmarkOverrides,
    Settings,
    apply_overrides,
    generate_sample_config,
    get_settings,
    load_config,
    resolve_settings,
    validate_config_file,
)
from llmbench.core.exceptions import ConfigError, LLMBenchError, ServerUnavailableError
from llmbench.services.benchmark import (
    GenerationOptions,
    LoggingObserver,
    compare,
    run_benchmark,
)
from llmbench.services.benchmark.metrics import aggregate
from llmbench.services.benchmark.runner import BenchmarkRunner
from llmbench.services.catalog import MODEL_TIERS, ModelTier, all_models, get_tier
from llmbench.services.discovery import (
    CATEGORIES,
    DiscoveryModel,
    estimate_missing_download,
    format_size,
    popular_models,
    search_models,
    split_installed,
    suggest_for_ram,
    trending_models,
)
from llmbench.services.export import (
    format_summary,
    format_system_info,
    load_report,
    render_comparison,
    render_report,
    save_report,
)
from llmbench.services.ollama import OllamaClient
from llmbench.services.recommender import rank, score_model, tier_for
from llmbench.system import SystemDetector, SystemProfile

logger = logging.getLogger("llmbench")

BYTES_PER_GB = 1024**3


def _split_csv(value: str | None) -> list[str] | None:
    if not value:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def _resolve(args: argparse.Namespace, settings: Settings) -> tuple[Settings, AppConfig]:
    """Load the file config and fold it into settings.

    Precedence: --server-url, then environment, then file, then defaults.
    """
    app_config = load_config(getattr(args, "config", None))
    settings = resolve_settings(settings, app_config)
    if args.server_url:
        settings = settings.model_copy(update={"server_url": args.server_url})
    return settings, app_config


def _client(settings: Settings, timeout: float | None = None) -> OllamaClient:
    return OllamaClient(
        settings.server_url,
        timeout=timeout or settings.request_timeout,
        control_timeout=settings.control_timeout,
        pull_timeout=settings.pull_timeout,
    )


async def _probe(settings: Settings) -> SystemProfile:
    detector = SystemDetector(
        server_url=settings.server_url,
        control_timeout=settings.control_timeout,
        retries=settings.server_retries,
    )
    return await detector.probe()


async def cmd_info(args: argparse.Namespace, settings: Settings) -> int:
    settings, app_config = _resolve(args, settings)
    profile = await _probe(settings)
    if args.json:
        print(json.dumps(profile.to_dict(), indent=2))
    else:
        print(format_system_info(profile, app_config.ram_tiers.build()))
    return 0


async def cmd_recommend(args: argparse.Namespace, settings: Settings) -> int:
    settings, app_config = _resolve(args, settings)
    tiers = app_config.ram_tiers.build()
    profile = await _probe(settings)
    tier = tier_for(profile.total_memory_gb, tiers)
    print(f"RAM tier: {tier.name if tier else 'below minimum (4GB)'}")

    models = rank(profile, catalog=all_models(tiers), count=args.count)
    if not models:
        print("No catalog model fits the available memory.")
        return 0

    for index, model in enumerate(models, start=1):
        print(
            f"{index}. {model.name} ({model.memory_requirement_gb}GB, "
            f"score {score_model(profile, model):.1f}) - {model.description}"
        )
    return 0


def _describe(model: DiscoveryModel, total_ram_gb: float | None = None) -> str:
    fits = ""
    if total_ram_gb is not None:
        fits = " | fits" if model.min_ram_gb <= total_ram_gb else " | needs more RAM"
    return (
        f"{model.name} - {model.description}\n"
        f"    Category: {model.category} | RAM: {model.min_ram_gb:g}GB+ "
        f"| Popularity: {model.popularity}% | Download: {format_size(model.download_size_gb)}{fits}"
    )


async def _installed_names(settings: Settings) -> list[str]:
    try:
        async with _client(settings) as client:
            return [m["name"] for m in await client.list_models() if m.get("name")]
    except ServerUnavailableError as e:
        logger.warning(f"{e.message}; assuming no models are installed")
        return []


async def cmd_discover(args: argparse.Namespace, settings: Settings) -> int:
    settings, _ = _resolve(args, settings)

    if args.size:
        async with _client(settings) as client:
            estimate = await estimate_missing_download(client, _split_csv(args.size) or [])
        for item in estimate.items:
            if item.installed:
                print(f"{item.name}: installed ({format_size(item.disk_gb)})")
            else:
                note = " (estimated)" if item.estimated else ""
                print(f"{item.name}: {format_size(item.download_gb)}{note}")
        print(
            f"Need to download: {estimate.missing_count} model(s), "
            f"{format_size(estimate.total_download_gb)}; "
            f"total disk space: {format_size(estimate.total_disk_gb)}"
        )
        return 0

    if args.installed:
        return await cmd_models(args, settings)

    if args.search:
        results = search_models(args.search)
        print(f'Search results for "{args.search}":')
        if not results:
            print("No models found matching your search.")
        for model in results:
            print(f"- {_describe(model)}")
        return 0

    if args.trending:
        print("Trending models:")
        for index, model in enumerate(trending_models(), start=1):
            print(f"{index}. {_describe(model)}")
        return 0

    profile = await _probe(settings)
    ram = profile.total_memory_gb
    installed, installable = split_installed(
        suggest_for_ram(ram), await _installed_names(settings)
    )
    print(f"Recommendations for {ram:.1f}GB RAM:")
    for model in installed:
        print(f"- {model.name} (installed)")
    for model in installable:
        print(f"- {_describe(model, ram)}")
        print(f"    Pull: llmbench pull {model.name}")

    if args.category:
        print(f"{args.category.capitalize()} models:")
        for model in popular_models(args.category):
            print(f"- {_describe(model, ram)}")
    else:
        print(f"Categories: {', '.join(CATEGORIES)} (use --category)")
    return 0


async def cmd_models(args: argparse.Namespace, settings: Settings) -> int:
    settings, _ = _resolve(args, settings)
    async with _client(settings) as client:
        models = await client.list_models()

    if not models:
        print("No models installed.")
        return 0

    for model in models:
        size_gb = (model.get("size") or 0) / BYTES_PER_GB
        details = model.get("details") or {}
        print(
            f"{model.get('name')}: {size_gb:.1f}GB, "
            f"{details.get('parameter_size', 'unknown')} params, "
            f"{details.get('quantization_level', 'unknown')}"
        )
    return 0


async def cmd_pull(args: argparse.Namespace, settings: Settings) -> int:
    settings, _ = _resolve(args, settings)
    async with _client(settings) as client:
        await client.pull_model(args.model)
    print(f"Pulled {args.model}")
    return 0


def _select_models(
    args: argparse.Namespace,
    profile: SystemProfile,
    tiers: tuple[ModelTier, ...] = MODEL_TIERS,
) -> list[str]:
    models = _split_csv(args.models)
    if models:
        return models

    if args.tier is not None:
        tier = get_tier(args.tier, tiers)
        if tier is None:
            raise ConfigError(f"Unknown tier {args.tier}; expected 1-4", field="tier")
        return [m.name for m in sorted(tier.models, key=lambda m: m.priority)]

    return [m.name for m in rank(profile, catalog=all_models(tiers), count=3)]


def _extension(fmt: str) -> str:
    return {"markdown": "md"}.get(fmt, fmt)


def _output_paths(
    output: str | None,
    formats: list[str],
    output_dir: Path,
) -> dict[str, Path]:
    """One path per format; an explicit path keeps its name, varying only the suffix."""
    if output:
        path = Path(output)
        if len(formats) == 1:
            return {formats[0]: path}
        return {fmt: path.with_suffix(f".{_extension(fmt)}") for fmt in formats}

    stamp = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    return {fmt: output_dir / f"benchmark-{stamp}.{_extension(fmt)}" for fmt in formats}


async def cmd_run(args: argparse.Namespace, settings: Settings) -> int:
    settings, app_config = _resolve(args, settings)
    profile = await _probe(settings)

    overrides = BenchmarkOverrides(
        models=_select_models(args, profile, app_config.ram_tiers.build()),
        prompt_set=args.prompts,
        iterations=args.iterations,
        concurrency=args.concurrency,
        timeout=args.timeout,
        warmup_iterations=args.warmup,
    )
    config = apply_overrides(app_config, overrides)
    if not config.models:
        raise ConfigError("No models selected and none fit the available memory")

    logger.info(f"Benchmarking {', '.join(config.models)}")
    report = await run_benchmark(
        config,
        settings.server_url,
        observer=LoggingObserver(),
        profile=profile,
        control_timeout=settings.control_timeout,
    )

    output = app_config.output
    formats = [args.format] if args.format else list(dict.fromkeys(output.formats))
    for fmt, path in _output_paths(args.output, formats, settings.output_dir).items():
        if fmt == "json":
            save_report(
                report,
                path,
                include_samples=output.save_raw_samples,
                include_system_info=output.include_system_info,
            )
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(
                render_report(report, fmt, include_system_info=output.include_system_info),
                encoding="utf-8",
            )
            logger.info(f"Report saved to {path}")

    print(format_summary(report, include_system_info=output.include_system_info))
    return 0 if report.summary.has_data else 1


async def cmd_load(args: argparse.Namespace, settings: Settings) -> int:
    settings, _ = _resolve(args, settings)
    timeout = args.timeout or settings.request_timeout
    async with _client(settings, timeout=timeout) as client:
        runner = BenchmarkRunner(client)
        await runner.ensure_model(args.model)
        samples = await runner.run_concurrent(
            args.model,
            args.prompt,
            args.concurrency,
            timeout,
            GenerationOptions(),
        )

    print(f"{len(samples)}/{args.concurrency} requests succeeded")
    if not samples:
        return 1

    result = aggregate(args.model, samples)
    print(
        f"{result.model}: {result.average_tokens_per_second:.1f} tok/s "
        f"(min {result.min_tokens_per_second:.1f}, max {result.max_tokens_per_second:.1f}), "
        f"average latency {result.average_total_latency_ms:.0f}ms"
    )
    return 0


async def cmd_compare(args: argparse.Namespace, settings: Settings) -> int:
    comparison = compare(load_report(args.baseline), load_report(args.current))
    if not comparison.applicable:
        logger.warning("Reports share no models; nothing to compare")

    text = render_comparison(comparison, args.format)
    if args.output:
        output = Path(args.output)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text, encoding="utf-8")
        logger.info(f"Comparison saved to {output}")
    print(text)
    return 0


async def cmd_config(args: argparse.Namespace, settings: Settings) -> int:
    if args.generate:
        path = generate_sample_config(args.generate)
        print(f"Sample configuration written to {path}")
        return 0

    if args.validate:
        problems = validate_config_file(args.validate)
        if problems:
            for problem in problems:
                print(f"Invalid: {problem}")
            return 1
        print(f"{args.validate} is valid")
        return 0

    config = load_config(args.path)
    print(json.dumps(config.model_dump(mode="json"), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llmbench",
        description="Benchmark locally-hosted LLM inference servers",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--server-url", default=None, help="Inference server base URL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    info = subparsers.add_parser("info", help="Show system information")
    info.add_argument("--json", action="store_true", help="Print the profile as JSON")
    info.set_defaults(handler=cmd_info)

    recommend = subparsers.add_parser("recommend", help="Recommend models for this machine")
    recommend.add_argument("-n", "--count", type=int, default=3, help="Number of models")
    recommend.set_defaults(handler=cmd_recommend)

    discover = subparsers.add_parser("discover", help="Discover popular models")
    discover.add_argument("-c", "--category", choices=CATEGORIES, help="Filter by category")
    discover.add_argument("-s", "--search", help="Search models by name, description or family")
    discover.add_argument("--trending", action="store_true", help="Show trending models")
    discover.add_argument("--installed", action="store_true", help="Show installed models")
    discover.add_argument(
        "--size", metavar="MODELS", help="Download size for comma-separated models"
    )
    discover.set_defaults(handler=cmd_discover)

    models = subparsers.add_parser("models", help="List installed models")
    models.set_defaults(handler=cmd_models)

    pull = subparsers.add_parser("pull", help="Download a model")
    pull.add_argument("model")
    pull.set_defaults(handler=cmd_pull)

    run = subparsers.add_parser("run", help="Run benchmarks")
    run.add_argument("-m", "--models", help="Comma-separated list of models to test")
    run.add_argument("-c", "--config", help="Path to configuration file")
    run.add_argument("-t", "--tier", type=int, help="RAM tier to test (1-4)")
    run.add_argument("-o", "--output", help="Output file path")
    run.add_argument(
        "-f",
        "--format",
        choices=["json", "csv", "markdown"],
        help="Output format (default: every format listed in the config file)",
    )
    run.add_argument("-i", "--iterations", type=int, help="Number of benchmark iterations")
    run.add_argument("--concurrency", type=int, help="Concurrency recorded with the run")
    run.add_argument("--timeout", type=float, help="Timeout per request in seconds")
    run.add_argument(
        "-p",
        "--prompts",
        default="default",
        help="Prompt set to use (default, coding, creative, reasoning)",
    )
    run.add_argument("-w", "--warmup", type=int, help="Number of warmup iterations")
    run.set_defaults(handler=cmd_run)

    load = subparsers.add_parser("load", help="Send concurrent requests to one model")
    load.add_argument("model")
    load.add_argument("--prompt", default="Explain quantum computing in simple terms.")
    load.add_argument("--concurrency", type=int, default=4)
    load.add_argument("--timeout", type=float, help="Timeout per request in seconds")
    load.set_defaults(handler=cmd_load)

    compare_parser = subparsers.add_parser("compare", help="Compare two JSON reports")
    compare_parser.add_argument("baseline", help="Baseline report")
    compare_parser.add_argument("current", help="Current report")
    compare_parser.add_argument("-o", "--output", help="Write the comparison to a file")
    compare_parser.add_argument(
        "-f", "--format", choices=["json", "markdown"], default="markdown", help="Output format"
    )
    compare_parser.set_defaults(handler=cmd_compare)

    config = subparsers.add_parser("config", help="Manage configuration")
    group = config.add_mutually_exclusive_group()
    group.add_argument("-g", "--generate", metavar="PATH", help="Generate sample configuration")
    group.add_argument("--validate", metavar="PATH", help="Validate configuration file")
    group.add_argument("--show", dest="path", nargs="?", const=None, help="Show configuration")
    config.set_defaults(handler=cmd_config)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        return asyncio.run(args.handler(args, settings))
    except LLMBenchError as e:
        logger.error(e.message)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
