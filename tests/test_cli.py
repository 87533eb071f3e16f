"""
Tests for the command-line interface.
"""

import argparse
import json
from datetime import UTC, datetime

import httpx
import pytest
import yaml

from llmbench import cli
from llmbench.cli import _select_models, build_parser, main
from llmbench.config import get_settings
from llmbench.core.exceptions import ConfigError
from llmbench.services.benchmark import aggregate, build_run_report
from llmbench.services.export import save_report
from llmbench.services.ollama import OllamaClient
from tests.conftest import FakeOllama, make_profile, make_sample


def saved_report(path, tps):
    report = build_run_report(
        [aggregate("m", [make_sample(model="m", tokens_per_second=tps)])],
        make_profile(),
        datetime(2024, 1, 1, tzinfo=UTC),
    )
    return save_report(report, path)


def run_args(**kwargs) -> argparse.Namespace:
    args = build_parser().parse_args(["run"])
    for key, value in kwargs.items():
        setattr(args, key, value)
    return args


class TestParser:
    def test_run_defaults(self):
        args = build_parser().parse_args(["run"])

        assert args.format is None
        assert args.prompts == "default"
        assert args.iterations is None

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestModelSelection:
    def test_explicit_models(self, cpu_profile):
        assert _select_models(run_args(models="a, b,,c"), cpu_profile) == ["a", "b", "c"]

    def test_tier_models(self, cpu_profile):
        models = _select_models(run_args(tier=4), cpu_profile)
        assert models == ["phi4:14b", "deepseek-r1:14b", "deepseek-r1:32b"]

    def test_unknown_tier(self, cpu_profile):
        with pytest.raises(ConfigError):
            _select_models(run_args(tier=9), cpu_profile)

    def test_ranked_by_default(self, cuda_profile):
        assert len(_select_models(run_args(), cuda_profile)) == 3

    def test_nothing_fits(self):
        assert _select_models(run_args(), make_profile(available_memory_gb=1)) == []


class TestCommands:
    def test_config_generate_and_validate(self, tmp_path, capsys):
        path = tmp_path / "default.yml"

        assert main(["config", "--generate", str(path)]) == 0
        assert path.exists()
        assert main(["config", "--validate", str(path)]) == 0
        assert "is valid" in capsys.readouterr().out

    def test_config_validate_invalid(self, tmp_path, capsys):
        path = tmp_path / "bad.yml"
        path.write_text("benchmark:\n  timeout: 0\n")

        assert main(["config", "--validate", str(path)]) == 1
        assert "Invalid" in capsys.readouterr().out

    def test_compare(self, tmp_path, capsys):
        baseline = saved_report(tmp_path / "baseline.json", 10.0)
        current = saved_report(tmp_path / "current.json", 15.0)
        output = tmp_path / "comparison.md"

        assert main(["compare", str(baseline), str(current), "-o", str(output)]) == 0

        assert "+50.0%" in capsys.readouterr().out
        assert "+50.0%" in output.read_text()

    def test_compare_missing_report(self, tmp_path):
        baseline = saved_report(tmp_path / "baseline.json", 10.0)
        assert main(["compare", str(baseline), str(tmp_path / "absent.json")]) == 1

    def test_compare_json_to_nested_path(self, tmp_path):
        baseline = saved_report(tmp_path / "baseline.json", 10.0)
        current = saved_report(tmp_path / "current.json", 15.0)
        output = tmp_path / "out" / "2024" / "comparison.json"

        code = main(["compare", str(baseline), str(current), "-f", "json", "-o", str(output)])

        assert code == 0
        data = json.loads(output.read_text())
        assert data["summary"]["models_compared"] == 1
        assert data["comparisons"][0]["tokens_per_second"]["change"] == pytest.approx(50.0)


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Run from an empty directory with no LLMBENCH_* overrides."""
    monkeypatch.chdir(tmp_path)
    for name in ("SERVER_URL", "REQUEST_TIMEOUT", "SERVER_RETRIES", "OUTPUT_DIR", "CONFIG_PATH"):
        monkeypatch.delenv(f"LLMBENCH_{name}", raising=False)
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


@pytest.fixture
def fake_run(monkeypatch, cpu_profile):
    """Replace probing and the benchmark itself; record what they were given."""
    calls = {}

    async def probe(settings):
        calls["settings"] = settings
        return cpu_profile

    async def run_benchmark(config, server_url, **kwargs):
        calls["config"] = config
        calls["server_url"] = server_url
        return build_run_report(
            [aggregate(m, [make_sample(model=m, tokens_per_second=20.0)]) for m in config.models],
            cpu_profile,
            datetime(2024, 1, 1, tzinfo=UTC),
        )

    monkeypatch.setattr(cli, "_probe", probe)
    monkeypatch.setattr(cli, "run_benchmark", run_benchmark)
    return calls


def write_config(path, data):
    path.write_text(yaml.safe_dump(data))
    return str(path)


class TestRunCommand:
    def test_config_file_server_reaches_run(self, isolated, fake_run):
        config = write_config(
            isolated / "bench.yml",
            {
                "server": {"base_url": "http://gpu-box:11434", "retries": 1},
                "output": {"directory": str(isolated / "reports"), "formats": ["json"]},
            },
        )

        assert main(["run", "-c", config, "-m", "m"]) == 0

        assert fake_run["server_url"] == "http://gpu-box:11434"
        assert fake_run["settings"].server_retries == 1
        assert len(list((isolated / "reports").glob("benchmark-*.json"))) == 1

    def test_command_line_url_beats_config_file(self, isolated, fake_run):
        config = write_config(
            isolated / "bench.yml", {"server": {"base_url": "http://gpu-box:11434"}}
        )
        output = str(isolated / "run.json")

        code = main(
            ["--server-url", "http://cli-box:11434", "run", "-c", config, "-m", "m", "-o", output]
        )

        assert code == 0
        assert fake_run["server_url"] == "http://cli-box:11434"

    def test_writes_configured_formats(self, isolated, fake_run, capsys):
        config = write_config(
            isolated / "bench.yml",
            {"output": {"formats": ["json", "markdown"], "include_system_info": False}},
        )

        output = str(isolated / "out" / "run.json")

        assert main(["run", "-c", config, "-m", "a,b", "-o", output]) == 0

        data = json.loads((isolated / "out" / "run.json").read_text())
        assert "system" not in data
        assert [r["model"] for r in data["results"]] == ["a", "b"]
        markdown = (isolated / "out" / "run.md").read_text()
        assert "| a |" in markdown
        assert "System Information" not in markdown
        assert "System Information" not in capsys.readouterr().out

    def test_format_flag_writes_one_file(self, isolated, fake_run):
        output = isolated / "run.csv"

        assert main(["run", "-m", "m", "-f", "csv", "-o", str(output)]) == 0

        assert output.read_text().startswith("model,")
        assert sorted(p.name for p in isolated.iterdir()) == ["run.csv"]

    def test_unknown_prompt_set(self, isolated, fake_run, caplog):
        assert main(["run", "-m", "m", "-p", "poetry"]) == 1

        assert "server_url" not in fake_run
        assert "Unknown prompt set 'poetry'" in caplog.text


def fake_client(fake_server):
    def build(settings, timeout=None):
        return OllamaClient(settings.server_url, transport=httpx.MockTransport(fake_server.handler))

    return build


class TestDiscoverCommand:
    def test_search(self, isolated, capsys):
        assert main(["discover", "-s", "coder"]) == 0

        out = capsys.readouterr().out
        assert "deepseek-coder:6.7b" in out
        assert "mistral:7b" not in out

    def test_trending(self, isolated, capsys):
        assert main(["discover", "--trending"]) == 0
        assert "1. llama3.1:8b" in capsys.readouterr().out

    def test_size(self, isolated, monkeypatch, capsys):
        monkeypatch.setattr(cli, "_client", fake_client(FakeOllama()))

        assert main(["discover", "--size", "test-model, mistral:7b, custom:70b"]) == 0

        out = capsys.readouterr().out
        assert "test-model: installed (1.0GB)" in out
        assert "mistral:7b: 4.1GB" in out
        assert "custom:70b: 40GB (estimated)" in out
        assert "Need to download: 2 model(s), 44GB; total disk space: 45GB" in out

    def test_recommendations_skip_installed(self, isolated, monkeypatch, cpu_profile, capsys):
        async def probe(settings):
            return cpu_profile

        monkeypatch.setattr(cli, "_probe", probe)
        monkeypatch.setattr(cli, "_client", fake_client(FakeOllama(models=["mistral:7b"])))

        assert main(["discover", "-c", "vision"]) == 0

        out = capsys.readouterr().out
        assert "Recommendations for 32.0GB RAM:" in out
        assert "- mistral:7b (installed)" in out
        assert "Pull: llmbench pull llama3.1:8b" in out
        assert "Pull: llmbench pull mistral:7b" not in out
        assert "Vision models:" in out
        assert "llava:13b" in out
