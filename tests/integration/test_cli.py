"""Integration tests for CLI commands."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from podarc.cli import app
from podarc.pipeline.store import ArtifactStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def no_api_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep real API keys out of CLI runs."""
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    return tmp_path / "config"


def invoke(config_dir: Path, *args: str):
    return runner.invoke(app, ["--config-dir", str(config_dir), *args])


def error_payload(output: str) -> dict:
    last_line = [line for line in output.splitlines() if line.strip()][-1]
    return json.loads(last_line)


class TestCLIVersion:
    """Tests for version command."""

    def test_version_command(self) -> None:
        """Test version command displays version."""
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "podarc" in result.stdout
        assert "0.1.0" in result.stdout


class TestCLIConfig:
    """Tests for config command."""

    def test_show(self, config_dir: Path) -> None:
        """Test showing the default configuration."""
        result = invoke(config_dir, "config", "show")

        assert result.exit_code == 0
        assert "podarc Configuration" in result.stdout
        assert "claude" in result.stdout
        assert (config_dir / "config.yaml").exists()

    def test_unknown_action(self, config_dir: Path) -> None:
        """Test the machine-readable error for bad actions."""
        result = invoke(config_dir, "config", "edit")

        assert result.exit_code == 1
        assert error_payload(result.stdout) == {
            "status": "error",
            "message": "Unknown config action: edit",
        }

    def test_invalid_config_file(self, config_dir: Path) -> None:
        """Test that a broken config file exits 1."""
        config_dir.mkdir()
        (config_dir / "config.yaml").write_text("llm:\n  provider: nobody\n")

        result = invoke(config_dir, "config", "show")

        assert result.exit_code == 1
        assert error_payload(result.stdout)["status"] == "error"


class TestCLIRun:
    """Tests for run command."""

    def test_offline_run(self, config_dir: Path, published_store: ArtifactStore) -> None:
        """Test an offline rebuild without an API key."""
        result = invoke(config_dir, "run", "--offline", "--output", str(published_store.output_dir))

        assert result.exit_code == 0
        assert "No API key configured" in result.stdout
        assert "Complete!" in result.stdout
        assert len(published_store.load_public_episodes()) == 6

    def test_empty_catalog(self, config_dir: Path, tmp_path: Path) -> None:
        """Test an offline run with nothing stored yet."""
        output = tmp_path / "empty"

        result = invoke(config_dir, "run", "--offline", "-o", str(output))

        assert result.exit_code == 0
        assert json.loads((output / "public" / "episodes.json").read_text()) == []
        assert json.loads((output / "public" / "slug-registry.json").read_text()) == {}

    def test_plan(self, config_dir: Path, published_store: ArtifactStore) -> None:
        """Test listing planned LLM calls."""
        result = invoke(
            config_dir, "run", "--offline", "--plan", "--output", str(published_store.output_dir)
        )

        assert result.exit_code == 0
        assert "Episode enrichments" in result.stdout
        assert "Series enrichments" in result.stdout
        assert "7" in result.stdout

    def test_dry_run(self, config_dir: Path, published_store: ArtifactStore) -> None:
        """Test that dry runs print the ledger and write nothing."""
        published_store.errors_path.unlink(missing_ok=True)

        result = invoke(
            config_dir, "run", "--offline", "--dry-run", "--output", str(published_store.output_dir)
        )

        assert result.exit_code == 0
        assert "Dry run enabled; skipping filesystem writes." in result.stdout
        assert "llm:episodes :: nelson-1" in result.stdout
        assert not published_store.errors_path.exists()

    def test_missing_feed(self, config_dir: Path, tmp_path: Path) -> None:
        """Test an online run without a configured feed."""
        result = invoke(config_dir, "run", "--output", str(tmp_path / "out"))

        assert result.exit_code == 1
        payload = error_payload(result.stdout)
        assert payload["status"] == "error"
        assert "feed_url" in payload["message"]


class TestCLIAudit:
    """Tests for audit command."""

    def test_valid_catalog(self, config_dir: Path, published_store: ArtifactStore) -> None:
        """Test auditing a valid catalog."""
        result = invoke(config_dir, "audit", "--output", str(published_store.output_dir))

        assert result.exit_code == 0
        assert "Catalog is valid" in result.stdout

    def test_invalid_catalog(self, config_dir: Path, published_store: ArtifactStore) -> None:
        """Test that violations are listed and exit 1."""
        series = json.loads(published_store.public_series_path.read_text())
        series[0]["episodeIds"] = ["nelson-1"]
        published_store.public_series_path.write_text(json.dumps(series))

        result = invoke(config_dir, "audit", "--output", str(published_store.output_dir))

        assert result.exit_code == 1
        assert "violation" in result.stdout


class TestCLISlugs:
    """Tests for slugs command."""

    def test_rebuild(self, config_dir: Path, published_store: ArtifactStore) -> None:
        """Test rebuilding the slug registry."""
        published_store.slug_registry_path.unlink()

        result = invoke(config_dir, "slugs", "--output", str(published_store.output_dir))

        assert result.exit_code == 0
        assert "1 series and 6 episode slugs assigned" in result.stdout
        assert published_store.slug_registry_path.exists()
