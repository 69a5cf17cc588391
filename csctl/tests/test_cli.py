from pathlib import Path

import yaml
from typer.testing import CliRunner

from csctl.cli import app

runner = CliRunner()


def test_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "init" in result.stdout
    assert "update" in result.stdout
    assert "generate" in result.stdout


def test_init_help_lists_options():
    result = runner.invoke(app, ["init", "install-config", "--help"])
    assert result.exit_code == 0
    assert "--profile" in result.stdout
    assert "--validate-only" in result.stdout


def test_init_update_generate(tmp_path):
    config = str(tmp_path / "config.yaml")
    vault = str(tmp_path / "prod.vault.yaml")
    k0s = str(tmp_path / "k0s.yaml")

    result = runner.invoke(app, [
        "init", "install-config", "--config", config, "--vault", vault,
        "--dc-name", "fra", "--dns-server", "9.9.9.9,1.1.1.1", "--dns-server", "8.8.4.4",
    ])
    assert result.exit_code == 0, result.stdout
    assert "successfully generated" in result.stdout
    assert yaml.safe_load(Path(config).read_text())["codesphere"]["dnsServers"] == ["9.9.9.9", "1.1.1.1", "8.8.4.4"]

    result = runner.invoke(app, ["init", "install-config", "--validate-only", "--config", config, "--vault", vault])
    assert result.exit_code == 0, result.stdout
    assert "valid" in result.stdout

    result = runner.invoke(app, [
        "update", "install-config", "--config", config, "--vault", vault,
        "--postgres-primary-ip", "10.50.0.20",
    ])
    assert result.exit_code == 0, result.stdout
    assert "postgres.primary.ip" in result.stdout
    assert "postgresPrimaryServerKeyPem" in result.stdout

    result = runner.invoke(app, ["generate", "k0s-config", "--config", config, "--output", k0s])
    assert result.exit_code == 0, result.stdout
    assert yaml.safe_load(Path(k0s).read_text())["metadata"]["name"] == "codesphere-fra"


def test_unknown_profile_fails(tmp_path):
    result = runner.invoke(app, [
        "init", "install-config", "--profile", "staging",
        "--config", str(tmp_path / "config.yaml"), "--vault", str(tmp_path / "vault.yaml"),
    ])
    assert result.exit_code == 1
    assert "unknown profile" in result.stdout


def test_update_missing_files_fails(tmp_path):
    result = runner.invoke(app, [
        "update", "install-config", "--config", str(tmp_path / "missing.yaml"),
        "--vault", str(tmp_path / "missing.vault.yaml"),
    ])
    assert result.exit_code == 1
