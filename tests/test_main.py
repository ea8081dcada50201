"""Tests for jupyter_hpc.main - the jupyter-hpc command line."""

from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from jupyter_hpc.exceptions import NoSchedulerError, TokenFetchError
from jupyter_hpc.main import cli
from jupyter_hpc.options import ServerType


@pytest.fixture()
def config_file(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(
        yaml.dump(
            {
                "clusters": [
                    {
                        "name": "carbonate",
                        "hostname_pattern": "carbonate",
                        "token_url": "https://carbonate-proxy.example.edu/token",
                    }
                ],
                "default_runtime_minutes": 90,
                "session_dir": str(tmp_path / "sessions"),
            }
        )
    )
    return path


def _invoke(*args):
    return CliRunner().invoke(cli, list(args))


class TestHelp:
    @pytest.mark.parametrize("flag", ["-h", "-?", "--help"])
    def test_help_flags(self, flag):
        result = _invoke(flag)
        assert result.exit_code == 0
        assert "Usage:" in result.output
        assert "--partition" in result.output


class TestShowConfig:
    def test_prints_config(self, config_file):
        result = _invoke("--config", str(config_file), "--showconfig")
        assert result.exit_code == 0
        assert "carbonate-proxy.example.edu" in result.output

    def test_prints_bundled_defaults(self, monkeypatch):
        monkeypatch.delenv("JUPYTER_HPC_CONFIG", raising=False)
        result = _invoke("--showconfig")
        assert result.exit_code == 0
        assert "clusters:" in result.output

    def test_missing_config_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("JUPYTER_HPC_CONFIG", str(tmp_path / "missing.yaml"))
        result = _invoke("--showconfig")
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Unable to read config file" in result.output


class TestValidation:
    @patch("jupyter_hpc.main.launch")
    def test_server_and_batch_script_exclusive(self, mock_launch, config_file, tmp_path):
        script = tmp_path / "job.sh"
        script.write_text("#!/bin/bash\n")
        result = _invoke("--config", str(config_file), "-d", str(tmp_path), "-b", str(script), "-s", "notebook")
        assert result.exit_code == 1
        assert "cannot be combined" in result.output
        mock_launch.assert_not_called()

    @patch("jupyter_hpc.main.launch")
    def test_debug_partition_limit(self, mock_launch, config_file, tmp_path):
        result = _invoke("--config", str(config_file), "-d", str(tmp_path), "-p", "debug", "-t", "45")
        assert result.exit_code == 1
        assert "limited to 30 minutes" in result.output
        mock_launch.assert_not_called()

    @patch("jupyter_hpc.main.launch")
    def test_debug_partition_default_runtime_too_long(self, mock_launch, config_file, tmp_path):
        # default runtime from the config file is 90 minutes
        result = _invoke("--config", str(config_file), "-d", str(tmp_path), "-p", "debug")
        assert result.exit_code == 1
        mock_launch.assert_not_called()

    @patch("jupyter_hpc.main.launch")
    def test_invalid_server_type(self, mock_launch, config_file):
        result = _invoke("--config", str(config_file), "-s", "vscode")
        assert result.exit_code == 1
        assert "vscode" in result.output
        mock_launch.assert_not_called()

    @patch("jupyter_hpc.main.launch")
    def test_non_positive_runtime(self, mock_launch, config_file):
        result = _invoke("--config", str(config_file), "-t", "0")
        assert result.exit_code == 1
        mock_launch.assert_not_called()

    @patch("jupyter_hpc.main.launch")
    def test_unknown_flag(self, mock_launch, config_file):
        result = _invoke("--config", str(config_file), "--bogus")
        assert result.exit_code == 1
        assert "--bogus" in result.output
        mock_launch.assert_not_called()

    @patch("jupyter_hpc.main.launch")
    def test_missing_config_flag_path(self, mock_launch, tmp_path):
        result = _invoke("-c", str(tmp_path / "missing.yaml"))
        assert result.exit_code == 1
        mock_launch.assert_not_called()

    @patch("jupyter_hpc.main.launch")
    def test_comma_in_directory(self, mock_launch, config_file, tmp_path):
        directory = tmp_path / "a,b"
        directory.mkdir()
        result = _invoke("--config", str(config_file), "-d", str(directory))
        assert result.exit_code == 1
        assert "cannot contain a comma" in result.output
        mock_launch.assert_not_called()

    @patch("jupyter_hpc.main.launch")
    def test_missing_directory(self, mock_launch, config_file, tmp_path):
        result = _invoke("--config", str(config_file), "-d", str(tmp_path / "missing"))
        assert result.exit_code == 1
        assert "does not exist" in result.output

    def test_invalid_config(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("clusters: []\n")
        result = _invoke("--config", str(path))
        assert result.exit_code == 1
        assert "Invalid config file" in result.output


class TestLaunchInvocation:
    @patch("jupyter_hpc.main.launch")
    def test_options_passed_through(self, mock_launch, config_file, tmp_path):
        result = _invoke(
            "--config",
            str(config_file),
            "-p",
            "general",
            "-d",
            str(tmp_path),
            "-A",
            "proj-1",
            "-t",
            "120",
            "-s",
            "jupyterlab",
        )
        assert result.exit_code == 0, result.output

        options, cfg = mock_launch.call_args.args
        assert options.partition == "general"
        assert options.notebook_dir == tmp_path.resolve()
        assert options.allocation == "proj-1"
        assert options.runtime_minutes == 120
        assert options.server_type is ServerType.JUPYTERLAB
        assert options.batch_script is None
        assert cfg.clusters[0].name == "carbonate"
        assert mock_launch.call_args.kwargs == {"dry_run": False}

    @patch("jupyter_hpc.main.launch")
    def test_defaults(self, mock_launch, config_file):
        result = _invoke("--config", str(config_file))
        assert result.exit_code == 0, result.output

        options, _ = mock_launch.call_args.args
        assert options.partition is None
        assert options.notebook_dir == Path.home().resolve()
        assert options.runtime_minutes == 90
        assert options.server_type is None
        assert options.verbose is False

    @patch("jupyter_hpc.main.launch")
    def test_config_from_environment(self, mock_launch, config_file, monkeypatch):
        monkeypatch.setenv("JUPYTER_HPC_CONFIG", str(config_file))
        result = _invoke()
        assert result.exit_code == 0, result.output
        _, cfg = mock_launch.call_args.args
        assert cfg.default_runtime_minutes == 90

    @patch("jupyter_hpc.main.launch")
    def test_dry_run_flag(self, mock_launch, config_file):
        result = _invoke("--config", str(config_file), "--dry-run")
        assert result.exit_code == 0, result.output
        assert mock_launch.call_args.kwargs == {"dry_run": True}

    @patch("jupyter_hpc.main.launch", side_effect=TokenFetchError("Reverse proxy refused to issue a token: Oops!"))
    def test_token_failure_exits_1(self, mock_launch, config_file):
        result = _invoke("--config", str(config_file))
        assert result.exit_code == 1
        assert "Reverse proxy refused" in result.output

    @patch("jupyter_hpc.main.launch", side_effect=NoSchedulerError())
    def test_no_scheduler_exits_1(self, mock_launch, config_file):
        result = _invoke("--config", str(config_file), "-i")
        assert result.exit_code == 1
        assert "No supported scheduler found" in result.output
