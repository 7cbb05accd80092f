import os
from unittest.mock import MagicMock

from click.testing import CliRunner

from issuesync.cli import cli
from issuesync.config import CONFIG_PATH_ENV


def test_serve_hands_config_file_to_app_factory(tmp_path, monkeypatch):
    path = tmp_path / "config.yml"
    path.write_text("github:\n  repo_owner: file-owner\n  repo_name: file-repo\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_PATH_ENV, "")
    run = MagicMock()
    monkeypatch.setattr("uvicorn.run", run)

    result = CliRunner().invoke(cli, ["--config", str(path), "serve", "--port", "9000"])

    assert result.exit_code == 0, result.output
    assert os.environ[CONFIG_PATH_ENV] == str(path.resolve())
    assert run.call_args.args == ("issuesync.ingest.server:create_app",)
    assert run.call_args.kwargs["factory"] is True
    assert run.call_args.kwargs["port"] == 9000


def test_serve_without_config_file_uses_environment(tmp_path, monkeypatch):
    monkeypatch.setenv(CONFIG_PATH_ENV, "")
    run = MagicMock()
    monkeypatch.setattr("uvicorn.run", run)

    result = CliRunner().invoke(cli, ["--config", str(tmp_path / "missing.yml"), "serve"])

    assert result.exit_code == 0, result.output
    assert os.environ[CONFIG_PATH_ENV] == ""
    run.assert_called_once()
