from pathlib import Path

from issuesync.config import AppConfig, DEFAULT_RESULT_TEMPLATE


def test_from_env(monkeypatch):
    monkeypatch.setenv("GITHUB_REPO_OWNER", "octo-org")
    monkeypatch.setenv("GITHUB_REPO_NAME", "octo-repo")
    monkeypatch.setenv("GITHUB_LOG_WEBHOOK_PAYLOADS", "true")
    monkeypatch.setenv("GITHUB_RATE_LIMIT_RETRIES", "5")
    monkeypatch.setenv("GRAPH_CONNECTOR_ID", "githubissues")
    monkeypatch.delenv("GRAPH_RESULT_TEMPLATE", raising=False)

    cfg = AppConfig.from_env()

    assert cfg.github.full_name == "octo-org/octo-repo"
    assert cfg.github.log_webhook_payloads is True
    assert cfg.github.rate_limit_retries == 5
    assert cfg.graph.connector_id == "githubissues"
    assert cfg.graph.result_template_path == DEFAULT_RESULT_TEMPLATE
    assert cfg.queue.poison_stream_name == cfg.queue.stream_name + "-poison"


def test_load_yaml_with_env_overrides(tmp_path, monkeypatch):
    path = tmp_path / "config.yml"
    path.write_text(
        "github:\n"
        "  repo_owner: file-owner\n"
        "  repo_name: file-repo\n"
        "  token: from-file\n"
        "queue:\n"
        "  max_deliveries: 2\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("GITHUB_REPO_NAME", "env-repo")
    monkeypatch.delenv("GITHUB_REPO_OWNER", raising=False)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("ISSUESYNC_MAX_DELIVERIES", raising=False)

    cfg = AppConfig.load(path)

    assert cfg.github.repo_owner == "file-owner"
    assert cfg.github.repo_name == "env-repo"
    # Secrets are never read from the file
    assert cfg.github.token == ""
    assert cfg.queue.max_deliveries == 2


def test_load_example_config(monkeypatch):
    for name in ("GITHUB_REPO_OWNER", "GRAPH_CONNECTOR_ID", "GRAPH_SCHEMA_POLL_INTERVAL_SECONDS"):
        monkeypatch.delenv(name, raising=False)

    cfg = AppConfig.load(Path(__file__).resolve().parents[1] / "config.example.yml")

    assert cfg.github.repo_owner == "octo-org"
    assert cfg.graph.connector_id == "githubissues"
    assert cfg.graph.schema_poll_interval == 60.0
