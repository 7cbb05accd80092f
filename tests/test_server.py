import json
import time
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from issuesync.common import AdminConsentRequiredError, IssueNotFoundError, sign_payload
from issuesync.config import CONFIG_PATH_ENV
from issuesync.ingest import Services, create_app
from issuesync.models import WorkItem
from issuesync.orchestration import BootstrapActivities, DurableEngine, register_bootstrap
from issuesync.service import CrawlResult

SECRET = "It's a Secret to Everybody"


async def no_sleep(_seconds):
    return None


@pytest.fixture
def services(app_config):
    connector = MagicMock()
    connector.ensure_connection.return_value = {"id": "githubissues"}
    connector.ensure_schema.return_value = None
    sync = MagicMock()
    sync.crawl.return_value = CrawlResult(total=1, succeeded=1)

    engine = DurableEngine(sleep=no_sleep)
    register_bootstrap(engine, BootstrapActivities(connector, sync))
    return Services(
        app_config,
        issues=MagicMock(),
        connector=connector,
        sync=sync,
        queue=MagicMock(),
        engine=engine,
    )


@pytest.fixture
def client(app_config, services):
    with TestClient(create_app(app_config, services)) as test_client:
        yield test_client


def deliver(client, payload, event="issues", secret=SECRET, signature=None):
    body = json.dumps(payload).encode("utf-8")
    headers = {
        "X-GitHub-Event": event,
        "X-Hub-Signature-256": signature or sign_payload(body, secret),
        "Content-Type": "application/json",
    }
    return client.post("/api/notify", content=body, headers=headers)


ISSUE_EVENT = {
    "action": "edited",
    "issue": {"number": 5, "title": "ignored"},
    "repository": {"full_name": "octo-org/octo-repo"},
    "sender": {"login": "octocat"},
}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_signed_issue_event_is_queued(client, services):
    response = deliver(client, ISSUE_EVENT)

    assert response.status_code == 202
    services.queue.enqueue.assert_called_once_with(
        WorkItem(owner="octo-org", repo="octo-repo", issue_number=5)
    )


def test_issue_comment_event_is_queued(client, services):
    response = deliver(client, ISSUE_EVENT, event="issue_comment")
    assert response.status_code == 202
    services.queue.enqueue.assert_called_once()


def test_bad_signature_is_rejected(client, services):
    response = deliver(client, ISSUE_EVENT, secret="wrong secret")
    assert response.status_code == 401
    services.queue.enqueue.assert_not_called()


def test_missing_headers_are_rejected(client, services):
    response = client.post("/api/notify", content=b"{}")
    assert response.status_code == 400
    services.queue.enqueue.assert_not_called()


def test_unrecognized_event_is_accepted_but_ignored(client, services):
    response = deliver(client, {"ref": "refs/heads/main"}, event="push")
    assert response.status_code == 202
    services.queue.enqueue.assert_not_called()


def test_signed_malformed_payload_is_rejected(client, services):
    body = b"not json"
    response = client.post("/api/notify", content=body, headers={
        "X-GitHub-Event": "issues",
        "X-Hub-Signature-256": sign_payload(body, SECRET),
    })
    assert response.status_code == 400
    services.queue.enqueue.assert_not_called()


def test_payload_without_issue_is_rejected(client, services):
    response = deliver(client, {"action": "opened", "repository": {"full_name": "octo-org/octo-repo"}})
    assert response.status_code == 400


def test_missing_secret_rejects_everything(app_config, services):
    app_config.github.webhook_secret = ""
    with TestClient(create_app(app_config, services)) as client:
        response = deliver(client, ISSUE_EVENT, secret="")
    assert response.status_code == 401


def test_enqueue_failure_still_acknowledges(client, services):
    services.queue.enqueue.side_effect = ConnectionError("redis down")
    response = deliver(client, ISSUE_EVENT)
    assert response.status_code == 202


def test_delete_connection(client, services):
    response = client.post("/api/initialize", params={"operation": "DELETE"})
    assert response.status_code == 200
    services.connector.delete_connection.assert_called_once()


def test_delete_without_consent(client, services):
    services.connector.delete_connection.side_effect = AdminConsentRequiredError("client", "tenant")
    response = client.post("/api/initialize", params={"operation": "delete"})
    assert response.status_code == 400
    assert response.json()["code"] == "AdminConsentRequired"


def test_unknown_operation_does_nothing(client, services):
    response = client.post("/api/initialize", params={"operation": "rebuild"})
    assert response.status_code == 200
    services.connector.delete_connection.assert_not_called()


def test_create_starts_bootstrap(client, services):
    response = client.post("/api/initialize")

    assert response.status_code == 202
    body = response.json()
    assert body["statusQueryGetUri"].endswith(f"/api/initialize/{body['id']}")
    assert body["terminatePostUri"].endswith(f"/api/initialize/{body['id']}/terminate")

    status = {}
    for _ in range(100):
        status = client.get(f"/api/initialize/{body['id']}").json()
        if status["runtimeStatus"] == "Completed":
            break
        time.sleep(0.02)

    assert status["runtimeStatus"] == "Completed"
    assert status["output"]["success"] is True
    services.sync.crawl.assert_called_once()


def test_status_of_unknown_instance(client):
    assert client.get("/api/initialize/missing").status_code == 404


def test_terminate_unknown_instance(client):
    assert client.post("/api/initialize/missing/terminate").status_code == 404


def test_label_issue(client, services):
    response = client.post("/api/LabelIssue/5", json={"labels": ["bug", "ui"]})
    assert response.status_code == 202
    assert response.json() == "Success"
    services.issues.add_labels.assert_called_once_with(5, ["bug", "ui"])


def test_unlabel_issue(client, services):
    response = client.post("/api/UnlabelIssue/5", json={"labels": ["bug"]})
    assert response.status_code == 202
    services.issues.remove_labels.assert_called_once_with(5, ["bug"])


def test_assign_and_unassign_issue(client, services):
    assert client.post("/api/AssignIssue/8", json={"users": ["alice"]}).status_code == 202
    assert client.post("/api/UnassignIssue/8", json={"users": ["alice"]}).status_code == 202
    services.issues.assign_users.assert_called_once_with(8, ["alice"])
    services.issues.unassign_users.assert_called_once_with(8, ["alice"])


def test_close_issue_without_body(client, services):
    response = client.post("/api/CloseIssue/3")
    assert response.status_code == 202
    services.issues.close_issue.assert_called_once_with(3)


def test_management_failure_returns_error_body(client, services):
    services.issues.close_issue.side_effect = IssueNotFoundError(3)
    response = client.post("/api/CloseIssue/3")
    assert response.status_code == 400
    assert response.json() == {"code": "CloseIssueError", "message": "Could not get issue #3"}


def test_invalid_json_body(client, services):
    response = client.post("/api/LabelIssue/5", content=b"{labels", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert response.json()["code"] == "LabelIssueError"
    services.issues.add_labels.assert_not_called()


def test_non_numeric_issue_number(client):
    response = client.post("/api/CloseIssue/abc")
    assert response.status_code == 400
    assert response.json()["code"] == "BadRequest"


def test_app_factory_reads_config_file_named_in_env(tmp_path, monkeypatch, app_config):
    path = tmp_path / "config.yml"
    path.write_text("github:\n  repo_owner: file-owner\n  repo_name: file-repo\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_PATH_ENV, str(path))
    monkeypatch.delenv("GITHUB_REPO_OWNER", raising=False)
    monkeypatch.delenv("GITHUB_REPO_NAME", raising=False)

    app = create_app(services=Services(app_config))

    assert app.state.config.github.full_name == "file-owner/file-repo"
