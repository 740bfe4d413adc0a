import pytest
from eth_utils import to_checksum_address

from dropiq.models import AutomatedTask
from dropiq.services.automation import SimulatedExecutor
from dropiq.services.registry import EXTENSION_KEY

from support import auth_headers, register

ROUTER = "0x" + "7a" * 20
BLOCKED = "0x" + "66" * 20


def _enable(client, token, **extra):
    resp = client.put("/api/automation/settings", headers=auth_headers(token), json={"isEnabled": True, **extra})
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()["data"]


def _task(client, token, name="Claim rewards", **overrides):
    body = {"name": name, "taskType": "claim", "contractAddress": ROUTER, "functionName": "claim"}
    body.update(overrides)
    return client.post("/api/automation/tasks", headers=auth_headers(token), json=body)


def _created(client, token, name="Claim rewards", **overrides):
    resp = _task(client, token, name, **overrides)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["data"]


def _approve(client, token, task, action="approve"):
    return client.post(
        "/api/automation/approvals",
        headers=auth_headers(token),
        json={"approvalId": task["approvals"][0]["id"], "action": action},
    )


def _failing_on(*names):
    simulated = SimulatedExecutor()

    def executor(task):
        if task.name in names:
            raise RuntimeError("execution reverted")
        return simulated(task)

    return executor


@pytest.fixture()
def automation(app):
    return app.extensions[EXTENSION_KEY].automation


@pytest.fixture()
def bob_token(client):
    return register(client, email="bob@example.com", name="Bob")["token"]


def test_settings_default_and_update(client, user_token):
    data = client.get("/api/automation/settings", headers=auth_headers(user_token)).get_json()["data"]
    assert data["isEnabled"] is False
    assert data["maxDailyTransactions"] == 10

    updated = _enable(client, user_token, maxDailyTransactions=3, defaultGasSettings={"maxGasPrice": "30"})
    assert updated["isEnabled"] is True
    assert updated["maxDailyTransactions"] == 3
    assert updated["defaultGasSettings"]["maxGasPrice"] == "30"
    assert updated["defaultGasSettings"]["maxGasLimit"] == 500000


def test_create_requires_enabled_automation(client, user_token):
    resp = _task(client, user_token)
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "Automation is disabled for this user"


def test_create_task_with_approval_gate(client, user_token):
    _enable(client, user_token)
    task = _created(client, user_token, executionMode="scheduled", tags=["weekly"])
    assert task["status"] == "pending"
    assert task["contractAddress"] == to_checksum_address(ROUTER)
    assert task["estimatedGas"] >= 21000
    assert task["gasSettings"]["maxGasPrice"] == "50"
    assert [a["status"] for a in task["approvals"]] == ["pending"]


def test_create_task_validation(client, user_token):
    _enable(client, user_token)
    assert _task(client, user_token, taskType="teleport").status_code == 400
    assert _task(client, user_token, contractAddress="0x1234").status_code == 400

    blocked = _task(client, user_token, securitySettings={"blockedContracts": [ROUTER.upper().replace("0X", "0x")]})
    assert blocked.status_code == 400
    assert blocked.get_json()["error"] == "Contract is blocked by the task security settings"

    not_allowed = _task(client, user_token, securitySettings={"allowedContracts": [BLOCKED]})
    assert not_allowed.status_code == 400
    assert not_allowed.get_json()["error"] == "Contract is not in the allowed contracts list"


def test_approval_then_execute(client, user_token):
    _enable(client, user_token)
    task = _created(client, user_token)
    execute_url = f"/api/automation/tasks/{task['id']}/execute"

    gated = client.post(execute_url, headers=auth_headers(user_token))
    assert gated.status_code == 403
    assert gated.get_json()["error"] == "Task requires approval before execution"

    approval = _approve(client, user_token, task).get_json()["data"]
    assert approval["status"] == "approved"
    assert approval["respondedAt"] is not None

    resp = client.post(execute_url, headers=auth_headers(user_token))
    assert resp.status_code == 200
    execution = resp.get_json()["data"]
    assert execution["status"] == "completed"
    assert execution["transactionHash"].startswith("0x")
    assert len(execution["transactionHash"]) == 66

    detail = client.get(f"/api/automation/tasks/{task['id']}", headers=auth_headers(user_token)).get_json()["data"]
    assert detail["status"] == "completed"
    assert detail["completedAt"] is not None
    assert len(detail["executions"]) == 1

    assert client.post(execute_url, headers=auth_headers(user_token)).status_code == 409
    locked = client.delete(f"/api/automation/tasks/{task['id']}", headers=auth_headers(user_token))
    assert locked.status_code == 409


def test_rejected_task_cannot_execute(client, user_token):
    _enable(client, user_token)
    task = _created(client, user_token)
    assert _approve(client, user_token, task, action="reject").get_json()["data"]["status"] == "rejected"
    assert client.post(f"/api/automation/tasks/{task['id']}/execute", headers=auth_headers(user_token)).status_code == 409


def test_approvals_are_owned_and_single_use(client, user_token, bob_token):
    _enable(client, user_token)
    task = _created(client, user_token)
    assert _approve(client, bob_token, task).status_code == 403
    assert _approve(client, user_token, task).status_code == 200
    again = _approve(client, user_token, task)
    assert again.status_code == 409
    assert again.get_json()["error"] == "Approval has already been answered"


def test_tasks_are_private(client, user_token, bob_token):
    _enable(client, user_token)
    task = _created(client, user_token)
    assert client.get(f"/api/automation/tasks/{task['id']}", headers=auth_headers(bob_token)).status_code == 403
    assert client.get("/api/automation/tasks/999", headers=auth_headers(user_token)).status_code == 404
    assert client.get("/api/automation/tasks", headers=auth_headers(bob_token)).get_json()["data"]["total"] == 0


def test_execution_failure_is_recorded(client, user_token, automation):
    _enable(client, user_token)
    task = _created(client, user_token, name="Boom", approvalRequired=False)
    automation.executor = _failing_on("Boom")
    url = f"/api/automation/tasks/{task['id']}/execute"

    resp = client.post(url, headers=auth_headers(user_token))
    assert resp.status_code == 500
    body = resp.get_json()
    assert body["error"] == "Task execution failed"
    assert body["details"] == "execution reverted"

    listed = client.get("/api/automation/tasks?status=failed", headers=auth_headers(user_token)).get_json()["data"]
    assert listed["total"] == 1
    assert listed["tasks"][0]["latestExecution"]["error"] == "execution reverted"

    # failed tasks may be retried
    automation.executor = SimulatedExecutor()
    assert client.post(url, headers=auth_headers(user_token)).status_code == 200


def test_daily_transaction_limit(client, user_token):
    _enable(client, user_token, maxDailyTransactions=1)
    first = _created(client, user_token, name="One", approvalRequired=False)
    second = _created(client, user_token, name="Two", approvalRequired=False)

    assert client.post(f"/api/automation/tasks/{first['id']}/execute", headers=auth_headers(user_token)).status_code == 200
    limited = client.post(f"/api/automation/tasks/{second['id']}/execute", headers=auth_headers(user_token))
    assert limited.status_code == 429
    assert limited.get_json()["error"] == "Daily transaction limit reached"


def test_list_shows_pending_approvals(client, user_token):
    _enable(client, user_token)
    _created(client, user_token, name="Gated")
    _created(client, user_token, name="Open", taskType="swap", approvalRequired=False)

    listed = client.get("/api/automation/tasks", headers=auth_headers(user_token)).get_json()["data"]
    by_name = {t["name"]: t for t in listed["tasks"]}
    assert listed["total"] == 2
    assert len(by_name["Gated"]["pendingApprovals"]) == 1
    assert by_name["Open"]["pendingApprovals"] == []
    assert by_name["Open"]["latestExecution"] is None

    swaps = client.get("/api/automation/tasks?taskType=swap", headers=auth_headers(user_token)).get_json()["data"]
    assert [t["name"] for t in swaps["tasks"]] == ["Open"]


def test_update_and_schedule(client, db, user_token):
    _enable(client, user_token)
    task = _created(client, user_token)
    url = f"/api/automation/tasks/{task['id']}"

    updated = client.put(url, headers=auth_headers(user_token), json={"priority": "urgent", "gasSettings": {"maxGasPrice": "80"}})
    data = updated.get_json()["data"]
    assert data["priority"] == "urgent"
    assert data["gasSettings"]["maxGasPrice"] == "80"

    scheduled = client.post(
        f"{url}/schedule", headers=auth_headers(user_token), json={"scheduledAt": "2030-01-01T12:00:00Z"}
    ).get_json()["data"]
    assert scheduled["executionMode"] == "scheduled"
    assert scheduled["scheduledAt"].startswith("2030-01-01T12:00:00")
    assert scheduled["estimatedGas"] is not None

    db.get(AutomatedTask, task["id"]).status = "executing"
    db.commit()
    busy = client.put(url, headers=auth_headers(user_token), json={"priority": "low"})
    assert busy.status_code == 409
    assert busy.get_json()["error"] == "Cannot update task while executing"


def test_delete_task(client, db, user_token):
    _enable(client, user_token)
    task = _created(client, user_token)
    assert client.delete(f"/api/automation/tasks/{task['id']}", headers=auth_headers(user_token)).status_code == 200
    assert db.get(AutomatedTask, task["id"]) is None


def _batch(client, token, task_ids, order="sequential"):
    return client.post(
        "/api/automation/batches",
        headers=auth_headers(token),
        json={"name": "Weekly run", "taskIds": task_ids, "executionOrder": order},
    )


def test_batch_creation(client, user_token, bob_token):
    _enable(client, user_token)
    ids = [_created(client, user_token, name=n, approvalRequired=False)["id"] for n in ("A", "B")]

    assert _batch(client, user_token, [ids[0], ids[0]]).status_code == 400
    assert _batch(client, bob_token, ids).status_code == 403

    resp = _batch(client, user_token, list(reversed(ids)))
    assert resp.status_code == 201
    batch = resp.get_json()["data"]
    assert [t["name"] for t in batch["tasks"]] == ["B", "A"]
    assert [t["batchOrder"] for t in batch["tasks"]] == [0, 1]

    assert client.post(f"/api/automation/batches/{batch['id']}/execute", headers=auth_headers(bob_token)).status_code == 403


@pytest.mark.parametrize("order,executed,final_status", [("sequential", 1, "pending"), ("parallel", 2, "completed")])
def test_batch_execution_order(client, user_token, automation, order, executed, final_status):
    _enable(client, user_token)
    ids = [_created(client, user_token, name=n, approvalRequired=False)["id"] for n in ("First", "Boom", "Last")]
    automation.executor = _failing_on("Boom")
    batch = _batch(client, user_token, ids, order).get_json()["data"]

    result = client.post(f"/api/automation/batches/{batch['id']}/execute", headers=auth_headers(user_token)).get_json()["data"]
    assert len(result["executions"]) == executed
    assert result["failures"] == [{"taskId": ids[1], "error": "execution reverted"}]
    assert result["batch"]["status"] == "failed"

    last = client.get(f"/api/automation/tasks/{ids[2]}", headers=auth_headers(user_token)).get_json()["data"]
    assert last["status"] == final_status


def test_updates_reject_null_for_required_fields(client, user_token):
    _enable(client, user_token)
    task = _created(client, user_token)
    url = f"/api/automation/tasks/{task['id']}"

    resp = client.put(url, headers=auth_headers(user_token), json={"name": None, "approvalRequired": None})
    assert resp.status_code == 400
    details = resp.get_json()["details"]
    assert any("name, approvalRequired cannot be null" in detail for detail in details)

    cleared = client.put(url, headers=auth_headers(user_token), json={"description": None, "tags": None})
    assert cleared.status_code == 200
    assert cleared.get_json()["data"]["name"] == "Claim rewards"

    settings = client.put("/api/automation/settings", headers=auth_headers(user_token), json={"isEnabled": None})
    assert settings.status_code == 400
