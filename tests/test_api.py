from uuid import uuid4

from fastapi.testclient import TestClient

from caseflow.main import app
from caseflow.workflows.case_tools import records


client = TestClient(app)

SIGNAL_INPUTS = {
    "description": "Suspicious activity at Main Street",
    "types": ["fraud"],
    "placeOfObservation": "Main Street",
}


def start(workflow_id: str, inputs: dict) -> dict:
    resp = client.post("/workflows/start", json={"workflow_id": workflow_id, "inputs": inputs})
    assert resp.status_code == 200, resp.text
    return resp.json()


def respond(execution_id: str, **body) -> dict:
    resp = client.post(f"/workflows/respond/{execution_id}", json=body)
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_health_and_root():
    assert client.get("/health").json() == {"status": "healthy"}
    resp = client.get("/", follow_redirects=False)
    assert resp.status_code in (302, 307)
    assert resp.headers["location"] == "/docs"


def test_list_and_get_workflows():
    resp = client.get("/workflows/list")
    assert resp.status_code == 200
    ids = {wf["id"] for wf in resp.json()["workflows"]}
    assert {"signal_create", "full_investigation", "bibob_complete"} <= ids

    detail = client.get("/workflows/signal_create")
    assert detail.status_code == 200
    assert detail.json()["requires_approval_to_start"] is True
    assert detail.json()["steps"][0]["tool"] == "signal_create"


def test_unknown_workflow_detail_is_404():
    resp = client.get("/workflows/no_such_workflow")
    assert resp.status_code == 404


def test_search_workflows():
    resp = client.get("/workflows/search", params={"q": "Complete Bibob please"})
    assert resp.status_code == 200
    assert [wf["id"] for wf in resp.json()["workflows"]] == ["bibob_complete"]


def test_start_reports_missing_inputs():
    payload = start("signal_create", {"description": "only this"})

    assert payload["status"] == "pending_input"
    assert payload["hitl_request"]["fields"] == ["types", "placeOfObservation"]


def test_signal_create_with_case_tools():
    pending = start("signal_create", SIGNAL_INPUTS)
    assert pending["status"] == "pending_approval"

    done = respond(pending["execution_id"], approved=True)

    assert done["status"] == "completed"
    signal = done["outputs"]["create_signal"]
    assert signal["signalNumber"] == "GCMP-1"
    assert signal["receivedBy"] == "municipal-department"
    assert signal["signalId"] in records.signals
    assert "Signal: GCMP-1" in done["summary"]


def test_full_investigation_with_case_tools():
    pending = start("full_investigation", dict(SIGNAL_INPUTS, folderName="Main Street case"))
    execution_id = pending["execution_id"]

    step_two = respond(execution_id, approved=True)
    assert step_two["hitl_request"]["message"] == (
        "Step 2/3: Signal created (GCMP-1). Create folder?"
    )
    step_three = respond(execution_id, approved=True)
    assert "Main Street case" in step_three["hitl_request"]["message"]
    done = respond(execution_id, approved=True)

    assert done["status"] == "completed"
    folder_id = done["outputs"]["create_folder"]["folderId"]
    folder = records.folders[folder_id]
    assert folder["signalIds"] == [done["outputs"]["create_signal"]["signalId"]]
    assert folder["application"]["status"] == "submitted"


def test_tool_error_fails_execution():
    pending = start("add_signal_to_folder", {"signalId": "sig-x", "folderId": "fld-missing"})
    failed = respond(pending["execution_id"], approved=True)

    assert failed["status"] == "failed"
    assert "Folder not found: fld-missing" in failed["error"]


def test_decline_via_api():
    pending = start("signal_create", SIGNAL_INPUTS)
    declined = respond(pending["execution_id"], approved=False)

    assert declined["status"] == "failed"
    assert declined["error"] == "Cancelled by user"
    assert records.signals == {}


def test_cancel_and_inspect_execution():
    pending = start("signal_create", SIGNAL_INPUTS)
    execution_id = pending["execution_id"]

    resp = client.post(f"/workflows/cancel/{execution_id}")
    assert resp.status_code == 200
    assert resp.json() == {"execution_id": execution_id, "status": "cancelled"}

    state = client.get(f"/workflows/executions/{execution_id}")
    assert state.status_code == 200
    assert state.json()["status"] == "failed"
    assert state.json()["error"] == "Cancelled by user"

    listed = client.get("/workflows/executions").json()["executions"]
    assert execution_id in {item["execution_id"] for item in listed}


def test_unknown_execution_is_404():
    assert client.post("/workflows/cancel/exec-missing").status_code == 404
    assert client.get("/workflows/executions/exec-missing").status_code == 404


def test_list_tools():
    resp = client.get("/tools/list")
    assert resp.status_code == 200
    names = {item["name"] for item in resp.json()["tools"]}
    assert {"signal_create", "folder_create", "folder_submit_application"} <= names


def test_websocket_ping_pong():
    execution_id = f"ws-{uuid4()}"
    with client.websocket_connect(f"/workflows/ws/{execution_id}") as websocket:
        websocket.send_text("ping")
        assert websocket.receive_text() == "pong"


def test_websocket_receives_execution_events():
    with TestClient(app) as live:
        resp = live.post(
            "/workflows/start", json={"workflow_id": "signal_create", "inputs": SIGNAL_INPUTS}
        )
        execution_id = resp.json()["execution_id"]

        with live.websocket_connect(f"/workflows/ws/{execution_id}") as websocket:
            websocket.send_text("ping")
            assert websocket.receive_text() == "pong"
            live.post(f"/workflows/respond/{execution_id}", json={"approved": True})
            events = [websocket.receive_json()["event"] for _ in range(4)]

    assert events == ["resumed", "executing", "step_completed", "completed"]
