import re
from datetime import timedelta

from caseflow.core.state import WorkflowExecutionState, utcnow
from caseflow.core.storage import InMemoryExecutionStore, generate_execution_id
from caseflow.workflows.catalog import create_workflow_registry


def make_state(execution_id):
    workflow = create_workflow_registry().get("signal_create")
    return WorkflowExecutionState.create(workflow, execution_id, {})


def test_execution_id_format():
    first, second = generate_execution_id(), generate_execution_id()
    assert re.fullmatch(r"exec-\d{13}-[0-9a-f]{8}", first)
    assert first != second


def test_store_round_trip():
    store = InMemoryExecutionStore()
    state = make_state("exec-1")
    store.save(state)

    assert store.get("exec-1") is state
    assert store.list_executions() == [state]
    assert store.delete("exec-1") is True
    assert store.get("exec-1") is None
    assert store.delete("exec-1") is False


def test_reap_only_drops_finished_executions():
    store = InMemoryExecutionStore(ttl_seconds=60)
    finished = make_state("exec-done")
    finished.complete()
    failed = make_state("exec-failed")
    failed.fail("boom")
    waiting = make_state("exec-waiting")
    waiting.suspend(
        "workflow_start",
        create_workflow_registry().get("full_investigation").steps[0].hitl,
    )
    for state in (finished, failed, waiting):
        store.save(state)

    assert store.reap() == []

    later = utcnow() + timedelta(seconds=120)
    assert sorted(store.reap(now=later)) == ["exec-done", "exec-failed"]
    assert store.get("exec-waiting") is waiting


def test_no_ttl_keeps_everything():
    store = InMemoryExecutionStore()
    state = make_state("exec-1")
    state.complete()
    store.save(state)

    assert store.reap(now=utcnow() + timedelta(days=365)) == []
    assert store.get("exec-1") is state
