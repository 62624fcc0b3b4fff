import pytest
from pydantic import ValidationError

from caseflow.core.definitions import WorkflowDefinition
from caseflow.core.references import Scope
from caseflow.core.registry import WorkflowRegistry
from caseflow.workflows.catalog import all_workflows, create_workflow_registry


def definition(steps, **extra):
    return WorkflowDefinition.model_validate(
        {"id": "wf", "name": "Workflow", "description": "test", "steps": steps, **extra}
    )


def test_catalog_loads_every_workflow():
    registry = create_workflow_registry()
    assert len(registry) == len(all_workflows) == 8
    assert registry.get("signal_create").name == "Create Signal"
    assert registry.get("nope") is None
    assert "full_investigation" in registry


def test_duplicate_step_ids_rejected():
    with pytest.raises(ValidationError, match="Duplicate step id"):
        definition(
            [
                {"id": "a", "name": "A", "tool": "t"},
                {"id": "a", "name": "A again", "tool": "t"},
            ]
        )


def test_reference_to_unknown_step_rejected():
    with pytest.raises(ValidationError, match="unknown namespace"):
        definition(
            [{"id": "a", "name": "A", "tool": "t", "inputs": {"x": "$ghost.id"}}]
        )


def test_message_reference_to_unknown_step_rejected():
    with pytest.raises(ValidationError, match="unknown namespace"):
        definition(
            [
                {
                    "id": "a",
                    "name": "A",
                    "tool": "t",
                    "hitl": {"type": "approval", "message": "Use ${ghost.id}?"},
                }
            ]
        )


def test_duplicate_workflow_ids_rejected():
    workflow = definition([{"id": "a", "name": "A", "tool": "t"}])
    with pytest.raises(ValueError, match="Duplicate workflow id"):
        WorkflowRegistry([workflow, workflow])


def test_definitions_are_immutable():
    workflow = create_workflow_registry().get("signal_create")
    with pytest.raises(ValidationError):
        workflow.name = "Renamed"


def test_find_by_keyword_is_case_insensitive():
    registry = create_workflow_registry()
    ids = [wf.id for wf in registry.find_by_keyword("Please CREATE SIGNAL for me")]
    assert ids == ["signal_create"]
    assert registry.find_by_keyword("nothing relevant here") == []


def test_find_by_keyword_can_match_several():
    registry = create_workflow_registry()
    ids = {wf.id for wf in registry.find_by_keyword("add signal to folder")}
    assert ids == {"signal_create", "add_signal_to_folder"}


def test_by_category():
    registry = create_workflow_registry()
    ids = {wf.id for wf in registry.by_category("signals")}
    assert ids == {"signal_create", "add_signal_to_folder"}


def test_missing_inputs_in_declared_order():
    workflow = create_workflow_registry().get("signal_create")
    assert workflow.missing_inputs({}) == ["description", "types", "placeOfObservation"]
    assert workflow.missing_inputs({"types": [], "description": "x"}) == [
        "types",
        "placeOfObservation",
    ]


def test_invalid_inputs_use_validation_rules():
    workflow = create_workflow_registry().get("signal_create")
    invalid = workflow.invalid_inputs({"types": ["fraud", "jaywalking"]})
    assert list(invalid) == ["types"]
    assert "must be one of" in invalid["types"]
    assert workflow.invalid_inputs({"types": ["fraud"]}) == {}


def test_numeric_and_pattern_validation():
    workflow = definition(
        [{"id": "a", "name": "A", "tool": "t"}],
        required_inputs=[
            {"field": "n", "type": "number", "description": "n", "validation": {"min": 1, "max": 3}},
            {"field": "code", "type": "string", "description": "c", "validation": {"pattern": "[A-Z]{3}"}},
        ],
    )
    assert workflow.invalid_inputs({"n": 2, "code": "ABC"}) == {}
    invalid = workflow.invalid_inputs({"n": 5, "code": "abc"})
    assert invalid == {"n": "must be at most 3", "code": "must match pattern [A-Z]{3}"}


def test_with_defaults_fills_optional_inputs():
    workflow = create_workflow_registry().get("signal_create")
    merged = workflow.with_defaults({"description": "x"})
    assert merged["receivedBy"] == "municipal-department"
    assert "timeOfObservation" not in merged
    assert workflow.with_defaults({"receivedBy": "phone"})["receivedBy"] == "phone"


def test_step_resolves_its_own_inputs():
    workflow = create_workflow_registry().get("full_investigation")
    step = workflow.steps[1]
    scope = Scope(
        inputs={"folderName": "Main Street"},
        outputs={"create_signal": {"signalId": "sig-1"}},
        context={},
    )
    assert step.resolve_inputs(scope) == {"name": "Main Street", "signalIds": ["sig-1"]}


@pytest.mark.parametrize(
    "step_id", ["inputs", "context", "input_collection", "workflow_start", "workflow_complete"]
)
def test_reserved_step_ids_rejected(step_id):
    with pytest.raises(ValidationError, match="reserved"):
        definition(
            [
                {
                    "id": step_id,
                    "name": "Reserved",
                    "tool": "t",
                    "hitl": {"type": "approval", "message": "Go?"},
                }
            ]
        )


def test_inputs_must_match_declared_type():
    workflow = create_workflow_registry().get("signal_create")
    invalid = workflow.invalid_inputs(
        {"description": 42, "types": "fraud", "placeOfObservation": "Main Street"}
    )
    assert invalid == {
        "description": "must be of type string",
        "types": "must be of type array",
    }


def test_number_type_rejects_booleans():
    workflow = definition(
        [{"id": "a", "name": "A", "tool": "t"}],
        required_inputs=[{"field": "n", "type": "number", "description": "n"}],
    )
    assert workflow.invalid_inputs({"n": True}) == {"n": "must be of type number"}
    assert workflow.invalid_inputs({"n": 1.5}) == {}
