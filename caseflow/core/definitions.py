"""
Workflow Definitions.

Workflows are declared as code: each definition is an immutable pydantic
model listing its inputs, its ordered steps and the human checkpoints in
between. Definitions are validated when they are built, so a typo in a step
reference or a condition operator fails at import time rather than halfway
through an execution.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional

from pydantic import BaseModel, Field, PrivateAttr, model_validator

from .references import (
    CONTEXT,
    INPUTS,
    MessageTemplate,
    Reference,
    Scope,
    TemplateNode,
    compile_template,
)


# Pseudo step ids for checkpoints that do not belong to a step.
INPUT_COLLECTION = "input_collection"
WORKFLOW_START = "workflow_start"
WORKFLOW_COMPLETE = "workflow_complete"

RESERVED_STEP_IDS = (INPUTS, CONTEXT, INPUT_COLLECTION, WORKFLOW_START, WORKFLOW_COMPLETE)


class CheckpointType(str, Enum):
    """Kinds of human-in-the-loop checkpoints."""

    APPROVAL = "approval"
    INPUT = "input"
    VERIFICATION = "verification"
    REVIEW = "review"


class ConditionOperator(str, Enum):
    """Operators a step condition can use."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"
    CONTAINS = "contains"
    GT = "gt"
    LT = "lt"


class InputType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"

    def accepts(self, value: Any) -> bool:
        if self is InputType.STRING:
            return isinstance(value, str)
        if self is InputType.NUMBER:
            return isinstance(value, (int, float)) and not isinstance(value, bool)
        if self is InputType.BOOLEAN:
            return isinstance(value, bool)
        if self is InputType.ARRAY:
            return isinstance(value, list)
        return isinstance(value, Mapping)


def is_blank(value: Any) -> bool:
    """True for values that do not count as a supplied input."""
    return value is None or value == "" or (isinstance(value, list) and not value)


class HITLCheckpoint(BaseModel):
    """A point where execution waits for a human before running a step."""

    type: CheckpointType
    message: str
    required: bool = True
    fields: Optional[List[str]] = None

    model_config = {"frozen": True}

    _template: MessageTemplate = PrivateAttr()

    def model_post_init(self, __context: Any) -> None:
        self._template = MessageTemplate.parse(self.message)

    def render(self, scope: Scope) -> str:
        return self._template.render(scope)

    def references(self) -> Iterator[Reference]:
        return self._template.references()


class StepCondition(BaseModel):
    """Run a step only when ``field`` satisfies ``operator``."""

    field: str
    operator: ConditionOperator
    value: Any = None

    model_config = {"frozen": True}

    @property
    def reference(self) -> Reference:
        return Reference.parse(self.field)


class InputValidation(BaseModel):
    enum: Optional[List[str]] = None
    pattern: Optional[str] = None
    min: Optional[float] = None
    max: Optional[float] = None

    model_config = {"frozen": True}

    def check(self, value: Any) -> Optional[str]:
        """Return a description of the first violated rule, if any."""
        values = value if isinstance(value, list) else [value]
        if self.enum is not None:
            invalid = [v for v in values if v not in self.enum]
            if invalid:
                return f"must be one of: {', '.join(self.enum)}"
        if self.pattern is not None:
            for v in values:
                if not isinstance(v, str) or not re.fullmatch(self.pattern, v):
                    return f"must match pattern {self.pattern}"
        if self.min is not None or self.max is not None:
            for v in values:
                if isinstance(v, bool) or not isinstance(v, (int, float)):
                    return "must be a number"
                if self.min is not None and v < self.min:
                    return f"must be at least {self.min:g}"
                if self.max is not None and v > self.max:
                    return f"must be at most {self.max:g}"
        return None


class InputSpec(BaseModel):
    """A required workflow input."""

    field: str
    type: InputType
    description: str
    validation: Optional[InputValidation] = None

    model_config = {"frozen": True}


class OptionalInput(BaseModel):
    """An optional workflow input, with a default applied when absent."""

    field: str
    type: InputType
    description: str
    default: Any = None

    model_config = {"frozen": True}


class WorkflowTriggers(BaseModel):
    keywords: List[str] = Field(default_factory=list)
    intents: List[str] = Field(default_factory=list)
    explicit: bool = False

    model_config = {"frozen": True}


class WorkflowStep(BaseModel):
    """A single tool invocation within a workflow."""

    id: str
    name: str
    description: Optional[str] = None
    tool: str
    inputs: Dict[str, Any] = Field(default_factory=dict)
    outputs: Optional[List[str]] = None
    hitl: Optional[HITLCheckpoint] = None
    condition: Optional[StepCondition] = None
    optional: bool = False
    retry_on_failure: bool = False

    model_config = {"frozen": True}

    _template: TemplateNode = PrivateAttr()

    def model_post_init(self, __context: Any) -> None:
        self._template = compile_template(self.inputs)

    def resolve_inputs(self, scope: Scope) -> Dict[str, Any]:
        """Materialize this step's tool parameters."""
        return self._template.materialize(scope)

    def references(self) -> Iterator[Reference]:
        yield from self._template.references()
        if self.hitl is not None:
            yield from self.hitl.references()
        if self.condition is not None:
            yield self.condition.reference


class WorkflowDefinition(BaseModel):
    """
    An immutable workflow definition.

    Steps run in order. Each may be gated by a condition and by a
    human checkpoint; references between steps are checked here.
    """

    id: str
    name: str
    description: str
    version: str = "1.0.0"
    triggers: WorkflowTriggers = Field(default_factory=WorkflowTriggers)
    required_inputs: List[InputSpec] = Field(default_factory=list)
    optional_inputs: List[OptionalInput] = Field(default_factory=list)
    steps: List[WorkflowStep]
    requires_approval_to_start: bool = False
    requires_approval_to_complete: bool = False
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    estimated_duration: Optional[str] = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_steps(self) -> "WorkflowDefinition":
        seen: set[str] = set()
        for step in self.steps:
            if step.id in seen:
                raise ValueError(f"Duplicate step id: {step.id}")
            if step.id in RESERVED_STEP_IDS:
                raise ValueError(f"Step id is reserved: {step.id}")
            seen.add(step.id)

        namespaces = seen | {INPUTS, CONTEXT}
        for step in self.steps:
            for ref in step.references():
                if ref.namespace not in namespaces:
                    raise ValueError(
                        f"Step '{step.id}' references unknown namespace: {ref}"
                    )
        return self

    def step_index(self, step_id: str) -> Optional[int]:
        for index, step in enumerate(self.steps):
            if step.id == step_id:
                return index
        return None

    def missing_inputs(self, inputs: Mapping[str, Any]) -> List[str]:
        """Required input fields that are absent or blank, in declared order."""
        return [spec.field for spec in self.required_inputs if is_blank(inputs.get(spec.field))]

    def invalid_inputs(self, inputs: Mapping[str, Any]) -> Dict[str, str]:
        """Supplied required inputs of the wrong type or breaking their validation rules."""
        invalid: Dict[str, str] = {}
        for spec in self.required_inputs:
            value = inputs.get(spec.field)
            if is_blank(value):
                continue
            if not spec.type.accepts(value):
                invalid[spec.field] = f"must be of type {spec.type.value}"
                continue
            if spec.validation is None:
                continue
            problem = spec.validation.check(value)
            if problem:
                invalid[spec.field] = problem
        return invalid

    def with_defaults(self, inputs: Mapping[str, Any]) -> Dict[str, Any]:
        """Copy of ``inputs`` with optional-input defaults filled in."""
        merged = dict(inputs)
        for spec in self.optional_inputs:
            if spec.default is not None and is_blank(merged.get(spec.field)):
                merged[spec.field] = spec.default
        return merged

    def matches_keyword(self, text: str) -> bool:
        lowered = text.lower()
        return any(keyword.lower() in lowered for keyword in self.triggers.keywords)
