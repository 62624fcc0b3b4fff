"""Read-only lookup of workflow definitions."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from .definitions import WorkflowDefinition


class WorkflowRegistry:
    """Maps workflow ids to their definitions. Built once, never modified."""

    def __init__(self, workflows: Iterable[WorkflowDefinition]):
        self._workflows: Dict[str, WorkflowDefinition] = {}
        for workflow in workflows:
            if workflow.id in self._workflows:
                raise ValueError(f"Duplicate workflow id: {workflow.id}")
            self._workflows[workflow.id] = workflow

    def get(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        return self._workflows.get(workflow_id)

    def list(self) -> List[WorkflowDefinition]:
        return list(self._workflows.values())

    def find_by_keyword(self, text: str) -> List[WorkflowDefinition]:
        """Workflows with a trigger keyword contained in ``text`` (case-insensitive)."""
        return [wf for wf in self._workflows.values() if wf.matches_keyword(text)]

    def by_category(self, category: str) -> List[WorkflowDefinition]:
        return [wf for wf in self._workflows.values() if wf.category == category]

    def __contains__(self, workflow_id: object) -> bool:
        return workflow_id in self._workflows

    def __len__(self) -> int:
        return len(self._workflows)
