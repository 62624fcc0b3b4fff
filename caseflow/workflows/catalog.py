"""All built-in workflow definitions."""

from __future__ import annotations

from typing import List

from ..core.definitions import WorkflowDefinition
from ..core.registry import WorkflowRegistry
from .folders import folder_workflows
from .signals import signal_workflows

all_workflows: List[WorkflowDefinition] = [*signal_workflows, *folder_workflows]


def create_workflow_registry() -> WorkflowRegistry:
    """Build a registry holding every built-in workflow."""
    return WorkflowRegistry(all_workflows)
