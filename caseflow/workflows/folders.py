"""
Folder Workflows.

Workflows for folder (case) management: creating folders, assigning the
team, completing the Bibob application and adding content.
"""

from __future__ import annotations

from typing import Any, Dict

from ..core.definitions import WorkflowDefinition

CONTENT_TYPES = ["organization", "person", "address", "finding"]


create_folder_workflow = WorkflowDefinition.model_validate(
    {
        "id": "folder_create",
        "name": "Create Folder",
        "description": "Create a new case folder",
        "triggers": {
            "keywords": ["create folder", "new folder", "new case", "open folder"],
            "intents": ["folder_creation"],
        },
        "required_inputs": [
            {"field": "name", "type": "string", "description": "Name of the folder"}
        ],
        "optional_inputs": [
            {"field": "description", "type": "string", "description": "Folder description"},
            {"field": "signalIds", "type": "array", "description": "Signals to include in folder"},
            {"field": "color", "type": "string", "description": "Folder color (hex)"},
        ],
        "requires_approval_to_start": True,
        "steps": [
            {
                "id": "create_folder",
                "name": "Create Folder",
                "tool": "folder_create",
                "inputs": {
                    "name": "$inputs.name",
                    "description": "$inputs.description",
                    "signalIds": "$inputs.signalIds",
                    "color": "$inputs.color",
                },
                "outputs": ["folderId", "folderName"],
            }
        ],
        "category": "folders",
        "tags": ["create", "folder"],
        "estimated_duration": "< 1 minute",
    }
)


assign_team_workflow = WorkflowDefinition.model_validate(
    {
        "id": "folder_assign_team",
        "name": "Assign Team to Folder",
        "description": "Assign owner and practitioners to a folder",
        "triggers": {
            "keywords": ["assign team", "add team", "assign owner", "add practitioner"],
            "intents": ["team_assignment"],
        },
        "required_inputs": [
            {"field": "folderId", "type": "string", "description": "ID of the folder"}
        ],
        "optional_inputs": [
            {"field": "ownerId", "type": "string", "description": "User ID for folder owner"},
            {
                "field": "practitionerIds",
                "type": "array",
                "description": "User IDs for practitioners",
            },
        ],
        "requires_approval_to_start": True,
        "steps": [
            {
                "id": "assign_owner",
                "name": "Assign Owner",
                "tool": "folder_assign_owner",
                "inputs": {"folder_id": "$inputs.folderId", "user_id": "$inputs.ownerId"},
                "condition": {"field": "inputs.ownerId", "operator": "exists"},
            },
            {
                "id": "add_practitioners",
                "name": "Add Practitioners",
                "tool": "folder_add_practitioner",
                "inputs": {
                    "folder_id": "$inputs.folderId",
                    "user_ids": "$inputs.practitionerIds",
                },
                "condition": {"field": "inputs.practitionerIds", "operator": "exists"},
                "optional": True,
                "hitl": {
                    "type": "verification",
                    "message": "Add these practitioners to the folder?",
                    "required": False,
                },
            },
        ],
        "category": "folders",
        "tags": ["folder", "team", "assignment"],
        "estimated_duration": "< 1 minute",
    }
)


complete_bibob_workflow = WorkflowDefinition.model_validate(
    {
        "id": "bibob_complete",
        "name": "Complete Bibob Application",
        "description": "Complete the Bibob integrity assessment for a folder",
        "triggers": {
            "keywords": [
                "complete bibob",
                "bibob application",
                "submit application",
                "integrity assessment",
            ],
            "intents": ["bibob_completion"],
        },
        "required_inputs": [
            {"field": "folderId", "type": "string", "description": "ID of the folder"}
        ],
        "optional_inputs": [
            {
                "field": "explanation",
                "type": "string",
                "description": "Explanation for the application",
            },
            {"field": "criteria", "type": "array", "description": "Criteria assessments"},
        ],
        "requires_approval_to_start": True,
        "steps": [
            {
                "id": "review_criteria",
                "name": "Review Criteria",
                "description": "Show criteria for user review before submission",
                "tool": "folder_get_application_status",
                "inputs": {"folder_id": "$inputs.folderId"},
                "outputs": ["currentStatus", "pendingCriteria"],
                "hitl": {
                    "type": "review",
                    "message": "Please review the current application status before proceeding.",
                    "required": False,
                },
            },
            {
                "id": "complete_application",
                "name": "Complete Application",
                "tool": "folder_submit_application",
                "inputs": {
                    "folder_id": "$inputs.folderId",
                    "explanation": "$inputs.explanation",
                    "criteria": "$inputs.criteria",
                },
                "outputs": ["applicationId", "status"],
                "hitl": {
                    "type": "approval",
                    "message": (
                        "Current status: ${review_criteria.currentStatus}. Submit the Bibob "
                        "application with these criteria? This action cannot be undone."
                    ),
                },
            },
        ],
        "category": "folders",
        "tags": ["folder", "bibob", "application"],
        "estimated_duration": "1-2 minutes",
    }
)


def _content_step(content_type: str, tool: str, param: str) -> Dict[str, Any]:
    label = content_type.capitalize()
    return {
        "id": f"add_{content_type}",
        "name": f"Add {label}",
        "tool": tool,
        "inputs": {"folder_id": "$inputs.folderId", param: "$inputs.contentId"},
        "condition": {"field": "inputs.contentType", "operator": "equals", "value": content_type},
        "hitl": {
            "type": "approval",
            "message": f"Add this {content_type} to the folder?",
        },
    }


add_folder_content_workflow = WorkflowDefinition.model_validate(
    {
        "id": "folder_add_content",
        "name": "Add Content to Folder",
        "description": "Add organizations, people, addresses, or findings to a folder",
        "triggers": {
            "keywords": [
                "add to folder",
                "add organization",
                "add person",
                "add address",
                "add finding",
            ],
            "intents": ["folder_content"],
        },
        "required_inputs": [
            {"field": "folderId", "type": "string", "description": "ID of the folder"},
            {
                "field": "contentType",
                "type": "string",
                "description": "Type of content to add",
                "validation": {"enum": CONTENT_TYPES},
            },
            {
                "field": "contentId",
                "type": "string",
                "description": "ID of the content to add (or details for new)",
            },
        ],
        "steps": [
            _content_step("organization", "folder_add_organization", "organization_id"),
            _content_step("person", "folder_add_person", "person_id"),
            _content_step("address", "folder_add_address", "address_id"),
            _content_step("finding", "folder_add_finding", "finding"),
        ],
        "category": "folders",
        "tags": ["folder", "content"],
        "estimated_duration": "< 1 minute",
    }
)


folder_workflows = [
    create_folder_workflow,
    assign_team_workflow,
    complete_bibob_workflow,
    add_folder_content_workflow,
]
