"""
Signal Workflows.

Workflows related to signal management:
1. Create a signal
2. Create a folder from a signal
3. Full investigation: signal -> folder -> Bibob application
4. Add a signal to an existing folder
"""

from __future__ import annotations

from ..core.definitions import WorkflowDefinition

SIGNAL_TYPES = [
    "human-trafficking",
    "drug-trafficking",
    "fraud",
    "money-laundering",
    "bogus-scheme",
    "other",
]

_SIGNAL_INPUTS = [
    {
        "field": "description",
        "type": "string",
        "description": "Description of the suspicious activity",
    },
    {
        "field": "types",
        "type": "array",
        "description": "Type(s) of signal",
        "validation": {"enum": SIGNAL_TYPES},
    },
    {
        "field": "placeOfObservation",
        "type": "string",
        "description": "Location where the activity was observed",
    },
]


create_signal_workflow = WorkflowDefinition.model_validate(
    {
        "id": "signal_create",
        "name": "Create Signal",
        "description": "Create a new signal report in the system",
        "triggers": {
            "keywords": ["create signal", "new signal", "report signal", "add signal"],
            "intents": ["signal_creation"],
        },
        "required_inputs": _SIGNAL_INPUTS,
        "optional_inputs": [
            {
                "field": "receivedBy",
                "type": "string",
                "description": "How the signal was received",
                "default": "municipal-department",
            },
            {
                "field": "timeOfObservation",
                "type": "string",
                "description": "When the observation was made",
            },
        ],
        "requires_approval_to_start": True,
        "steps": [
            {
                "id": "create_signal",
                "name": "Create Signal",
                "tool": "signal_create",
                "inputs": {
                    "description": "$inputs.description",
                    "types": "$inputs.types",
                    "placeOfObservation": "$inputs.placeOfObservation",
                    "receivedBy": "$inputs.receivedBy",
                    "timeOfObservation": "$inputs.timeOfObservation",
                },
                "outputs": ["signalId", "signalNumber"],
            }
        ],
        "category": "signals",
        "tags": ["create", "signal"],
        "estimated_duration": "< 1 minute",
    }
)


signal_to_folder_workflow = WorkflowDefinition.model_validate(
    {
        "id": "signal_to_folder",
        "name": "Create Folder from Signal",
        "description": "Create a case folder from an existing signal",
        "triggers": {
            "keywords": ["folder from signal", "create folder from", "make folder", "open case"],
            "intents": ["folder_from_signal"],
        },
        "required_inputs": [
            {
                "field": "signalId",
                "type": "string",
                "description": "ID of the signal to create folder from",
            }
        ],
        "optional_inputs": [
            {"field": "folderName", "type": "string", "description": "Name for the folder"},
            {
                "field": "assignOwner",
                "type": "string",
                "description": "User ID to assign as owner",
            },
        ],
        "requires_approval_to_start": True,
        "steps": [
            {
                "id": "create_folder",
                "name": "Create Folder",
                "tool": "folder_create",
                "inputs": {
                    "name": "$inputs.folderName",
                    "signalIds": ["$inputs.signalId"],
                },
                "outputs": ["folderId", "folderName"],
            },
            {
                "id": "assign_owner",
                "name": "Assign Owner",
                "tool": "folder_assign_owner",
                "inputs": {
                    "folder_id": "$create_folder.folderId",
                    "user_id": "$inputs.assignOwner",
                },
                "condition": {"field": "inputs.assignOwner", "operator": "exists"},
                "optional": True,
            },
        ],
        "category": "folders",
        "tags": ["create", "folder", "signal"],
        "estimated_duration": "< 1 minute",
    }
)


full_investigation_workflow = WorkflowDefinition.model_validate(
    {
        "id": "full_investigation",
        "name": "Full Investigation Setup",
        "description": "Create a complete investigation: signal, folder, and Bibob application",
        "triggers": {
            "keywords": [
                "full investigation",
                "complete setup",
                "signal folder bibob",
                "start investigation",
            ],
            "intents": ["full_investigation"],
            "explicit": True,
        },
        "required_inputs": _SIGNAL_INPUTS,
        "optional_inputs": [
            {"field": "folderName", "type": "string", "description": "Name for the case folder"},
            {
                "field": "completeBibob",
                "type": "boolean",
                "description": "Whether to complete the Bibob application",
                "default": True,
            },
        ],
        "steps": [
            {
                "id": "create_signal",
                "name": "Create Signal",
                "description": "Create the initial signal report",
                "tool": "signal_create",
                "inputs": {
                    "description": "$inputs.description",
                    "types": "$inputs.types",
                    "placeOfObservation": "$inputs.placeOfObservation",
                    "receivedBy": "municipal-department",
                },
                "outputs": ["signalId", "signalNumber"],
                "hitl": {
                    "type": "approval",
                    "message": "Step 1/3: Create signal report. Proceed?",
                },
            },
            {
                "id": "create_folder",
                "name": "Create Case Folder",
                "description": "Create a folder and link the signal",
                "tool": "folder_create",
                "inputs": {
                    "name": "$inputs.folderName",
                    "signalIds": ["$create_signal.signalId"],
                },
                "outputs": ["folderId", "folderName"],
                "hitl": {
                    "type": "verification",
                    "message": "Step 2/3: Signal created (${create_signal.signalNumber}). Create folder?",
                },
            },
            {
                "id": "complete_bibob",
                "name": "Complete Bibob Application",
                "description": "Submit the Bibob integrity assessment application",
                "tool": "folder_submit_application",
                "inputs": {
                    "folder_id": "$create_folder.folderId",
                    "explanation": "Application submitted via automated workflow",
                    "criteria": [
                        {"id": "necessary_info", "isMet": True, "explanation": "Information provided"},
                        {"id": "annual_accounts", "isMet": True, "explanation": "To be verified"},
                        {"id": "budgets", "isMet": True, "explanation": "To be reviewed"},
                        {"id": "loan_agreement", "isMet": True, "explanation": "To be verified"},
                    ],
                },
                "outputs": ["applicationId", "status"],
                "condition": {"field": "inputs.completeBibob", "operator": "equals", "value": True},
                "hitl": {
                    "type": "approval",
                    "message": "Step 3/3: Folder ${create_folder.folderName} created. Complete Bibob application?",
                },
            },
        ],
        "category": "investigation",
        "tags": ["signal", "folder", "bibob", "full-workflow"],
        "estimated_duration": "2-3 minutes",
    }
)


add_signal_to_folder_workflow = WorkflowDefinition.model_validate(
    {
        "id": "add_signal_to_folder",
        "name": "Add Signal to Folder",
        "description": "Add an existing signal to an existing folder",
        "triggers": {
            "keywords": ["add signal to folder", "move signal", "link signal"],
            "intents": ["signal_to_folder"],
        },
        "required_inputs": [
            {"field": "signalId", "type": "string", "description": "ID of the signal to add"},
            {
                "field": "folderId",
                "type": "string",
                "description": "ID of the folder to add signal to",
            },
        ],
        "requires_approval_to_start": True,
        "steps": [
            {
                "id": "add_to_folder",
                "name": "Add Signal to Folder",
                "tool": "signal_add_to_folder",
                "inputs": {
                    "signal_id": "$inputs.signalId",
                    "folder_id": "$inputs.folderId",
                },
            }
        ],
        "category": "signals",
        "tags": ["signal", "folder", "link"],
        "estimated_duration": "< 1 minute",
    }
)


signal_workflows = [
    create_signal_workflow,
    signal_to_folder_workflow,
    full_investigation_workflow,
    add_signal_to_folder_workflow,
]
