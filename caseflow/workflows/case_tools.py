"""
Case Management Tools.

In-process stand-ins for the case-management business logic that the
workflows drive: signals, folders and Bibob applications. Records are kept
in memory and every tool returns the identifiers later steps reference.
"""

from __future__ import annotations

import itertools
import uuid
from typing import Any, Dict, List, Optional

from ..core.tools import ToolRegistry, get_global_registry, tool


class CaseRecords:
    """In-memory signals and folders created by the tools."""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.signals: Dict[str, Dict[str, Any]] = {}
        self.folders: Dict[str, Dict[str, Any]] = {}
        self._signal_numbers = itertools.count(1)
        self._folder_numbers = itertools.count(1)

    def next_signal_number(self) -> str:
        return f"GCMP-{next(self._signal_numbers)}"

    def next_folder_number(self) -> int:
        return next(self._folder_numbers)

    def folder(self, folder_id: Optional[str]) -> Dict[str, Any]:
        if not folder_id:
            raise ValueError("folder_id is required")
        folder = self.folders.get(folder_id)
        if folder is None:
            raise LookupError(f"Folder not found: {folder_id}")
        return folder


records = CaseRecords()


def _require(params: Dict[str, Any], *names: str) -> None:
    missing = [name for name in names if params.get(name) in (None, "", [])]
    if missing:
        raise ValueError(f"Missing required parameter(s): {', '.join(missing)}")


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


# ============================================================================
# Signals
# ============================================================================


@tool(name="signal_create", description="Create a new signal report")
def create_signal(params: Dict[str, Any]) -> Dict[str, Any]:
    _require(params, "description", "types", "placeOfObservation")
    signal = {
        "signalId": _new_id("sig"),
        "signalNumber": records.next_signal_number(),
        "description": params["description"],
        "types": list(params["types"]),
        "placeOfObservation": params["placeOfObservation"],
        "receivedBy": params.get("receivedBy", "municipal-department"),
        "timeOfObservation": params.get("timeOfObservation"),
        "folderIds": [],
    }
    records.signals[signal["signalId"]] = signal
    return signal


@tool(name="signal_add_to_folder", description="Link an existing signal to a folder")
def add_signal_to_folder(params: Dict[str, Any]) -> Dict[str, Any]:
    _require(params, "signal_id", "folder_id")
    folder = records.folder(params["folder_id"])
    signal_id = params["signal_id"]
    if signal_id not in folder["signalIds"]:
        folder["signalIds"].append(signal_id)
    signal = records.signals.get(signal_id)
    if signal is not None and folder["folderId"] not in signal["folderIds"]:
        signal["folderIds"].append(folder["folderId"])
    return {"folderId": folder["folderId"], "signalId": signal_id}


# ============================================================================
# Folders
# ============================================================================


@tool(name="folder_create", description="Create a case folder, optionally linking signals")
def create_folder(params: Dict[str, Any]) -> Dict[str, Any]:
    number = records.next_folder_number()
    folder = {
        "folderId": _new_id("fld"),
        "folderName": params.get("name") or f"Folder {number}",
        "description": params.get("description"),
        "color": params.get("color"),
        "signalIds": [sid for sid in params.get("signalIds") or [] if sid],
        "ownerId": None,
        "practitionerIds": [],
        "contents": [],
        "application": None,
    }
    records.folders[folder["folderId"]] = folder
    return {
        "folderId": folder["folderId"],
        "folderName": folder["folderName"],
        "signalIds": folder["signalIds"],
    }


@tool(name="folder_assign_owner", description="Assign a user as folder owner")
def assign_owner(params: Dict[str, Any]) -> Dict[str, Any]:
    _require(params, "user_id")
    folder = records.folder(params.get("folder_id"))
    folder["ownerId"] = params["user_id"]
    return {"folderId": folder["folderId"], "ownerId": folder["ownerId"]}


@tool(name="folder_add_practitioner", description="Add practitioners to a folder")
def add_practitioners(params: Dict[str, Any]) -> Dict[str, Any]:
    _require(params, "user_ids")
    folder = records.folder(params.get("folder_id"))
    for user_id in params["user_ids"]:
        if user_id not in folder["practitionerIds"]:
            folder["practitionerIds"].append(user_id)
    return {"folderId": folder["folderId"], "practitionerIds": folder["practitionerIds"]}


def _add_content(content_type: str, param: str):
    def add(params: Dict[str, Any]) -> Dict[str, Any]:
        _require(params, param)
        folder = records.folder(params.get("folder_id"))
        item = {"type": content_type, "reference": params[param]}
        folder["contents"].append(item)
        return {"folderId": folder["folderId"], "added": item}

    add.__doc__ = f"Add a {content_type} to a folder"
    return add


for _content_type, _param in (
    ("organization", "organization_id"),
    ("person", "person_id"),
    ("address", "address_id"),
    ("finding", "finding"),
):
    tool(name=f"folder_add_{_content_type}")(_add_content(_content_type, _param))


# ============================================================================
# Bibob Applications
# ============================================================================

BIBOB_CRITERIA = ["necessary_info", "annual_accounts", "budgets", "loan_agreement"]


@tool(
    name="folder_get_application_status",
    description="Get the Bibob application status of a folder",
)
def get_application_status(params: Dict[str, Any]) -> Dict[str, Any]:
    folder = records.folder(params.get("folder_id"))
    application = folder["application"]
    if application is None:
        return {
            "folderId": folder["folderId"],
            "currentStatus": "draft",
            "pendingCriteria": list(BIBOB_CRITERIA),
        }
    met = {c.get("id") for c in application["criteria"] if c.get("isMet")}
    return {
        "folderId": folder["folderId"],
        "currentStatus": application["status"],
        "pendingCriteria": [c for c in BIBOB_CRITERIA if c not in met],
    }


@tool(
    name="folder_submit_application",
    description="Submit the Bibob integrity assessment application",
)
def submit_application(params: Dict[str, Any]) -> Dict[str, Any]:
    folder = records.folder(params.get("folder_id"))
    if folder["application"] is not None:
        raise ValueError(f"Application already submitted for folder {folder['folderId']}")
    criteria: List[Dict[str, Any]] = list(params.get("criteria") or [])
    folder["application"] = {
        "applicationId": _new_id("app"),
        "status": "submitted",
        "explanation": params.get("explanation"),
        "criteria": criteria,
    }
    return {
        "applicationId": folder["application"]["applicationId"],
        "status": "submitted",
        "folderId": folder["folderId"],
    }


CASE_TOOLS = [
    "signal_create",
    "signal_add_to_folder",
    "folder_create",
    "folder_assign_owner",
    "folder_add_practitioner",
    "folder_add_organization",
    "folder_add_person",
    "folder_add_address",
    "folder_add_finding",
    "folder_get_application_status",
    "folder_submit_application",
]


def register_case_tools(registry: Optional[ToolRegistry] = None) -> ToolRegistry:
    """
    Make the case tools available in ``registry``.

    The tools register themselves in the global registry on import; other
    registries receive copies of those entries.
    """
    source = get_global_registry()
    target = registry or source
    if target is not source:
        descriptions = {t["name"]: t["description"] for t in source.list_tools()}
        for name in CASE_TOOLS:
            target.add(source.get(name), name=name, description=descriptions.get(name))
    return target
