"""
Tool definitions for the Splitwise MCP surface.

Remote tools are described as data; ``ToolExecutor`` runs any of them. Local
tools (authentication helpers and diagnostics) only declare their schema here.
"""

from __future__ import annotations

import string
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

SESSION_ID_PROPERTY: Dict[str, Any] = {
    "type": "string",
    "description": "Identifier used when authorizing with splitwise_authenticate.",
}


def _schema(
    properties: Optional[Dict[str, Any]] = None,
    required: tuple[str, ...] = (),
    *,
    session_required: bool = True,
) -> Dict[str, Any]:
    props: Dict[str, Any] = {"session_id": SESSION_ID_PROPERTY}
    props.update(properties or {})
    required_fields = (["session_id"] if session_required else []) + list(required)
    schema: Dict[str, Any] = {"type": "object", "properties": props}
    if required_fields:
        schema["required"] = required_fields
    return schema


def _integer(description: str) -> Dict[str, Any]:
    return {"type": "integer", "description": description}


def _string(description: str) -> Dict[str, Any]:
    return {"type": "string", "description": description}


_EXPENSE_USERS = {
    "type": "array",
    "description": "Per-user shares; when given, paid and owed shares must each sum to cost.",
    "items": {
        "type": "object",
        "properties": {
            "user_id": {"type": "integer"},
            "email": {"type": "string"},
            "first_name": {"type": "string"},
            "last_name": {"type": "string"},
            "paid_share": {"type": "string"},
            "owed_share": {"type": "string"},
        },
    },
}


def _expense_data(*, cost_required: bool) -> Dict[str, Any]:
    schema: Dict[str, Any] = {
        "type": "object",
        "properties": {
            "cost": _string("Total cost as a decimal string, e.g. '25.00'."),
            "description": _string("Short description of the expense."),
            "date": _string("ISO 8601 date the expense took place."),
            "currency_code": _string("Currency code, e.g. USD."),
            "group_id": _integer("Group to record the expense in (0 for none)."),
            "split_equally": {"type": "boolean"},
            "users": _EXPENSE_USERS,
            "payment": {"type": "boolean"},
            "details": _string("Free-form notes."),
            "category_id": {"type": "integer"},
            "repeat_interval": _string("never, weekly, fortnightly, monthly or yearly."),
            "email_reminder": {"type": "boolean"},
            "email_reminder_in_advance": {"type": "integer"},
        },
    }
    if cost_required:
        schema["required"] = ["cost", "description"]
    return schema


@dataclass(frozen=True)
class EndpointDescriptor:
    """One remote Splitwise endpoint exposed as a tool."""

    name: str
    description: str
    method: str
    path: str
    input_schema: Dict[str, Any]
    result_key: Optional[str] = None
    success_message: Optional[str] = None
    payload_argument: Optional[str] = None
    field_map: Mapping[str, str] = field(default_factory=dict)
    action: str = ""
    current_user_default: Optional[str] = None

    @property
    def path_arguments(self) -> tuple[str, ...]:
        return tuple(
            name for _, name, _, _ in string.Formatter().parse(self.path) if name
        )

    def as_tool(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


ENDPOINTS: tuple[EndpointDescriptor, ...] = (
    EndpointDescriptor(
        name="splitwise_get_current_user",
        description="Get information about the authenticated Splitwise user.",
        method="GET",
        path="/get_current_user",
        input_schema=_schema(),
        result_key="user",
        action="getting current user",
    ),
    EndpointDescriptor(
        name="splitwise_update_user",
        description="Update the authenticated user's profile. Defaults to the current user.",
        method="POST",
        path="/update_user/{user_id}",
        input_schema=_schema(
            {
                "user_id": _integer("Splitwise user id; omit to update yourself."),
                "user_data": {
                    "type": "object",
                    "properties": {
                        "first_name": {"type": "string"},
                        "last_name": {"type": "string"},
                        "email": {"type": "string"},
                        "password": {"type": "string"},
                        "locale": {"type": "string"},
                        "date_format": {"type": "string"},
                        "default_currency": {"type": "string"},
                        "timezone": {"type": "string"},
                    },
                },
            },
            ("user_data",),
        ),
        result_key="user",
        payload_argument="user_data",
        action="updating user",
        current_user_default="user_id",
    ),
    EndpointDescriptor(
        name="splitwise_get_groups",
        description="List the groups the current user belongs to.",
        method="GET",
        path="/get_groups",
        input_schema=_schema(),
        result_key="groups",
        action="getting groups",
    ),
    EndpointDescriptor(
        name="splitwise_get_group",
        description="Get a single group with its members and balances.",
        method="GET",
        path="/get_group/{group_id}",
        input_schema=_schema({"group_id": _integer("Splitwise group id.")}, ("group_id",)),
        result_key="group",
        action="getting group",
    ),
    EndpointDescriptor(
        name="splitwise_create_group",
        description="Create a new group.",
        method="POST",
        path="/create_group",
        input_schema=_schema(
            {
                "group_data": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string"},
                        "group_type": {"type": "string"},
                        "simplify_by_default": {"type": "boolean"},
                        "whiteboard": {"type": "string"},
                    },
                    "required": ["name"],
                }
            },
            ("group_data",),
        ),
        result_key="group",
        payload_argument="group_data",
        action="creating group",
    ),
    EndpointDescriptor(
        name="splitwise_delete_group",
        description="Delete a group (it can be restored with splitwise_undelete_group).",
        method="POST",
        path="/delete_group/{group_id}",
        input_schema=_schema({"group_id": _integer("Splitwise group id.")}, ("group_id",)),
        success_message="Group deleted successfully",
        action="deleting group",
    ),
    EndpointDescriptor(
        name="splitwise_undelete_group",
        description="Restore a deleted group.",
        method="POST",
        path="/undelete_group/{group_id}",
        input_schema=_schema({"group_id": _integer("Splitwise group id.")}, ("group_id",)),
        success_message="Group undeleted successfully",
        action="undeleting group",
    ),
    EndpointDescriptor(
        name="splitwise_add_user_to_group",
        description="Add a user to a group by e-mail address.",
        method="POST",
        path="/add_user_to_group",
        input_schema=_schema(
            {
                "group_id": _integer("Splitwise group id."),
                "user_email": _string("E-mail of the person to add."),
                "first_name": {"type": "string"},
                "last_name": {"type": "string"},
            },
            ("group_id", "user_email"),
        ),
        success_message="User added to group successfully",
        field_map={"user_email": "email"},
        action="adding user to group",
    ),
    EndpointDescriptor(
        name="splitwise_remove_user_from_group",
        description="Remove a user from a group.",
        method="POST",
        path="/remove_user_from_group",
        input_schema=_schema(
            {
                "group_id": _integer("Splitwise group id."),
                "user_id": _integer("Splitwise user id to remove."),
            },
            ("group_id", "user_id"),
        ),
        success_message="User removed from group successfully",
        action="removing user from group",
    ),
    EndpointDescriptor(
        name="splitwise_get_friends",
        description="List the current user's friends.",
        method="GET",
        path="/get_friends",
        input_schema=_schema(),
        result_key="friends",
        action="getting friends",
    ),
    EndpointDescriptor(
        name="splitwise_get_friend",
        description="Get a single friend.",
        method="GET",
        path="/get_friend/{friend_id}",
        input_schema=_schema({"friend_id": _integer("Splitwise user id of the friend.")}, ("friend_id",)),
        result_key="friend",
        action="getting friend",
    ),
    EndpointDescriptor(
        name="splitwise_get_expense",
        description="Get a single expense.",
        method="GET",
        path="/get_expense/{expense_id}",
        input_schema=_schema({"expense_id": _integer("Splitwise expense id.")}, ("expense_id",)),
        result_key="expense",
        action="getting expense",
    ),
    EndpointDescriptor(
        name="splitwise_get_expenses",
        description="List expenses, optionally filtered by group, friend or date range.",
        method="GET",
        path="/get_expenses",
        input_schema=_schema(
            {
                "group_id": {"type": "integer"},
                "friend_id": {"type": "integer"},
                "dated_after": {"type": "string"},
                "dated_before": {"type": "string"},
                "updated_after": {"type": "string"},
                "updated_before": {"type": "string"},
                "limit": {"type": "integer"},
                "offset": {"type": "integer"},
            }
        ),
        result_key="expenses",
        action="getting expenses",
    ),
    EndpointDescriptor(
        name="splitwise_create_expense",
        description="Create an expense, split equally within a group or by explicit shares.",
        method="POST",
        path="/create_expense",
        input_schema=_schema({"expense_data": _expense_data(cost_required=True)}, ("expense_data",)),
        result_key="expenses",
        payload_argument="expense_data",
        action="creating expense",
    ),
    EndpointDescriptor(
        name="splitwise_update_expense",
        description="Update an existing expense.",
        method="POST",
        path="/update_expense/{expense_id}",
        input_schema=_schema(
            {
                "expense_id": _integer("Splitwise expense id."),
                "expense_data": _expense_data(cost_required=False),
            },
            ("expense_id", "expense_data"),
        ),
        result_key="expenses",
        payload_argument="expense_data",
        action="updating expense",
    ),
    EndpointDescriptor(
        name="splitwise_delete_expense",
        description="Delete an expense (it can be restored with splitwise_undelete_expense).",
        method="POST",
        path="/delete_expense/{expense_id}",
        input_schema=_schema({"expense_id": _integer("Splitwise expense id.")}, ("expense_id",)),
        success_message="Expense deleted successfully",
        action="deleting expense",
    ),
    EndpointDescriptor(
        name="splitwise_undelete_expense",
        description="Restore a deleted expense.",
        method="POST",
        path="/undelete_expense/{expense_id}",
        input_schema=_schema({"expense_id": _integer("Splitwise expense id.")}, ("expense_id",)),
        success_message="Expense undeleted successfully",
        action="undeleting expense",
    ),
    EndpointDescriptor(
        name="splitwise_get_notifications",
        description="List recent activity on the account.",
        method="GET",
        path="/get_notifications",
        input_schema=_schema({"limit": {"type": "integer"}, "offset": {"type": "integer"}}),
        result_key="notifications",
        action="getting notifications",
    ),
)

LOCAL_TOOLS: tuple[Dict[str, Any], ...] = (
    {
        "name": "splitwise_authenticate",
        "description": (
            "Start Splitwise authorization. Returns a URL to open in a browser; "
            "omit session_id to get a new one."
        ),
        "inputSchema": _schema(session_required=False),
    },
    {
        "name": "splitwise_check_auth",
        "description": "Check whether a session has a valid Splitwise authorization.",
        "inputSchema": _schema(),
    },
    {
        "name": "splitwise_logout",
        "description": "Forget the stored Splitwise authorization for a session.",
        "inputSchema": _schema(),
    },
    {
        "name": "splitwise_whoami",
        "description": "Diagnostic: show the configured caller phone number and session details.",
        "inputSchema": _schema(session_required=False),
    },
)

ENDPOINTS_BY_NAME: Dict[str, EndpointDescriptor] = {endpoint.name: endpoint for endpoint in ENDPOINTS}
LOCAL_TOOL_NAMES = frozenset(tool["name"] for tool in LOCAL_TOOLS)

TOOL_DEFINITIONS: list[Dict[str, Any]] = [*LOCAL_TOOLS, *(e.as_tool() for e in ENDPOINTS)]


def get_tool_by_name(name: str) -> Optional[Dict[str, Any]]:
    for tool in TOOL_DEFINITIONS:
        if tool["name"] == name:
            return tool
    return None


__all__ = [
    "ENDPOINTS",
    "ENDPOINTS_BY_NAME",
    "EndpointDescriptor",
    "LOCAL_TOOLS",
    "LOCAL_TOOL_NAMES",
    "TOOL_DEFINITIONS",
    "get_tool_by_name",
]
