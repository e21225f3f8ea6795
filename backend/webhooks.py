# ============================================================
# webhooks.py - Call-Event Dialect Adapter
# ============================================================
# The voice agent reaches us through more than one webhook shape.
# Everything is normalized here into a CallMessage, and tool-call
# attempts into a ToolInvocation, before the router sees it.
# ============================================================

from typing import Any

from errors import ValidationError
from models import CallMessage, ToolCallId, ToolInvocation

TOOL_CALL_ATTEMPT = "tool-call-attempt"
FLAT_TOOL_ATTEMPTED = "tool.attempted"


def _first(*values):
    for value in values:
        if value:
            return value
    return None


def _from_flat_event(raw: dict[str, Any]) -> dict[str, Any] | None:
    """
    Webhook-manager dialect:
    {event: "tool.attempted", data: {tool_name, tool_id, parameters},
     room_name, user: {id} | user_id, user_data: {...}, timestamp}
    """
    if str(raw.get("event") or "") != FLAT_TOOL_ATTEMPTED:
        return None

    data = raw.get("data") or {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid event structure: data must be an object")
    user_data = _first(raw.get("user_data_dict"), raw.get("user_data"), raw.get("userData"))
    if not isinstance(user_data, dict):
        user_data = {}
    user = raw.get("user") if isinstance(raw.get("user"), dict) else {}

    call_id = _first(
        raw.get("room_name"), raw.get("roomName"),
        user_data.get("room_name"), user_data.get("roomName"),
    )
    user_id = _first(
        user.get("id"), raw.get("user_id"), raw.get("userId"),
        user_data.get("user_id"), user_data.get("userId"),
    )
    assistant_name = _first(data.get("agent_name"), raw.get("assistant_name"))

    return {
        "type": TOOL_CALL_ATTEMPT,
        "tool_call": {
            "name": data.get("tool_name"),
            "id": data.get("tool_id"),
            "parameters": data.get("parameters") or {},
            "timestamp": raw.get("timestamp"),
        },
        "call": {
            "id": call_id,
            "user": {"id": str(user_id)} if user_id else None,
            "assistant": {"name": str(assistant_name)} if assistant_name else None,
        },
        "timestamp": raw.get("timestamp"),
    }


def normalize_call_event(raw: Any) -> CallMessage | None:
    """
    Normalize any supported dialect into a CallMessage.

    Returns None when the payload matches no dialect.
    """
    if not isinstance(raw, dict):
        return None

    message = raw.get("message")
    if message is None:
        message = _from_flat_event(raw)
    if not isinstance(message, dict):
        return None

    try:
        return CallMessage.model_validate(message)
    except ValueError as e:
        raise ValidationError(f"Invalid event structure: {e}")


def is_tool_call(message: CallMessage) -> bool:
    return message.type == TOOL_CALL_ATTEMPT and message.tool_call is not None


def to_invocation(message: CallMessage) -> ToolInvocation:
    """Build the internal ToolInvocation from a tool-call-attempt message."""
    tool_call = message.tool_call
    call = message.call
    return ToolInvocation(
        tool_name=tool_call.name,
        tool_call_id=ToolCallId(tool_call.id) if tool_call.id else None,
        parameters=dict(tool_call.parameters),
        call_room=call.id if call else None,
        call_user=call.user.id if call and call.user else None,
    )
