# ============================================================
# models.py - Pydantic Schemas for the Call-Events API
# ============================================================
# Wire shapes for the voice agent's tool-call events, the data
# channel commands sent to the browser, and the results the
# browser PUTs back. camelCase on the wire, snake_case in Python.
# ============================================================

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Literal, NewType

from pydantic import BaseModel, ConfigDict, Field

# ── Identifier Spaces ─────────────────────────────────────────
# The agent platform's tool-call id and our correlation id are
# unrelated; they must never be used in place of each other.
ToolCallId = NewType("ToolCallId", str)
CorrelationId = NewType("CorrelationId", str)


def generate_correlation_id() -> CorrelationId:
    """Generate a unique id joining a room command to its result."""
    return CorrelationId(f"req_{uuid.uuid4().hex[:12]}_{int(time.time() * 1000)}")


# ── Inbound Tool-Call Event ───────────────────────────────────
class ToolCall(BaseModel):
    name: str = Field(..., description="Tool name requested by the agent")
    id: str | None = Field(None, description="Agent platform's own tool-call id")
    parameters: dict[str, Any] = Field(default_factory=dict)
    timestamp: str | None = None


class CallUser(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str


class CallAssistant(BaseModel):
    name: str


class CallInfo(BaseModel):
    """Call metadata. call.id doubles as the room name, user.id as the participant."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str | None = None
    user: CallUser | None = None
    assistant: CallAssistant | None = None
    metadata: Any = None


class CallMessage(BaseModel):
    """One event from the voice agent, after dialect normalization."""
    model_config = ConfigDict(extra="allow")

    type: str
    tool_call: ToolCall | None = None
    call: CallInfo | None = None
    timestamp: str | None = None


@dataclass(frozen=True)
class ToolInvocation:
    """Internal, dialect-free form of a tool-call-attempt event."""
    tool_name: str
    tool_call_id: ToolCallId | None
    parameters: dict[str, Any] = field(default_factory=dict)
    call_room: str | None = None
    call_user: str | None = None


# ── Outbound Data-Channel Commands ────────────────────────────
class CaptureScreenshotCommand(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["capture_screenshot"] = "capture_screenshot"
    question: str
    request_id: str = Field(..., alias="requestId")


class MarkStepCompleteCommand(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["mark_step_complete"] = "mark_step_complete"
    step_id: int = Field(..., alias="stepId")
    request_id: str = Field(..., alias="requestId")


# ── Result Submission (PUT /api/call-events) ──────────────────
class ResultSubmission(BaseModel):
    """
    What the browser sends back. Exactly one of three shapes:
    screenshot {imageBase64, question}, step ack {stepCompleted, success},
    or legacy {answer}.
    """
    model_config = ConfigDict(populate_by_name=True)

    request_id: str | None = Field(None, alias="requestId")
    image_base64: str | None = Field(None, alias="imageBase64")
    question: str | None = None
    answer: str | None = None
    step_completed: Any = Field(None, alias="stepCompleted")
    success: bool | None = None

    @property
    def is_step_ack(self) -> bool:
        # Present counts, even when null or 0
        return "step_completed" in self.model_fields_set


@dataclass(frozen=True)
class ScreenshotResult:
    """Payload handed through the correlator to the waiting tool call."""
    correlation_id: CorrelationId
    image_base64: str | None = None
    legacy_answer: str | None = None
    question: str | None = None


# ── Responses ─────────────────────────────────────────────────
class ToolResponse(BaseModel):
    success: bool = True
    tool_name: str
    tool_id: str | None = None
    result: str


class ErrorResponse(BaseModel):
    error: str
    tool_name: str | None = None
    tool_id: str | None = None


# ── Standalone Vision (POST /api/vision) ──────────────────────
class VisionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_base64: str | None = Field(None, alias="imageBase64")
    question: str | None = None


class VisionResponse(BaseModel):
    answer: str
    mock: bool = False


# ── LiveKit Token (POST /api/livekit/token) ───────────────────
class TokenRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_name: str | None = Field(None, alias="roomName")
    room: str | None = None
    participant_name: str | None = Field(None, alias="participantName")
    username: str | None = None
    agent_config: dict[str, Any] | None = Field(None, alias="agentConfig")


class TokenResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str
    url: str
    ws_url: str = Field(..., alias="wsUrl")
    room_name: str = Field(..., alias="roomName")
    participant_name: str = Field(..., alias="participantName")
    agent_config: dict[str, Any] | None = Field(None, alias="agentConfig")
