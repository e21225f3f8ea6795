# ============================================================
# agent_tools/handlers.py - Tool Handler Functions
# ============================================================
# One coroutine per tool. Each validates its parameters, sends
# exactly one command to the target participant, and returns the
# plain-text result the voice agent will read.
# ============================================================

import math
from dataclasses import dataclass
from typing import Any

from correlator import OutcomeStatus, PendingRequestRegistry
from errors import TransportError, ToolTimeoutError, ValidationError
from models import (
    CaptureScreenshotCommand,
    MarkStepCompleteCommand,
    ToolInvocation,
    generate_correlation_id,
)
from transport import RoomTransport
from vision import VisionAdapter


@dataclass
class ToolContext:
    registry: PendingRequestRegistry
    transport: RoomTransport
    vision: VisionAdapter
    default_timeout: float


@dataclass(frozen=True)
class CallTarget:
    room: str
    identity: str


def resolve_call_target(invocation: ToolInvocation, tool_label: str) -> CallTarget:
    """
    Work out which room and participant a command goes to.

    Explicit roomName/targetIdentity parameters win, but only as a pair.
    With neither given, both come from the call metadata. A half-explicit
    target is rejected rather than completed with a guessed identity.
    """
    params = invocation.parameters
    room = params.get("roomName")
    identity = params.get("targetIdentity")

    if room or identity:
        if not (room and identity):
            raise ValidationError(
                f"roomName and targetIdentity must be given together for {tool_label}"
            )
    else:
        room, identity = invocation.call_room, invocation.call_user

    if not room or not identity:
        raise ValidationError(f"roomName and targetIdentity are required for {tool_label}")
    return CallTarget(room=str(room), identity=str(identity))


def parse_step_id(value: Any) -> int:
    """stepId as a positive integer. Integral floats and numeric strings are accepted."""
    if isinstance(value, bool) or value is None:
        raise ValidationError("stepId is required for markStepComplete")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"stepId must be a positive integer, got {value!r}")
    if not number.is_integer() or number < 1:
        raise ValidationError(f"stepId must be a positive integer, got {value!r}")
    return int(number)


def parse_timeout(params: dict[str, Any], default: float) -> float:
    """Per-call timeout from the optional timeoutMs parameter, in seconds."""
    timeout_ms = params.get("timeoutMs")
    if timeout_ms is None:
        return default
    try:
        seconds = float(timeout_ms) / 1000.0
    except (TypeError, ValueError):
        raise ValidationError(f"timeoutMs must be a number, got {timeout_ms!r}")
    if not math.isfinite(seconds) or seconds <= 0:
        raise ValidationError(f"timeoutMs must be a positive, finite number, got {timeout_ms!r}")
    return seconds


# ── captureScreenshot ─────────────────────────────────────────
async def capture_screenshot(ctx: ToolContext, invocation: ToolInvocation) -> str:
    """
    Ask the participant's browser for a camera frame and answer the
    question about it. Parks until the browser PUTs the frame back or
    the timeout fires.
    """
    params = invocation.parameters
    question = params.get("question")
    if not question:
        raise ValidationError("roomName, question, and targetIdentity are required for capture_screenshot")
    target = resolve_call_target(invocation, "capture_screenshot")
    timeout = parse_timeout(params, ctx.default_timeout)

    correlation_id = generate_correlation_id()
    # Registered before sending so a fast reply always finds its waiter
    handle = ctx.registry.register(correlation_id, timeout)
    command = CaptureScreenshotCommand(question=str(question), request_id=correlation_id)
    try:
        await ctx.transport.send_data(
            target.room, command.model_dump(by_alias=True), [target.identity]
        )
    except Exception:
        ctx.registry.discard(correlation_id)
        raise

    print(f"[TOOL] capture_screenshot waiting on {correlation_id} (timeout {timeout:.1f}s)")
    outcome = await handle.wait()

    if outcome.status is OutcomeStatus.TIMED_OUT:
        raise ToolTimeoutError("capture_screenshot timed out")
    if outcome.status is not OutcomeStatus.DELIVERED:
        raise TransportError(f"capture_screenshot request {correlation_id} was abandoned")

    return await ctx.vision.answer_screenshot(outcome.payload, str(question))


# ── markStepComplete ──────────────────────────────────────────
async def mark_step_complete(ctx: ToolContext, invocation: ToolInvocation) -> str:
    """Tell the browser a curriculum step is done. Does not wait for the ack."""
    params = invocation.parameters
    target = resolve_call_target(invocation, "markStepComplete")
    step_id = parse_step_id(params.get("stepId"))

    command = MarkStepCompleteCommand(step_id=step_id, request_id=generate_correlation_id())
    await ctx.transport.send_data(
        target.room, command.model_dump(by_alias=True), [target.identity]
    )
    return f"Step {step_id} marked complete"
