# ============================================================
# agent_tools/router.py - Tool Dispatch Router
# ============================================================
# Maps the agent's tool name onto a handler. The tool set is
# closed: anything outside it is an error, never a silent no-op.
# ============================================================

from enum import Enum

from agent_tools.handlers import ToolContext, capture_screenshot, mark_step_complete
from config import DEFAULT_TOOL_TIMEOUT_SECONDS
from correlator import PendingRequestRegistry
from errors import UnknownToolError
from models import ToolInvocation
from transport import RoomTransport
from vision import VisionAdapter


class ToolName(str, Enum):
    CAPTURE_SCREENSHOT = "captureScreenshot"
    MARK_STEP_COMPLETE = "markStepComplete"


# Exact-match names the agent may use, aliases included
TOOL_NAMES = {
    "captureScreenshot": ToolName.CAPTURE_SCREENSHOT,
    "capture_screenshot": ToolName.CAPTURE_SCREENSHOT,
    "markStepComplete": ToolName.MARK_STEP_COMPLETE,
}

_HANDLERS = {
    ToolName.CAPTURE_SCREENSHOT: capture_screenshot,
    ToolName.MARK_STEP_COMPLETE: mark_step_complete,
}


def resolve_tool(name: str) -> ToolName:
    tool = TOOL_NAMES.get(name)
    if tool is None:
        raise UnknownToolError(name)
    return tool


class ToolRouter:
    """Routes ToolInvocations to their handlers with injected collaborators."""

    def __init__(
        self,
        registry: PendingRequestRegistry,
        transport: RoomTransport,
        vision: VisionAdapter,
        default_timeout: float = DEFAULT_TOOL_TIMEOUT_SECONDS,
    ):
        self.context = ToolContext(
            registry=registry,
            transport=transport,
            vision=vision,
            default_timeout=default_timeout,
        )

    @property
    def registry(self) -> PendingRequestRegistry:
        return self.context.registry

    async def dispatch(self, invocation: ToolInvocation) -> str:
        """Run one tool call and return its plain-text result."""
        tool = resolve_tool(invocation.tool_name)
        print(f"[TOOL] {tool.value} (tool_call_id={invocation.tool_call_id})")
        return await _HANDLERS[tool](self.context, invocation)
