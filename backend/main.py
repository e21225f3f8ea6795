# ============================================================
# main.py - FastAPI Backend for Live Trade-School Sessions
# ============================================================
# Receives tool-call events from the voice agent, relays them to
# the trainee's browser over the LiveKit data channel, and takes
# the browser's results back on the same route via PUT.
# ============================================================

import traceback
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import CORS_ORIGINS, DEFAULT_TOOL_TIMEOUT_SECONDS, LIVEKIT_URL, build_key_rotator
from agent_tools.router import ToolRouter
from correlator import PendingRequestRegistry
from errors import ToolError, UnknownToolError, ValidationError
from models import (
    ErrorResponse,
    ResultSubmission,
    TokenRequest,
    TokenResponse,
    ToolResponse,
    VisionRequest,
    VisionResponse,
)
from results import submit_result
from transport import LiveKitRoomTransport, RoomTransport, build_dispatch_metadata
from vision import VisionAdapter
from webhooks import is_tool_call, normalize_call_event, to_invocation


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    body = ErrorResponse(error=message, **extra).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


# ── Dependencies ──────────────────────────────────────────────
def get_router(request: Request) -> ToolRouter:
    return request.app.state.router


def get_registry(request: Request) -> PendingRequestRegistry:
    return request.app.state.registry


def get_vision(request: Request) -> VisionAdapter:
    return request.app.state.vision


def get_transport(request: Request) -> RoomTransport:
    return request.app.state.transport


# ── Lifespan (startup/shutdown) ───────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    mode = "mock" if app.state.vision.is_mock else app.state.vision.model
    print(f"🚀 Trade-school session backend starting (vision: {mode})...")
    yield
    pending = len(app.state.registry)
    app.state.registry.close()
    print(f"🛑 Backend shutting down ({pending} pending requests expired).")


def create_app(
    registry: PendingRequestRegistry = None,
    transport: RoomTransport = None,
    vision: VisionAdapter = None,
    default_timeout: float = DEFAULT_TOOL_TIMEOUT_SECONDS,
) -> FastAPI:
    """Build the app with its collaborators; tests inject fakes here."""
    app = FastAPI(
        title="Trade-School Live Sessions",
        description="Tool-call relay between the voice agent and the trainee's browser",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.registry = registry if registry is not None else PendingRequestRegistry()
    app.state.transport = transport if transport is not None else LiveKitRoomTransport()
    app.state.vision = vision if vision is not None else VisionAdapter(build_key_rotator())
    app.state.router = ToolRouter(
        app.state.registry,
        app.state.transport,
        app.state.vision,
        default_timeout=default_timeout,
    )

    # ── CORS Middleware ────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Exception Handlers ─────────────────────────────────────
    @app.exception_handler(ToolError)
    async def tool_error_handler(request: Request, exc: ToolError):
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _error(400, f"Invalid request body: {exc.errors()[0].get('msg', 'malformed')}")

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        print(f"\n[ERROR] {exc}")
        print(traceback.format_exc())
        return _error(500, "Internal server error")

    # ── Tool-Call Events ───────────────────────────────────────
    @app.post("/api/call-events")
    async def call_events(raw: Any = Body(...), router: ToolRouter = Depends(get_router)):
        """
        Webhook for voice-agent events. Tool-call attempts are executed and
        answered synchronously; other event types are acknowledged.
        """
        message = normalize_call_event(raw)
        if message is None:
            print(f"[REQUEST] Payload without a message object: {str(raw)[:200]}")
            return _error(400, "Invalid event structure: Missing message object.")

        if not is_tool_call(message):
            print(f"[REQUEST] Event type '{message.type}' received, not handled")
            return {
                "success": True,
                "message": f"Event type '{message.type}' received but not actively handled.",
            }

        invocation = to_invocation(message)
        print(f"\n{'='*60}")
        print(f"[REQUEST] tool call {invocation.tool_name} id={invocation.tool_call_id}")
        print(f"  room: {invocation.call_room}  user: {invocation.call_user}")
        print(f"{'='*60}")

        try:
            result = await router.dispatch(invocation)
        except UnknownToolError as e:
            print(f"[TOOL] Unknown tool: {e.tool_name}")
            return _error(e.status_code, e.message)
        except ToolError as e:
            print(f"[ERROR] Tool {invocation.tool_name} failed: {e.message}")
            return _error(
                e.status_code,
                f"Tool execution failed: {e.message}",
                tool_name=invocation.tool_name,
                tool_id=invocation.tool_call_id,
            )

        print(f"[TOOL] {invocation.tool_name} executed successfully for call {invocation.call_room}")
        return ToolResponse(
            tool_name=invocation.tool_name,
            tool_id=invocation.tool_call_id,
            result=result,
        )

    # ── Result Submission ──────────────────────────────────────
    @app.put("/api/call-events")
    async def submit_call_result(
        submission: ResultSubmission,
        registry: PendingRequestRegistry = Depends(get_registry),
    ):
        """Companion endpoint: the browser delivers screenshots and step acks here."""
        return submit_result(registry, submission)

    # ── Standalone Vision ──────────────────────────────────────
    @app.post("/api/vision", response_model=VisionResponse)
    async def vision_answer(payload: VisionRequest, vision: VisionAdapter = Depends(get_vision)):
        if not payload.image_base64:
            raise ValidationError("Missing imageBase64")
        if not payload.question:
            raise ValidationError("Missing question")
        answer = await vision.answer(payload.question, payload.image_base64)
        return VisionResponse(answer=answer, mock=vision.is_mock)

    # ── LiveKit Token ──────────────────────────────────────────
    @app.post("/api/livekit/token")
    async def livekit_token(payload: TokenRequest, transport: RoomTransport = Depends(get_transport)):
        room = payload.room_name or payload.room
        participant = payload.participant_name or payload.username
        if not room or not participant:
            raise ValidationError("Room name and participant name are required")

        token = transport.create_token(room, participant)

        if payload.agent_config:
            metadata = build_dispatch_metadata(payload.agent_config, room, participant)
            await transport.dispatch_agent(room, metadata)

        ws_url = getattr(transport, "url", LIVEKIT_URL)
        body = TokenResponse(
            token=token,
            url=ws_url,
            ws_url=ws_url,
            room_name=room,
            participant_name=participant,
            agent_config=payload.agent_config,
        )
        return JSONResponse(
            content=body.model_dump(by_alias=True),
            headers={"Cache-Control": "no-store"},
        )

    # ── Health Check ───────────────────────────────────────────
    @app.get("/health")
    async def health(request: Request):
        return {
            "status": "ok",
            "service": "tradeschool-live",
            "pending_requests": len(request.app.state.registry),
        }

    return app


app = create_app()
