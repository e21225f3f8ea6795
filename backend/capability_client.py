# ============================================================
# capability_client.py - Browser-Side Command Handler (Python)
# ============================================================
# Reference implementation of what the trainee's browser does
# with a data-channel command: grab a camera frame or tick off a
# step, then PUT the result back. Useful for bots and smoke runs
# where no real browser is in the room.
# ============================================================

import json
import asyncio
from typing import Awaitable, Callable

import httpx
from livekit import rtc
from PIL import Image

from image_utils import pil_to_data_url

# Returns the current camera frame; how it is captured is not our concern
FrameSource = Callable[[], Awaitable[Image.Image]]


class CapabilityClient:
    """Handles capture_screenshot and mark_step_complete commands."""

    def __init__(self, result_url: str, frame_source: FrameSource, http: httpx.AsyncClient):
        self.result_url = result_url
        self.frame_source = frame_source
        self.http = http
        self.completed_steps: set[int] = set()
        self._tasks: set[asyncio.Task] = set()

    def attach(self, room: rtc.Room):
        """Subscribe to commands arriving on the room's data channel."""

        def _on_data(packet: rtc.DataPacket):
            task = asyncio.create_task(self.handle_message(packet.data))
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

        room.on("data_received", _on_data)

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            print(f"[CLIENT] Command handling failed: {error!r}")

    async def handle_message(self, data: bytes) -> bool:
        """
        Decode and act on one command. Returns True if a result was delivered.
        Malformed or unrelated messages are ignored.
        """
        try:
            message = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            print("[CLIENT] Ignoring non-JSON data message")
            return False
        if not isinstance(message, dict) or not message.get("requestId"):
            return False

        kind = message.get("type")
        if kind == "capture_screenshot":
            return await self._capture_screenshot(message)
        if kind == "mark_step_complete":
            return await self._mark_step_complete(message)

        print(f"[CLIENT] Ignoring unknown command type: {kind}")
        return False

    async def _capture_screenshot(self, message: dict) -> bool:
        frame = await self.frame_source()
        return await self._submit({
            "requestId": message["requestId"],
            "imageBase64": pil_to_data_url(frame),
            "question": message.get("question"),
        })

    async def _mark_step_complete(self, message: dict) -> bool:
        step_id = message.get("stepId")
        # Optimistic: local state moves before the server hears back
        if isinstance(step_id, int):
            self.completed_steps.add(step_id)
        return await self._submit({
            "requestId": message["requestId"],
            "stepCompleted": step_id,
            "success": True,
        })

    async def _submit(self, body: dict) -> bool:
        # Fire once, no retries
        try:
            response = await self.http.put(self.result_url, json=body)
        except httpx.HTTPError as e:
            print(f"[CLIENT] Failed to deliver {body['requestId']}: {e}")
            return False
        if response.status_code >= 400:
            print(f"[CLIENT] Server rejected {body['requestId']}: {response.status_code} {response.text[:200]}")
            return False
        return True
