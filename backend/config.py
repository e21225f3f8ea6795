# ============================================================
# config.py - Central Configuration & Gemini API Key Rotation
# ============================================================
# Environment-driven settings for the vision adapter, the LiveKit
# room transport and the tool router. An empty key pool switches
# the vision adapter into its deterministic mock mode.
# ============================================================

import os
import itertools
from dataclasses import dataclass, field
from threading import Lock
from google import genai
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# ── API Key Pool ──────────────────────────────────────────────
# Round-robin pool of Gemini keys. No keys means no inference
# credential: answers come from the mock path instead.
_keys_env = os.environ.get("GEMINI_API_KEYS", "")
GEMINI_API_KEYS = [k.strip() for k in _keys_env.split(",") if k.strip()]

if not GEMINI_API_KEYS:
    print("⚠️ WARNING: No GEMINI_API_KEYS found in environment. Vision answers will be mocked.")


@dataclass
class KeyRotator:
    """Thread-safe round-robin API key rotator."""
    keys: list[str] = field(default_factory=lambda: list(GEMINI_API_KEYS))
    _cycle: itertools.cycle = field(init=False, repr=False)
    _lock: Lock = field(default_factory=Lock, repr=False)

    def __post_init__(self):
        if not self.keys:
            raise ValueError("KeyRotator needs at least one API key")
        self._cycle = itertools.cycle(self.keys)

    def next_key(self) -> str:
        with self._lock:
            return next(self._cycle)

    def get_client(self) -> genai.Client:
        """Returns a new Gemini client with the next rotated API key."""
        return genai.Client(api_key=self.next_key())


def build_key_rotator() -> KeyRotator | None:
    """Rotator over the configured pool, or None when no key is set."""
    if not GEMINI_API_KEYS:
        return None
    return KeyRotator(keys=list(GEMINI_API_KEYS))


# ── Model Configuration ───────────────────────────────────────
MODEL_VISION = os.getenv("MODEL_VISION", "gemini-2.5-flash")

# 429 retries, rotating keys between attempts
VISION_MAX_ATTEMPTS = 4

# Used when neither the tool call nor the client supplied a question
FALLBACK_QUESTION = "What do you see?"

# ── LiveKit ───────────────────────────────────────────────────
LIVEKIT_URL = os.getenv("LIVEKIT_URL") or os.getenv("NEXT_PUBLIC_LIVEKIT_URL", "")
LIVEKIT_API_KEY = os.getenv("LIVEKIT_API_KEY", "")
LIVEKIT_API_SECRET = os.getenv("LIVEKIT_API_SECRET", "")

AGENT_DISPATCH_NAME = os.getenv("AGENT_DISPATCH_NAME", "livekit_agent_server")
CALL_EVENTS_URL = os.getenv("CALL_EVENTS_URL") or os.getenv("NEXT_PUBLIC_CALL_EVENTS_URL", "")
AGENT_WEBHOOK_TOKEN = os.getenv("AGENT_WEBHOOK_TOKEN") or os.getenv("NEXT_PUBLIC_AGENT_WEBHOOK_TOKEN", "")


def livekit_http_url(ws_url: str = None) -> str:
    """HTTP base for the LiveKit server API, derived from the websocket URL."""
    url = LIVEKIT_URL if ws_url is None else ws_url
    if url.startswith("wss:"):
        return "https:" + url[len("wss:"):]
    if url.startswith("ws:"):
        return "http:" + url[len("ws:"):]
    return url


# ── Tool Router ───────────────────────────────────────────────
# How long captureScreenshot waits for the client's PUT
DEFAULT_TOOL_TIMEOUT_SECONDS = 25.0

# ── Backend ───────────────────────────────────────────────────
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if o.strip()
]
