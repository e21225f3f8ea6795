# ============================================================
# vision.py - Vision Inference Adapter
# ============================================================
# Normalizes the screenshot the browser returned and asks Gemini
# the agent's question about it. With no API key configured the
# answer is a deterministic mock, so the whole tool loop runs
# offline.
# ============================================================

from google.genai import errors as genai_errors
from google.genai import types
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from config import KeyRotator, FALLBACK_QUESTION, MODEL_VISION, VISION_MAX_ATTEMPTS
from errors import InferenceError, InvalidPayloadError
from image_utils import data_url_to_bytes, normalize_image_payload
from models import ScreenshotResult

NO_RESPONSE_TEXT = "No response text found"


def mock_answer(question: str) -> str:
    return f"Mock vision answer to: {question}"


def _is_rate_limited(exc: BaseException) -> bool:
    if not isinstance(exc, genai_errors.APIError):
        return False
    return exc.code == 429 or "RESOURCE_EXHAUSTED" in str(exc)


def extract_answer_text(response) -> str:
    """
    Pull the first text-bearing part out of a generate_content response.

    Walks candidates[].content.parts[] and skips thought parts. Returns
    NO_RESPONSE_TEXT rather than failing when nothing has text.
    """
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            if getattr(part, "thought", False):
                continue
            text = getattr(part, "text", None)
            if text and text.strip():
                return text.strip()
    return NO_RESPONSE_TEXT


class VisionAdapter:
    """Answers a question about a screenshot, or mocks it when no key is set."""

    def __init__(
        self,
        rotator: KeyRotator | None,
        model: str = MODEL_VISION,
        max_attempts: int = VISION_MAX_ATTEMPTS,
        wait=None,
    ):
        self.rotator = rotator
        self.model = model
        self.max_attempts = max_attempts
        self.wait = wait if wait is not None else wait_exponential(multiplier=1, min=1, max=8)

    @property
    def is_mock(self) -> bool:
        return self.rotator is None

    async def answer(self, question: str, image_base64: str | None = None) -> str:
        """
        Answer `question` about an image (data URL or raw base64).

        The payload is normalized before anything else, so a malformed image
        fails even in mock mode and never reaches the network.
        """
        image = normalize_image_payload(image_base64) if image_base64 is not None else None

        if self.is_mock:
            return mock_answer(question)

        if image is None:
            raise InvalidPayloadError("Missing imageBase64 in screenshot submission")

        print(f"[VISION] Asking {self.model}: {question[:120]} ({len(image.payload)} b64 chars)")
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=self.wait,
                retry=retry_if_exception(_is_rate_limited),
                reraise=True,
            ):
                with attempt:
                    response = await self._generate(question, image.data_url)
        except genai_errors.APIError as e:
            raise InferenceError(f"Vision LLM error: {e}")

        answer = extract_answer_text(response)
        print(f"[VISION] Extracted answer: {answer[:200]}")
        return answer

    async def answer_screenshot(self, result: ScreenshotResult, question: str | None = None) -> str:
        """
        Turn a delivered ScreenshotResult into the tool's answer text.

        A client that already ran vision itself sends a legacy answer and no
        image; that answer is returned verbatim.
        """
        if not result.image_base64 and result.legacy_answer:
            return result.legacy_answer

        effective_question = question or result.question or FALLBACK_QUESTION
        return await self.answer(effective_question, result.image_base64 or None)

    async def _generate(self, question: str, data_url: str):
        # Fresh client per attempt so a 429 retry lands on the next key
        client = self.rotator.get_client()
        mime_type, image_bytes = data_url_to_bytes(data_url)
        return await client.aio.models.generate_content(
            model=self.model,
            contents=[
                types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
                question,
            ],
        )
