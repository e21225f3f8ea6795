# ============================================================
# results.py - Result Submission Handling
# ============================================================
# The browser PUTs tool results back here. Screenshot results
# wake the waiting captureScreenshot call; step acknowledgements
# are only logged.
# ============================================================

from correlator import PendingRequestRegistry
from errors import NoSuchRequestError, ValidationError
from models import CorrelationId, ResultSubmission, ScreenshotResult


def submit_result(registry: PendingRequestRegistry, submission: ResultSubmission) -> dict:
    """
    Route one result submission.

    Raises:
        ValidationError: no requestId
        NoSuchRequestError: the request already resolved, expired or never existed
    """
    if not submission.request_id:
        raise ValidationError("requestId required")

    correlation_id = CorrelationId(submission.request_id)

    # markStepComplete is fire-and-forget; the ack never touches the registry
    if submission.is_step_ack:
        print(f"[DELIVER] Step {submission.step_completed} completion confirmed for request {correlation_id}")
        return {
            "ok": True,
            "stepCompleted": submission.step_completed,
            "success": submission.success,
        }

    if submission.image_base64:
        result = ScreenshotResult(
            correlation_id=correlation_id,
            image_base64=submission.image_base64,
            question=submission.question,
        )
    else:
        # Older clients ran vision themselves and only send the answer
        result = ScreenshotResult(
            correlation_id=correlation_id,
            legacy_answer=submission.answer or "",
            question=submission.question,
        )

    if not registry.deliver(correlation_id, result):
        raise NoSuchRequestError()

    print(f"[DELIVER] Screenshot result delivered for request {correlation_id}")
    return {"ok": True}
