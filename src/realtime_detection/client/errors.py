"""
Detection error taxonomy.

Every remote failure is contained within a single tick. Distinguished
failures (quota, safety, timeout) carry a short actionable message for
the overlay; everything else maps to a generic retry notice.
"""

GENERIC_FAILURE_MESSAGE = "Detection failed, retrying"


class DetectionError(Exception):
    """Base class for remote detection failures."""

    user_message = GENERIC_FAILURE_MESSAGE

    def __init__(self, message: str = "", status_code: int | None = None):
        super().__init__(message or self.user_message)
        self.status_code = status_code


class TransientRemoteFailure(DetectionError):
    """Network error or 5xx - the next tick simply tries again."""


class DetectionTimeout(TransientRemoteFailure):
    """The remote call exceeded its timeout."""

    user_message = "Detection timeout. Try reducing detection frequency."


class QuotaExceeded(DetectionError):
    """Remote API quota exhausted."""

    user_message = "API quota exceeded. Please try again later."


class SafetyRejected(DetectionError):
    """Frame rejected by the remote content filter."""

    user_message = "Content filtered for safety reasons."


class MalformedResponse(DetectionError):
    """Response was not JSON or did not match the point-list shape."""

    def __init__(self, message: str = "", raw_sample: str = "", status_code: int | None = None):
        super().__init__(message, status_code)
        self.raw_sample = raw_sample


def classify_error_message(
    message: str, status_code: int | None = None
) -> type[DetectionError]:
    """
    Map an error message and status code to a DetectionError subclass.

    Args:
        message: Error text returned by the remote endpoint
        status_code: HTTP status, if any

    Returns:
        The most specific matching error class
    """
    lowered = (message or "").lower()

    if status_code == 429 or "quota" in lowered:
        return QuotaExceeded
    if "safety" in lowered or "filtered" in lowered:
        return SafetyRejected
    if status_code == 408 or "timeout" in lowered:
        return DetectionTimeout
    if status_code == 422:
        return MalformedResponse
    return TransientRemoteFailure


def user_message_for(error: Exception) -> str:
    """Short overlay message for any exception raised during a tick."""
    if isinstance(error, DetectionError):
        return error.user_message
    return GENERIC_FAILURE_MESSAGE
