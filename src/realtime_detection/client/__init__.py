"""
Remote detector client, response parsing, and error taxonomy.
"""

from .errors import (
    GENERIC_FAILURE_MESSAGE,
    DetectionError,
    DetectionTimeout,
    MalformedResponse,
    QuotaExceeded,
    SafetyRejected,
    TransientRemoteFailure,
    classify_error_message,
    user_message_for,
)
from .parsing import (
    ParsedPoints,
    ParseFailure,
    extract_json,
    parse_detection_payload,
)
from .remote_detector import RemoteDetectorClient, build_prompt

__all__ = [
    # Errors
    "GENERIC_FAILURE_MESSAGE",
    "DetectionError",
    "DetectionTimeout",
    "MalformedResponse",
    "ParseFailure",
    # Parsing
    "ParsedPoints",
    "QuotaExceeded",
    # Client
    "RemoteDetectorClient",
    "SafetyRejected",
    "TransientRemoteFailure",
    "build_prompt",
    "classify_error_message",
    "extract_json",
    "parse_detection_payload",
    "user_message_for",
]
