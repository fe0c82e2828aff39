"""
Remote Detector Client - sends frames to the vision endpoint for point detection.

This client:
1. Encodes the JPEG frame as a base64 data URL
2. Posts it with the prompt and session id to the configured endpoint
3. Validates the returned point list (all-or-nothing)
4. Maps failures to the detection error taxonomy

There are no retries here: a failed detection is abandoned and the next
scheduled tick tries again.
"""

import base64
import logging
import time

import requests

from ..models import DetectionResponse
from ..utils.constants import DEFAULT_DETECTOR_TIMEOUT
from .errors import (
    DetectionTimeout,
    MalformedResponse,
    TransientRemoteFailure,
    classify_error_message,
)
from .parsing import ParseFailure, parse_detection_payload, raw_sample

logger = logging.getLogger(__name__)


def build_prompt(label: str, max_items: int) -> str:
    """Prompt asking the model to point at up to max_items instances of label."""
    return (
        f"Point to the {label.strip()} with max {max_items} items. "
        'JSON: [{"point": [y,x], "label": "name", "confidence": 0-1}]. '
        "Points 0-1000."
    )


def encode_data_url(image: bytes) -> str:
    return "data:image/jpeg;base64," + base64.b64encode(image).decode("utf-8")


class RemoteDetectorClient:
    """HTTP client for the real-time detection endpoint."""

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_DETECTOR_TIMEOUT,
        api_key: str | None = None,
        quick_mode: bool = True,
        session: requests.Session | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self.api_key = api_key
        self.quick_mode = quick_mode
        self._http = session or requests.Session()

    def detect(
        self,
        image: bytes,
        prompt: str,
        temperature: float,
        max_items: int,
        session_id: str,
    ) -> DetectionResponse:
        """
        Run a remote detection.

        Args:
            image: JPEG-encoded frame
            prompt: Detection prompt (see build_prompt)
            temperature: Sampling temperature
            max_items: Maximum number of points requested
            session_id: Session identifier for cost tracking

        Returns:
            Validated DetectionResponse

        Raises:
            DetectionError: On any failure (see errors module)
        """
        payload = {
            "imageData": encode_data_url(image),
            "prompt": prompt,
            "sessionId": session_id,
            "temperature": temperature,
            "maxItems": max_items,
            "quickMode": self.quick_mode,
        }
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        start = time.monotonic()
        try:
            response = self._http.post(
                self.url, json=payload, headers=headers, timeout=self.timeout
            )
        except requests.Timeout as e:
            raise DetectionTimeout(f"Detector timeout after {self.timeout}s") from e
        except requests.RequestException as e:
            raise TransientRemoteFailure(f"Detector request failed: {e}") from e
        latency_ms = (time.monotonic() - start) * 1000

        if not response.ok:
            self._raise_for_error(response)

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponse(
                f"Invalid JSON response: {e}", raw_sample=raw_sample(response.text)
            ) from e

        if isinstance(data, dict) and data.get("success") is False:
            message = str(data.get("error") or data.get("details") or "")
            raise classify_error_message(message)(message)

        parsed = parse_detection_payload(data, max_items)
        if isinstance(parsed, ParseFailure):
            raise MalformedResponse(parsed.reason, raw_sample=parsed.raw_sample)

        model_used = data.get("model", "") if isinstance(data, dict) else ""
        logger.debug(
            f"Detector returned {len(parsed.points)} point(s) in {latency_ms:.0f}ms"
        )
        return DetectionResponse(
            results=parsed.points, model_used=model_used, latency_ms=latency_ms
        )

    def _raise_for_error(self, response: requests.Response) -> None:
        message = ""
        sample = ""
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            message = " ".join(
                str(body[key]) for key in ("error", "details") if body.get(key)
            )
            sample = str(body.get("rawResponse", ""))
        if not message:
            message = response.text[:100]

        error_class = classify_error_message(message, response.status_code)
        text = f"Detector returned {response.status_code}: {message}"
        if error_class is MalformedResponse:
            raise MalformedResponse(
                text,
                raw_sample=raw_sample(sample or response.text),
                status_code=response.status_code,
            )
        raise error_class(text, status_code=response.status_code)
