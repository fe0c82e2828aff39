"""
Pydantic schemas for configuration validation.

Provides type-safe, declarative validation with clear error messages.
Every field has a default, so an empty config file is valid.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..utils.constants import (
    DEFAULT_CREDIT_COST,
    DEFAULT_DETECTION_INTERVAL_MS,
    DEFAULT_DETECTOR_TIMEOUT,
    DEFAULT_DETECTOR_URL,
    DEFAULT_MAX_ITEMS,
    DEFAULT_STOP_TIMEOUT,
    DEFAULT_TEMPERATURE,
    FRAME_DIFF_STRIDE,
    FRAME_DIFF_THRESHOLD,
    QUALITY_HISTORY_SIZE,
    QUALITY_INITIAL,
    QUALITY_MAX,
    QUALITY_MIN,
    QUALITY_STEP_DOWN,
    QUALITY_STEP_UP,
    QUALITY_TARGET_RESPONSE_MS,
    SESSION_IDLE_SECONDS,
    SESSION_SWEEP_INTERVAL,
    TRACK_ESTIMATE_AFTER_MS,
    TRACK_MAX_AGE_MS,
    TRACK_SKIP_WINDOW_MS,
)


class StrictModel(BaseModel):
    """Base model that rejects unknown fields."""

    model_config = ConfigDict(extra="forbid")


class DetectorConfig(StrictModel):
    """Remote detector endpoint."""

    url: str = Field(default=DEFAULT_DETECTOR_URL, min_length=1)
    api_key: str | None = None
    timeout_seconds: float = Field(default=DEFAULT_DETECTOR_TIMEOUT, gt=0)
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    max_items: int = Field(default=DEFAULT_MAX_ITEMS, ge=1, le=20)
    quick_mode: bool = True


class CameraConfig(StrictModel):
    """Camera source."""

    url: str | int = 0
    width: int | None = Field(default=1280, gt=0)
    height: int | None = Field(default=720, gt=0)


class SearchConfig(StrictModel):
    """Current search target. Empty label means detection is idle."""

    label: str = ""


class SessionConfig(StrictModel):
    """Session and credit settings."""

    user_id: str = Field(default="local", min_length=1)
    detection_interval_ms: int = Field(default=DEFAULT_DETECTION_INTERVAL_MS, gt=0)
    credit_cost: int = Field(default=DEFAULT_CREDIT_COST, ge=0)
    starting_balance: int = Field(default=100, ge=0)
    require_minute_of_credit: bool = True
    stop_timeout_seconds: float = Field(default=DEFAULT_STOP_TIMEOUT, ge=0)


class OptimizationFlags(StrictModel):
    """Toggles for the detection cycle optimizations."""

    frame_difference: bool = True
    object_tracking: bool = True
    adaptive_quality: bool = True
    smart_skipping: bool = True


class TrackingConfig(StrictModel):
    """Object tracker windows (milliseconds)."""

    max_age_ms: float = Field(default=TRACK_MAX_AGE_MS, gt=0)
    estimate_after_ms: float = Field(default=TRACK_ESTIMATE_AFTER_MS, ge=0)
    skip_window_ms: float = Field(default=TRACK_SKIP_WINDOW_MS, gt=0)


class QualityConfig(StrictModel):
    """Adaptive quality controller settings."""

    initial: float = Field(default=QUALITY_INITIAL, ge=0.0, le=1.0)
    minimum: float = Field(default=QUALITY_MIN, ge=0.0, le=1.0)
    maximum: float = Field(default=QUALITY_MAX, ge=0.0, le=1.0)
    target_response_ms: float = Field(default=QUALITY_TARGET_RESPONSE_MS, gt=0)
    history_size: int = Field(default=QUALITY_HISTORY_SIZE, ge=1)
    step_down: float = Field(default=QUALITY_STEP_DOWN, gt=0, le=1.0)
    step_up: float = Field(default=QUALITY_STEP_UP, gt=0, le=1.0)

    @model_validator(mode="after")
    def validate_range(self):
        if self.minimum > self.maximum:
            raise ValueError("minimum must be <= maximum")
        return self


class FrameDifferenceConfig(StrictModel):
    """Frame difference detector settings."""

    threshold: float = Field(default=FRAME_DIFF_THRESHOLD, ge=0.0, le=1.0)
    stride: int = Field(default=FRAME_DIFF_STRIDE, ge=1)


class LedgerConfig(StrictModel):
    """Credit ledger. Without a url the in-memory ledger is used."""

    url: str | None = None
    timeout_seconds: float = Field(default=5.0, gt=0)
    session_idle_seconds: float = Field(default=SESSION_IDLE_SECONDS, gt=0)
    sweep_interval_seconds: float = Field(default=SESSION_SWEEP_INTERVAL, gt=0)


class RuntimeConfig(StrictModel):
    """Runtime settings."""

    metrics_interval_seconds: float = Field(default=5.0, gt=0)
    default_duration_minutes: float | None = Field(default=None, gt=0)


class Settings(StrictModel):
    """Complete configuration schema."""

    detector: DetectorConfig = Field(default_factory=DetectorConfig)
    camera: CameraConfig = Field(default_factory=CameraConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    optimizations: OptimizationFlags = Field(default_factory=OptimizationFlags)
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)
    quality: QualityConfig = Field(default_factory=QualityConfig)
    frame_difference: FrameDifferenceConfig = Field(
        default_factory=FrameDifferenceConfig
    )
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)


def build_settings(config: dict | None) -> Settings:
    """
    Parse a configuration dictionary into Settings.

    Raises:
        pydantic.ValidationError: If the config is invalid
    """
    return Settings.model_validate(config or {})
