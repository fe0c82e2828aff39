"""
Constants used throughout the real-time detection system
"""

# Credits
DEFAULT_CREDIT_COST = 3  # Credits charged per successful remote detection

# Remote detector
DEFAULT_MAX_ITEMS = 6
DEFAULT_TEMPERATURE = 0.1
DEFAULT_DETECTOR_TIMEOUT = 10.0  # Seconds
DEFAULT_DETECTOR_URL = "http://localhost:3000/api/gemini-detection-realtime"
POINT_SCALE = 1000.0  # Remote points are normalized to [0, 1000]
RAW_SAMPLE_LENGTH = 200  # Characters of a malformed response kept for logs

# Tracking (milliseconds)
TRACK_MAX_AGE_MS = 5000
TRACK_ESTIMATE_AFTER_MS = 2000
TRACK_SKIP_WINDOW_MS = 3000
TRACK_MIN_CONFIDENCE_FACTOR = 0.3
DEFAULT_CONFIDENCE = 0.8

# Adaptive quality
QUALITY_INITIAL = 0.7
QUALITY_MIN = 0.3
QUALITY_MAX = 0.9
QUALITY_TARGET_RESPONSE_MS = 1500
QUALITY_HISTORY_SIZE = 10
QUALITY_STEP_DOWN = 0.05
QUALITY_STEP_UP = 0.02
QUALITY_RECOVERY_RATIO = 0.7  # Step up only when mean < target * ratio

# Frame difference
FRAME_DIFF_THRESHOLD = 0.15
FRAME_DIFF_STRIDE = 4  # Sample every Nth pixel

# Scheduling
DEFAULT_DETECTION_INTERVAL_MS = 2000
MIN_SAFE_INTERVAL_MS = 1000  # Remote endpoint allows ~1 request per second
FPS_WINDOW_MS = 5000  # Rolling window for capture FPS
DEFAULT_STOP_TIMEOUT = 0.5  # Seconds to wait for the worker on stop

# Session usage bookkeeping
SESSION_IDLE_SECONDS = 300
SESSION_SWEEP_INTERVAL = 300

# Camera reconnection
MAX_CAMERA_RECONNECT_ATTEMPTS = 2
CAMERA_RECONNECT_DELAY = 2.0  # Seconds between reconnection attempts

# Environment variables
ENV_CAMERA_URL = "CAMERA_URL"
ENV_DETECTOR_URL = "DETECTOR_URL"
ENV_DETECTOR_API_KEY = "DETECTOR_API_KEY"
ENV_LEDGER_URL = "LEDGER_URL"
