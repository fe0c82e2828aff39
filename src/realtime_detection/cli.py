"""
Real-time Detection CLI
Main entry point for running a detection session against a camera.

  realtime-detection cup               # Look for cups until Ctrl+C
  realtime-detection keys -d 5         # Run for 5 minutes
  realtime-detection --validate        # Check configuration validity
"""

import argparse
import logging
import signal
import sys
import time
from threading import Event as ThreadEvent

import requests

from .client import RemoteDetectorClient
from .config import (
    ConfigLoadError,
    Settings,
    load_config,
    print_validation_result,
    validate_config_full,
)
from .core import CameraSource, DetectionSession
from .ledger import (
    HttpCreditLedger,
    InMemoryCreditLedger,
    InsufficientCreditsError,
    SessionUsageTracker,
    estimate_cost_per_minute,
)

logger = logging.getLogger(__name__)

# Module-level shutdown signal for SIGTERM/SIGINT handling
_shutdown_signal = ThreadEvent()

# CLI flag -> optimizations key
OPTIMIZATION_FLAGS = {
    "no_frame_diff": "frame_difference",
    "no_tracking": "object_tracking",
    "no_adaptive": "adaptive_quality",
    "no_skip": "smart_skipping",
}


def _handle_shutdown_signal(signum, _frame):
    """Handle SIGTERM/SIGINT for graceful shutdown."""
    signal_name = "SIGTERM" if signum == signal.SIGTERM else "SIGINT"
    # Note: print is safer than logger in signal handlers
    print(f"\nReceived {signal_name}, stopping detection...")
    _shutdown_signal.set()


def _setup_signal_handlers():
    """Register signal handlers for graceful shutdown."""
    signal.signal(signal.SIGTERM, _handle_shutdown_signal)
    signal.signal(signal.SIGINT, _handle_shutdown_signal)


def setup_logging(quiet: bool = False, verbose: bool = False) -> None:
    """
    Setup logging configuration.

    Args:
        quiet: If True, only show warnings and errors
        verbose: If True, show debug output (overrides quiet)
    """
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO

    # Custom formatter with shorter module names
    class ShortNameFormatter(logging.Formatter):
        def format(self, record):
            record.name = record.name.replace("realtime_detection.", "rd.")
            return super().format(record)

    handler = logging.StreamHandler()
    handler.setFormatter(
        ShortNameFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s", datefmt="%H:%M:%S"
        )
    )
    logging.root.addHandler(handler)
    logging.root.setLevel(level)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Real-time object detection overlay driven by a remote vision model",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  realtime-detection cup                  # Look for cups until Ctrl+C
  realtime-detection keys -d 5            # Run for 5 minutes
  realtime-detection cup --no-skip        # Call the detector on every changed frame
  realtime-detection --validate           # Check config validity

Environment Variables:
  DETECTOR_URL      - Override detector endpoint
  DETECTOR_API_KEY  - Bearer token for the detector
  CAMERA_URL        - Override camera URL or device index
  LEDGER_URL        - Use a remote credit ledger
        """,
    )

    parser.add_argument(
        "label",
        nargs="?",
        help="Object to look for (default: search.label from config)",
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help="Path to config file (default: ./config.yaml if present)",
    )
    parser.add_argument(
        "-d",
        "--duration",
        type=float,
        help="Duration in minutes (default: until interrupted)",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Quiet mode - only show warnings and errors",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Show debug output"
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate configuration and exit",
    )
    parser.add_argument(
        "--no-frame-diff", action="store_true", help="Disable frame difference check"
    )
    parser.add_argument(
        "--no-tracking", action="store_true", help="Disable object tracking"
    )
    parser.add_argument(
        "--no-adaptive", action="store_true", help="Disable adaptive quality"
    )
    parser.add_argument(
        "--no-skip", action="store_true", help="Disable smart frame skipping"
    )

    return parser.parse_args(argv)


def apply_cli_overrides(config: dict, args: argparse.Namespace) -> dict:
    """Apply label and optimization flags from the command line."""
    if args.label:
        config.setdefault("search", {})["label"] = args.label

    for arg_name, key in OPTIMIZATION_FLAGS.items():
        if getattr(args, arg_name, False):
            config.setdefault("optimizations", {})[key] = False

    if args.duration is not None:
        if args.duration <= 0:
            logger.error(f"Invalid duration '{args.duration}' - must be positive")
            sys.exit(1)
        config.setdefault("runtime", {})["default_duration_minutes"] = args.duration

    return config


def build_ledger(settings: Settings) -> HttpCreditLedger | InMemoryCreditLedger:
    if settings.ledger.url:
        logger.info(f"Using credit ledger at {settings.ledger.url}")
        return HttpCreditLedger(settings.ledger.url, timeout=settings.ledger.timeout_seconds)

    ledger = InMemoryCreditLedger()
    ledger.deposit(settings.session.user_id, settings.session.starting_balance)
    return ledger


def build_session(settings: Settings, usage: SessionUsageTracker) -> DetectionSession:
    detector = RemoteDetectorClient(
        settings.detector.url,
        timeout=settings.detector.timeout_seconds,
        api_key=settings.detector.api_key,
        quick_mode=settings.detector.quick_mode,
    )
    camera = settings.camera
    return DetectionSession(
        settings,
        detector,
        build_ledger(settings),
        lambda: CameraSource(camera.url, camera.width, camera.height),
        usage=usage,
    )


def print_banner(settings: Settings) -> None:
    """Print session startup banner."""
    session = settings.session
    duration = settings.runtime.default_duration_minutes
    enabled = [name for name, on in settings.optimizations.model_dump().items() if on]

    print("\n" + "=" * 70)
    print("REAL-TIME DETECTION")
    print("=" * 70)
    print(f"\nLooking for: {settings.search.label}")
    print(f"Detector: {settings.detector.url}")
    print(f"Camera: {settings.camera.url}")
    print(f"Optimizations: {', '.join(enabled) or 'none'}")
    print(
        f"Cost: ~{estimate_cost_per_minute(session.detection_interval_ms, session.credit_cost)} "
        "credits/minute (upper bound)"
    )
    print(f"Duration: {f'{duration} minute(s)' if duration else 'until Ctrl+C'}")
    print("=" * 70)
    print()


def monitor_session(session: DetectionSession, settings: Settings) -> str:
    """
    Log metrics until the session should stop.

    Returns:
        Reason for stopping ('duration', 'signal', 'worker_died', 'interrupted')
    """
    duration = settings.runtime.default_duration_minutes
    deadline = time.time() + duration * 60 if duration else None
    interval = settings.runtime.metrics_interval_seconds
    last_status = ""

    try:
        while True:
            if _shutdown_signal.wait(interval):
                return "signal"
            if deadline is not None and time.time() >= deadline:
                return "duration"
            if not session.is_running:
                return "worker_died"

            logger.info(session.metrics().summary())
            objects = session.current_objects()
            if objects:
                logger.info(
                    "Objects: "
                    + ", ".join(
                        f"{o.label}@({o.x:.2f},{o.y:.2f}){'~' if o.estimated else ''}"
                        for o in objects
                    )
                )

            status = session.status_message
            if status and status != last_status:
                logger.warning(status)
            last_status = status

    except KeyboardInterrupt:
        return "interrupted"


def print_final_status(session: DetectionSession, reason: str) -> None:
    """Print final session statistics."""
    metrics = session.metrics()
    orchestrator = session.orchestrator
    balance = orchestrator.credit_balance if orchestrator else "n/a"

    print("\n" + "=" * 70)
    print(f"Session {session.session_id} ended ({reason})")
    print(f"  Detections: {metrics.detection_count}")
    print(f"  Skipped frames: {metrics.skipped_frames}")
    print(f"  Avg response: {metrics.avg_response_time_ms:.0f}ms")
    print(f"  Final quality: {metrics.quality_level * 100:.0f}%")
    print(f"  Credit balance: {balance}")
    print("=" * 70)


def run_validate(config: dict) -> None:
    """Validate configuration and exit with status."""
    result = validate_config_full(config)
    print_validation_result(result)
    sys.exit(0 if result.valid else 1)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(quiet=args.quiet or args.validate, verbose=args.verbose)

    try:
        config = load_config(args.config)
    except ConfigLoadError as e:
        logger.error(str(e))
        sys.exit(1)

    config = apply_cli_overrides(config, args)

    if args.validate:
        run_validate(config)

    result = validate_config_full(config)
    if not result.valid:
        print_validation_result(result)
        sys.exit(1)
    for warning in result.warnings:
        logger.warning(warning)

    settings = result.settings
    if not settings.search.label.strip():
        logger.error("Nothing to look for - pass a label or set search.label")
        sys.exit(1)

    _setup_signal_handlers()
    print_banner(settings)

    usage = SessionUsageTracker(idle_seconds=settings.ledger.session_idle_seconds)
    usage.start_sweeper(settings.ledger.sweep_interval_seconds)
    session = build_session(settings, usage)

    try:
        session.start()
    except (InsufficientCreditsError, requests.RequestException) as e:
        logger.error(f"Cannot start detection session: {e}")
        usage.stop_sweeper()
        sys.exit(1)

    reason = "unknown"
    try:
        reason = monitor_session(session, settings)
    finally:
        session.stop()
        usage.stop_sweeper()
        print_final_status(session, reason)

    if session.error is not None:
        sys.exit(1)
