"""
Entry point for running real-time detection as a module.

Usage:
    python -m realtime_detection [label]
"""

from .cli import main

if __name__ == "__main__":
    main()
