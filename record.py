#!/usr/bin/env python3
"""
Convenience entry point for boids recording.

Usage:
    python record.py --preset tight_school   # Start new recording
    python record.py --resume                # Resume interrupted recording
    python record.py --status                # Check recording status
    python record.py --list                  # List all recordings
"""

from tools.record import main

if __name__ == "__main__":
    main()
