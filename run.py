#!/usr/bin/env python3
"""Claude Tracker - Run the application.

Usage:
    python run.py
    # Or: python -m claude_tracker.app

The API will be available at http://localhost:5050/api/sessions
"""

from claude_tracker.app import main

if __name__ == "__main__":
    main()
