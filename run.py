#!/usr/bin/env python3
"""iTerm Tab Watch - Run the application.

Usage:
    python run.py
    # Or: python -m tabwatch.app

The API will be available at http://localhost:5051/api
"""

from tabwatch.app import main

if __name__ == "__main__":
    main()
