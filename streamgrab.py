#!/usr/bin/env python3
# /// script
# dependencies = [
#   "click",
#   "loguru",
#   "pydub",
#   "python-dotenv",
#   "requests",
#   "questionary",
#   "rich",
#   "browser-cookie3",
# ]
# ///

"""
stream-grab - Wrapper Script

This script wraps the stream_grab package CLI.
"""

import sys
import os

# Add current directory to path so we can import the package
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from stream_grab.cli import main

if __name__ == "__main__":
    main()
