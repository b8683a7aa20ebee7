#!/usr/bin/env python3
"""
RevComps Free Entry
Run with ``python main.py`` from a checkout; installs expose ``revcomps-entry``.
"""

import sys
from pathlib import Path

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from revcomps_entry.main import main

if __name__ == "__main__":
    main()
