#!/usr/bin/env python3
"""
LST Analysis Tool - Main Application
====================================
"""

import sys
import os

# Ensure src is in python path
sys.path.append(os.path.join(os.path.dirname(__file__), 'src'))

from lst_mon.cli import main

if __name__ == "__main__":
    sys.exit(main())
