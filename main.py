#!/usr/bin/env python3
"""
Main entry point for h2raw.

This wrapper script allows running the tool directly with python main.py
without installing the package first.
"""

import os
import sys

sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from h2raw.cli.main import main

if __name__ == "__main__":
    main()
