#!/usr/bin/env python3
"""Convenience runner for the campus run track replayer.

Usage:
    python run.py track.json
"""
import logging
from campus_run.main import main

if __name__ == "__main__":
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s %(name)s: %(message)s")
    raise SystemExit(main())
