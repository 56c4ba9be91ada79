#!/usr/bin/env python3
"""
Test suite for the matching engine.

All tests run against SQLite files in temporary directories and mock Redis/RQ,
so no external services are needed:

    python -m pytest tests/ -v

    # Using unittest
    python -m unittest discover tests -v
"""
