#!/usr/bin/env python3
"""
setup.py compatibility wrapper for tools that still expect one.

servicehub is configured in pyproject.toml with hatchling as the build
backend. For normal installation, use:
    pip install .
"""

from setuptools import setup

# Configuration lives in pyproject.toml
setup()
