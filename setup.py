#!/usr/bin/env python3
"""
RangeKV Setup Script
====================
Allows installation of the rangekv package.

Usage:
    pip install -e .           # Development install
    pip install -e ".[test]"   # With test dependencies
"""

from setuptools import setup, find_packages

setup(
    name="rangekv",
    version="1.0.0",
    packages=find_packages(include=["rangekv", "rangekv.*"]),
    python_requires=">=3.10",
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "rangekv=rangekv.cli:main",
        ],
    },
)
