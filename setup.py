#! /usr/bin/env python3
#setup.py
"""
Module: setup
Provides setup functionality for the ManualTrader position engine.
"""
from setuptools import setup, find_packages

setup(
    name="ManualTrader",
    version="1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=[
        "PyYAML>=6.0",
        "aiosqlite>=0.19",
        "pandas>=2.0",
        "simplejson>=3.17",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "manual-trader=manual_trader.execution.bot:main",
        ],
    },
)
