"""
Manual trading position lifecycle engine.
"""

__version__ = "1.0"
