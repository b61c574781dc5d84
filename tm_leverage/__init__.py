"""Segmented Translation Memory leverage engine"""

__version__ = "1.0.0"
