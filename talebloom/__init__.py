"""Talebloom - illustrated children's story backend"""

__version__ = "1.0.0"
