"""
Query module for VCDB - version reads and diffs.
"""

from .diff import DiffGenerator, diff_attributes, symmetric_diff
from .reader import VersionReader

__all__ = ["VersionReader", "DiffGenerator", "diff_attributes", "symmetric_diff"]
