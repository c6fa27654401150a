"""
Module: backend/utils/rounding.py
Integer rounding shared by scores and dashboard percentages.
"""
from __future__ import annotations
import math


def round_half_up(value: float) -> int:
    """Halves round toward positive infinity: 2.5 -> 3, -2.5 -> -2."""
    return math.floor(value + 0.5)
