"""Formatting helpers for user-facing messages."""

from __future__ import annotations

import math


def round_half_up(value: float, step: int = 1) -> int:
    """Round to the nearest multiple of ``step``, halves away from zero."""
    scaled = abs(value) / step
    rounded = int(math.floor(scaled + 0.5)) * step
    return rounded if value >= 0 else -rounded


def format_euros(amount: float) -> str:
    """Format an amount the French way: ``245 000 €``."""
    return f"{round_half_up(amount):,} €".replace(",", " ")
