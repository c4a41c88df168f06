"""Arithmetic over the five-channel yield vector."""

import math

from tribes_core.schemas.game_state import Yields

YIELD_CHANNELS = ("gold", "research", "culture", "production", "growth")

ZERO_YIELDS = Yields()


def add_yields(a: Yields, b: Yields) -> Yields:
    """Component-wise sum of two yield vectors."""
    return Yields(**{channel: getattr(a, channel) + getattr(b, channel) for channel in YIELD_CHANNELS})


def scale_yields(yields: Yields, factor: float) -> Yields:
    """Multiply every channel by factor and floor the result."""
    return Yields(
        **{channel: math.floor(getattr(yields, channel) * factor) for channel in YIELD_CHANNELS}
    )


def sum_yields(items: list[Yields]) -> Yields:
    total = ZERO_YIELDS
    for item in items:
        total = add_yields(total, item)
    return total
