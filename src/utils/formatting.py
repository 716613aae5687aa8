from __future__ import annotations

RATE_DECIMALS = 6


def format_rate(value: float) -> str:
    return f"{value:.{RATE_DECIMALS}f}"
