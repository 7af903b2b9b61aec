from __future__ import annotations

from typing import Optional


def to_float(value) -> Optional[float]:
    """Money/rate columns come back as Decimal; the API exposes plain numbers."""
    if value is None:
        return None
    return float(value)


def to_int(value) -> int:
    return int(value or 0)
