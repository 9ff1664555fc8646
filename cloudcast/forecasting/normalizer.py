"""Min-max scaling of metric values for training."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

DEGENERATE_VALUE = 0.5


@dataclass(frozen=True)
class NormalizationContext:
    min: float
    max: float

    @property
    def span(self) -> float:
        return self.max - self.min

    @property
    def is_degenerate(self) -> bool:
        return not self.span > 0


def normalize(values: Sequence[float]) -> tuple[np.ndarray, NormalizationContext]:
    """Rescale ``values`` into [0, 1].

    A constant (or single-value) series has no span to divide by, so every
    value maps to 0.5 instead.
    """
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 0:
        raise ValueError("cannot normalize an empty series")

    context = NormalizationContext(min=float(arr.min()), max=float(arr.max()))
    if context.is_degenerate:
        return np.full(arr.shape, DEGENERATE_VALUE), context
    return (arr - context.min) / context.span, context


def denormalize(value: float, context: NormalizationContext) -> float:
    """Map a normalized value back to the original scale."""
    if context.is_degenerate:
        return context.min
    return float(value) * context.span + context.min
