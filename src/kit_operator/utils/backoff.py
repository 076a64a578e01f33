"""Bounded exponential backoff for failed reconcile passes."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Callable


@dataclass(frozen=True)
class Backoff:
    """Delay before retrying after the given number of consecutive failures.

    delay(n) = min(base * factor ** (n - 1), maximum), spread by +/- jitter.
    """

    base: float = 1.0
    factor: float = 2.0
    maximum: float = 300.0
    jitter: float = 0.1
    rand: Callable[[], float] = field(default=random.random, compare=False, repr=False)

    def delay(self, failures: int) -> float:
        exponent = max(failures, 1) - 1
        # Cap the exponent so a long failure streak does not overflow
        raw = min(self.base * self.factor ** min(exponent, 64), self.maximum)
        spread = raw * self.jitter * (2 * self.rand() - 1)
        return max(0.0, min(raw + spread, self.maximum))
