from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")


@dataclass
class RNG:
    """Seedable source for every random decision of a studio.

    Goal templates, snippet picks and the per-tick news roll all draw from
    one injected instance, so a fixed seed replays a whole session.
    """

    seed: Optional[int] = None

    def __post_init__(self) -> None:
        self._rng = random.Random(self.seed)

    def random(self) -> float:
        return self._rng.random()

    def chance(self, probability: float) -> bool:
        """True with the given probability (clamped to [0, 1])."""
        return self._rng.random() < min(1.0, max(0.0, probability))

    def choice(self, seq: Sequence[T]) -> T:
        """Uniform pick; IndexError on an empty sequence."""
        if not seq:
            raise IndexError("Cannot choose from an empty sequence")
        return seq[self._rng.randrange(len(seq))]

    def token_hex(self, nbytes: int = 4) -> str:
        return "%0*x" % (nbytes * 2, self._rng.getrandbits(nbytes * 8))
