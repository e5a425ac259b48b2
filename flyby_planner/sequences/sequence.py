"""Flyby sequence value type."""
from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Tuple

from flyby_planner.bodies import BodyCatalog


def is_back_leg(a_from: float, a_to: float, outward: bool) -> bool:
    """A leg moving against the overall origin to destination trend."""
    return a_to < a_from if outward else a_to > a_from


@dataclass(frozen=True, slots=True)
class FlybySequence:
    """
    Bodies visited from origin to destination, inclusive.

    ``resonant`` is the longest run of consecutive legs returning to the same
    body; ``back_legs`` counts legs against the origin to destination trend.
    ``score`` is the screening cost (m/s, lower is better) when the sequence
    came out of the generator.
    """
    ids: Tuple[int, ...]
    names: Tuple[str, ...]
    swing_bys: int
    resonant: int
    back_legs: int
    score: Optional[float] = None

    @property
    def origin_id(self) -> int:
        return self.ids[0]

    @property
    def destination_id(self) -> int:
        return self.ids[-1]

    def __len__(self) -> int:
        return len(self.ids)

    def __str__(self) -> str:
        return "-".join(self.names)

    def with_score(self, score: float) -> FlybySequence:
        return replace(self, score=score)

    @classmethod
    def from_ids(cls, ids: Iterable[int], catalog: BodyCatalog, score: Optional[float] = None) -> FlybySequence:
        ids = tuple(int(b) for b in ids)
        if len(ids) < 2:
            raise ValueError("A flyby sequence needs at least an origin and a destination")
        attractors = {catalog.attractor_of(b) for b in ids}
        if len(attractors) != 1:
            raise ValueError("All bodies of a flyby sequence must orbit the same body")

        axes = [catalog.body(b).elements.a for b in ids]
        outward = axes[-1] >= axes[0]
        resonant = run = back_legs = 0
        for k in range(1, len(ids)):
            if ids[k] == ids[k - 1]:
                run += 1
                resonant = max(resonant, run)
                continue
            run = 0
            if is_back_leg(axes[k - 1], axes[k], outward):
                back_legs += 1

        return cls(
            ids=ids,
            names=tuple(catalog.body(b).name for b in ids),
            swing_bys=len(ids) - 2,
            resonant=resonant,
            back_legs=back_legs,
            score=score,
        )

    @classmethod
    def parse(cls, text: str, catalog: BodyCatalog) -> FlybySequence:
        """Parse ``"Kerbin-Eve-Jool"``, ``"4 2 10"`` or ``"4,Eve,10"``."""
        tokens = [t for t in re.split(r"[\s,\-]+", text.strip()) if t]
        ids = [int(t) if t.isdigit() else catalog.by_name(t).id for t in tokens]
        return cls.from_ids(ids, catalog)
