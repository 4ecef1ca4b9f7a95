"""
MorphologyConfig — execution parameters shared by the filter engine and reconstruction.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass
class MorphologyConfig:
    # ------------------------------------------------------------------ #
    # Generic (arbitrary mask) filter path
    # ------------------------------------------------------------------ #
    workers: int = 1                # threads folding disjoint row blocks
                                    # 1 = sequential (no thread pool)
    min_rows_per_worker: int = 16   # smaller blocks are not worth a thread

    # ------------------------------------------------------------------ #
    # Reconstruction
    # ------------------------------------------------------------------ #
    max_iterations: Optional[int] = None   # None → number of array elements

    def __post_init__(self):
        if self.workers < 1:
            raise ValueError("workers must be >= 1")
        if self.min_rows_per_worker < 1:
            raise ValueError("min_rows_per_worker must be >= 1")
        if self.max_iterations is not None and self.max_iterations < 1:
            raise ValueError("max_iterations must be >= 1 or None")

    def iteration_cap(self, shape: Tuple[int, ...]) -> int:
        """
        Resolve the reconstruction iteration cap for an array of ``shape``.

        A geodesic propagation path never revisits a pixel, so the element
        count bounds the number of productive iterations; the default cap
        therefore never cuts a converging run short.
        """
        if self.max_iterations is not None:
            return self.max_iterations
        return max(1, math.prod(shape))


DEFAULT_CONFIG = MorphologyConfig()
