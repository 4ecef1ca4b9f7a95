"""
Shared fixtures and reference helpers for ndmorph tests.

``naive_extreme_filter`` is the per-pixel definition of the extreme filter
written with plain Python loops: start from the pixel value, fold the
select function over every in-bounds neighbour in offset order.  The fast
and generic engine paths are checked against it on small arrays.

Small integer matrices are written row by row so the expected results of
the worked examples can be read off directly.
"""
from __future__ import annotations

import numpy as np
import pytest


def naive_extreme_filter(f, image: np.ndarray, offsets) -> np.ndarray:
    """Reference extreme filter: one Python fold per pixel, no vectorization."""
    image = np.asarray(image)
    offsets = [tuple(int(v) for v in o) for o in np.asarray(offsets).reshape(-1, image.ndim)]
    out = np.empty_like(image)
    for p in np.ndindex(*image.shape):
        acc = image[p]
        for o in offsets:
            q = tuple(pi + oi for pi, oi in zip(p, o))
            if all(0 <= qi < n for qi, n in zip(q, image.shape)):
                acc = f(acc, image[q])
        out[p] = acc
    return out


def random_image(rng: np.random.Generator, shape, dtype=np.uint8) -> np.ndarray:
    """Random image of ``dtype`` with plenty of ties (values in 0..9)."""
    dtype = np.dtype(dtype)
    if dtype.kind == "b":
        return rng.random(shape) < 0.3
    if dtype.kind == "f":
        return rng.integers(0, 10, shape).astype(dtype) / dtype.type(10)
    return rng.integers(0, 10, shape).astype(dtype)


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def matrix5():
    """5×5 integer image used by the worked filter examples."""
    return np.array([
        [4, 6, 5, 3, 4],
        [8, 6, 9, 4, 8],
        [7, 8, 4, 9, 6],
        [6, 2, 2, 1, 7],
        [1, 6, 5, 2, 6],
    ])


@pytest.fixture
def ring_image():
    """7×7 bool image: a closed square ring around a 3×3 hole."""
    img = np.zeros((7, 7), dtype=bool)
    img[1:6, 1:6] = True
    img[2:5, 2:5] = False
    return img
