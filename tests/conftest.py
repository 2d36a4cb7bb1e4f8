"""Pytest fixtures for STL document tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import List

import pytest

# Make the root modules importable when running tests directly via pytest
sys.path.append(str(Path(__file__).resolve().parents[1]))

from stl_document import Facet, STLDocument  # noqa: E402

# Outward-wound triangles of the cube [0, 10]^3, two per side.
CUBE_TRIANGLES = [
    ((0, 0, -1), ((0, 0, 0), (0, 10, 0), (10, 10, 0))),
    ((0, 0, -1), ((0, 0, 0), (10, 10, 0), (10, 0, 0))),
    ((0, 0, 1), ((0, 0, 10), (10, 0, 10), (10, 10, 10))),
    ((0, 0, 1), ((0, 0, 10), (10, 10, 10), (0, 10, 10))),
    ((0, -1, 0), ((0, 0, 0), (10, 0, 0), (10, 0, 10))),
    ((0, -1, 0), ((0, 0, 0), (10, 0, 10), (0, 0, 10))),
    ((0, 1, 0), ((0, 10, 0), (0, 10, 10), (10, 10, 10))),
    ((0, 1, 0), ((0, 10, 0), (10, 10, 10), (10, 10, 0))),
    ((-1, 0, 0), ((0, 0, 0), (0, 0, 10), (0, 10, 10))),
    ((-1, 0, 0), ((0, 0, 0), (0, 10, 10), (0, 10, 0))),
    ((1, 0, 0), ((10, 0, 0), (10, 10, 0), (10, 10, 10))),
    ((1, 0, 0), ((10, 0, 0), (10, 10, 10), (10, 0, 10))),
]


def make_cube_facets(offset: float = 0.0) -> List[Facet]:
    """Build the 10 mm cube, translated by ``offset`` along every axis."""
    return [
        Facet(
            normal,
            tuple((x + offset, y + offset, z + offset) for x, y, z in vertices),
        )
        for normal, vertices in CUBE_TRIANGLES
    ]


@pytest.fixture
def cube_document() -> STLDocument:
    """A closed, outward-wound 10 x 10 x 10 mm cube."""
    return STLDocument("cube", make_cube_facets())


@pytest.fixture
def single_facet() -> Facet:
    """A right triangle in the XY plane."""
    return Facet((0, 0, 1), ((0, 0, 0), (10, 0, 0), (0, 10, 0)))
