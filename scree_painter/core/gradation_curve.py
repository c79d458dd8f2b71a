"""
Gradation (tone) curves.

A gradation curve is a list of control points in the unit square. The
curve is evaluated with a uniform Catmull-Rom spline and converted to a
256 entry lookup table that remaps 8 bit brightness values. Tables are
used to bias the density and size of scree stones and the density of
gully lines by brightness.
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np

# Catmull-Rom basis matrix
_BASIS = np.array(
    [
        [-0.5, 1.5, -1.5, 0.5],
        [1.0, -2.5, 2.0, -0.5],
        [-0.5, 0.0, 0.5, 0.0],
        [0.0, 1.0, 0.0, 0.0],
    ]
)

TABLE_SIZE = 256
SAMPLES = 1024


def _clamp(v, lo, hi):
    return lo if v < lo else hi if v > hi else v


def spline(t: float, knots: Sequence[float]) -> float:
    """
    Evaluate a uniform Catmull-Rom spline through ``knots`` at ``t`` in [0, 1].

    The first and last knot only shape the tangents, the curve runs from
    ``knots[1]`` to ``knots[-2]``.
    """
    num_knots = len(knots)
    num_spans = num_knots - 3
    if num_spans < 1:
        raise ValueError("Too few knots in spline")

    t = _clamp(t, 0.0, 1.0) * num_spans
    span = int(t)
    if span > num_knots - 4:
        span = num_knots - 4
    t -= span

    c3, c2, c1, c0 = _BASIS @ np.asarray(knots[span:span + 4], dtype=float)
    return ((c3 * t + c2) * t + c1) * t + c0


class GradationCurve:
    """Control points of a gradation curve, sorted by x."""

    def __init__(self, knots: Optional[Sequence[Tuple[float, float]]] = None):
        if knots is None:
            knots = [(0.0, 0.0), (1.0, 1.0)]
        self.x: List[float] = []
        self.y: List[float] = []
        for kx, ky in knots:
            self.add_knot(kx, ky)
        if len(self.x) < 2:
            raise ValueError("A gradation curve needs at least two knots")

    @property
    def knots(self) -> List[Tuple[float, float]]:
        return list(zip(self.x, self.y))

    def copy(self) -> "GradationCurve":
        return GradationCurve(self.knots)

    def add_knot(self, kx: float, ky: float) -> int:
        """Insert a knot, keeping knots ordered by x. Returns its index."""
        kx, ky = float(kx), float(ky)
        for i, (x, y) in enumerate(zip(self.x, self.y)):
            if x == kx and y == ky:
                return i

        pos = len(self.x)
        for i, x in enumerate(self.x):
            if x > kx:
                pos = i
                break
        self.x.insert(pos, kx)
        self.y.insert(pos, ky)
        return pos

    def remove_knot(self, index: int) -> None:
        """Remove a knot. A curve always keeps at least two knots."""
        if len(self.x) <= 2:
            return
        del self.x[index]
        del self.y[index]

    def make_table(self) -> np.ndarray:
        """
        Build the 256 entry byte-to-byte lookup table for this curve.

        The knot sequence is padded by duplicating the first and the last
        knot, so the curve passes through every control point including
        the end points.

        Returns:
            Integer array of length 256
        """
        nx = [self.x[0]] + self.x + [self.x[-1]]
        ny = [self.y[0]] + self.y + [self.y[-1]]

        table = np.zeros(TABLE_SIZE, dtype=np.int32)
        for i in range(SAMPLES):
            t = i / SAMPLES
            px = _clamp(int(255 * spline(t, nx) + 0.5), 0, 255)
            py = _clamp(int(255 * spline(t, ny) + 0.5), 0, 255)
            table[px] = py
        return table

    # alias matching the name used in the curve editor
    build_table = make_table

    def apply_to_grid(self, values: np.ndarray, table: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Remap every cell of ``values`` in place through the lookup table.

        Values below 0 map to ``table[0]``, values above 255 to ``table[255]``.
        """
        if table is None:
            table = self.make_table()
        values[...] = lookup(table, values)
        return values

    def to_string(self) -> str:
        return " ".join(f"{x!r} {y!r}" for x, y in zip(self.x, self.y))

    @classmethod
    def from_string(cls, text: str) -> "GradationCurve":
        tokens = text.split()
        if len(tokens) % 2 != 0:
            raise ValueError(f"Odd number of values in gradation curve: {text!r}")
        values = [float(t) for t in tokens]
        knots = list(zip(values[0::2], values[1::2]))
        if len(knots) < 2:
            return cls()
        return cls(knots)

    def __eq__(self, other) -> bool:
        if not isinstance(other, GradationCurve):
            return NotImplemented
        return self.x == other.x and self.y == other.y

    def __repr__(self) -> str:
        return f"GradationCurve({self.knots!r})"


def lookup(table: np.ndarray, values: np.ndarray) -> np.ndarray:
    """Map values through a 256 entry table, clamping indices to the table."""
    indices = np.clip(values, 0, TABLE_SIZE - 1).astype(np.int64)
    return table[indices]
