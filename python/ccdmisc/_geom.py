# This file is part of ccd-misc.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

__all__ = (
    "Box",
    "Interval",
)

from typing import final


@final
class Interval:
    """A 1-d half-open integer pixel range with positive size.

    Parameters
    ----------
    start
        Inclusive first pixel index.
    stop
        One past the last pixel index.
    """

    def __init__(self, start: int, stop: int):
        # Coerce numpy integer scalars and click-parsed values alike.
        self._start = int(start)
        self._stop = int(stop)
        if not (self._stop > self._start):
            raise ValueError(f"Interval must have positive size; got [{self._start}, {self._stop})")

    __slots__ = ("_start", "_stop")

    @classmethod
    def from_size(cls, size: int, start: int = 0) -> Interval:
        """Construct an interval from its size and optional start."""
        return cls(start=start, stop=start + size)

    @property
    def start(self) -> int:
        """Inclusive first pixel index."""
        return self._start

    @property
    def stop(self) -> int:
        """One past the last pixel index."""
        return self._stop

    @property
    def size(self) -> int:
        """Number of pixels in the interval."""
        return self._stop - self._start

    def __str__(self) -> str:
        return f"{self._start}:{self._stop}"

    def __repr__(self) -> str:
        return f"Interval(start={self._start}, stop={self._stop})"

    def __eq__(self, other: object) -> bool:
        if type(other) is Interval:
            return self._start == other._start and self._stop == other._stop
        return False

    def __hash__(self) -> int:
        return hash((self._start, self._stop))

    def __contains__(self, x: int) -> bool:
        return self._start <= x < self._stop

    def contains(self, other: Interval) -> bool:
        """Test whether this interval fully contains another."""
        return self._start <= other._start and self._stop >= other._stop

    def slice_within(self, other: Interval) -> slice:
        """Return the `slice` that selects this interval from an array axis
        whose items correspond to ``other``.

        This assumes ``other.contains(self)``.
        """
        return slice(self._start - other._start, self._stop - other._start)


@final
class Box:
    """A 2-d rectangular pixel region.

    Parameters
    ----------
    y
        Row range.
    x
        Column range.

    Notes
    -----
    Arguments are in numpy (row, column) order so that ``box.shape`` matches
    the shape of the array the box selects.
    """

    def __init__(self, y: Interval, x: Interval):
        self._y = y
        self._x = x

    __slots__ = ("_x", "_y")

    @classmethod
    def from_shape(cls, shape: tuple[int, int]) -> Box:
        """Construct the box covering an entire array of the given shape."""
        height, width = shape
        return cls(Interval.from_size(height), Interval.from_size(width))

    @classmethod
    def from_corners(cls, x0: int, y0: int, x1: int, y1: int) -> Box:
        """Construct a box from an inclusive lower corner and an exclusive
        upper corner, both given as (x, y).

        Raises
        ------
        ValueError
            Raised if the box would be empty.
        """
        return cls(Interval(y0, y1), Interval(x0, x1))

    @property
    def x(self) -> Interval:
        """Column range."""
        return self._x

    @property
    def y(self) -> Interval:
        """Row range."""
        return self._y

    @property
    def shape(self) -> tuple[int, int]:
        """Numpy shape of the region, ``(height, width)``."""
        return (self._y.size, self._x.size)

    def __str__(self) -> str:
        return f"[{self._y}, {self._x}]"

    def __repr__(self) -> str:
        return f"Box(y={self._y!r}, x={self._x!r})"

    def __eq__(self, other: object) -> bool:
        if type(other) is Box:
            return self._x == other._x and self._y == other._y
        return False

    def __hash__(self) -> int:
        return hash((self._y, self._x))

    def contains(self, other: Box) -> bool:
        """Test whether this box fully contains another."""
        return self._x.contains(other._x) and self._y.contains(other._y)

    def slice_within(self, other: Box) -> tuple[slice, slice]:
        """Return the ``(row, column)`` slices that select this box from an
        array whose items correspond to ``other``.

        This assumes ``other.contains(self)``.
        """
        return (self._y.slice_within(other._y), self._x.slice_within(other._x))
