"""
Pydantic data models for sketchfrag.

Strokes come in through these models, and every fitted primitive and
fragmentation result goes out through them. Results are frozen once built.
"""

import math
from enum import Enum
from typing import Annotated, Literal, Tuple, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class PrimitiveType(str, Enum):
    """Primitive types a segment can be fitted with."""
    LINE = "L"
    ELLIPSE = "E"


class Stroke(BaseModel):
    """One pen-down to pen-up sequence of [x, y] or [x, y, t] samples."""
    stroke_id: str = ""
    points: Tuple[Tuple[float, ...], ...] = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("points")
    @classmethod
    def _check_points(cls, points):
        width = len(points[0])
        if width not in (2, 3):
            raise ValueError(f"points must be [x, y] or [x, y, t], got {width} values")
        for i, point in enumerate(points):
            if len(point) != width:
                raise ValueError(f"point {i} has {len(point)} values, expected {width}")
            if width == 3 and i > 0 and point[2] < points[i - 1][2]:
                raise ValueError(f"timestamp decreases at point {i}")
        return points

    @classmethod
    def from_xy(cls, xs, ys, timestamps=None, stroke_id=""):
        """Build a stroke from separate coordinate (and optional time) arrays."""
        if timestamps is None:
            rows = [[float(x), float(y)] for x, y in zip(xs, ys)]
        else:
            rows = [[float(x), float(y), float(t)] for x, y, t in zip(xs, ys, timestamps)]
        return cls(stroke_id=stroke_id, points=rows)

    @property
    def num_points(self):
        return len(self.points)

    def coordinates(self):
        """Return read-only (xs, ys) numpy arrays of the samples."""
        arr = np.array([p[:2] for p in self.points], dtype=float)
        xs = arr[:, 0].copy()
        ys = arr[:, 1].copy()
        xs.flags.writeable = False
        ys.flags.writeable = False
        return xs, ys


def as_stroke(obj):
    """
    Coerce a stroke-like object into a Stroke.

    Accepts Stroke instances, (n, 2) or (n, 3) arrays and sequences of
    (x, y[, t]) rows.
    """
    if isinstance(obj, Stroke):
        return obj
    rows = np.asarray(obj, dtype=float)
    if rows.ndim != 2:
        raise ValueError(f"stroke must be a 2-D array of samples, got shape {rows.shape}")
    return Stroke(points=rows.tolist())


class Segment2D(BaseModel):
    """A finite, directed 2-D segment."""
    p0: Tuple[float, float]  # start point
    p1: Tuple[float, float]  # end point

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def length(self):
        return math.hypot(self.p1[0] - self.p0[0], self.p1[1] - self.p0[1])


class Basis(BaseModel):
    """
    Fit of one primitive to one contiguous range of one stroke.

    params are (a, b, c) of ax+by+c=0 for a line and (a, b, c, d, e, f) of
    ax^2+bxy+cy^2+dx+ey+f=0 for an ellipse.
    """
    kind: PrimitiveType
    xs: Tuple[float, ...]
    ys: Tuple[float, ...]
    params: Tuple[float, ...]
    fit_error: float

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def num_points(self):
        return len(self.xs)


class LineBasis(Basis):
    """A line fitted by total least squares, clipped to the samples it covers."""
    kind: Literal[PrimitiveType.LINE] = PrimitiveType.LINE
    params: Tuple[float, ...] = Field(..., min_length=3, max_length=3)
    line: Segment2D

    @property
    def length(self):
        return self.line.length


class EllipseBasis(Basis):
    """An elliptical arc with its derived geometric descriptors."""
    kind: Literal[PrimitiveType.ELLIPSE] = PrimitiveType.ELLIPSE
    params: Tuple[float, ...] = Field(..., min_length=6, max_length=6)
    center: Tuple[float, float]
    major_axis: Segment2D
    minor_axis: Segment2D
    major_length: float
    minor_length: float
    eccentricity: float  # minor/major, 1.0 for a circle
    circumference: float  # path length of the traced arc
    midpoint: Tuple[float, float]
    arc_points: Tuple[Tuple[float, float], ...]

    def arc_between(self, start, end, num_samples=50):
        """
        Regenerate the arc of this ellipse from start to end.

        Direction follows this basis's middle sample. Returns a list of
        [x, y] points, empty when fewer than three samples are usable.
        """
        from sketchfrag.fitting.conic import trace_arc

        middle = (self.xs[self.num_points // 2], self.ys[self.num_points // 2])
        arc = trace_arc(self.params, start, middle, end, num_samples)
        return [] if arc is None else arc.tolist()


AnyBasis = Annotated[Union[LineBasis, EllipseBasis], Field(discriminator="kind")]


class Breakpoint(BaseModel):
    """An interior segment boundary on one stroke."""
    stroke_index: int = Field(..., ge=0)
    point_index: int = Field(..., ge=1)

    model_config = ConfigDict(extra="forbid", frozen=True)


class FitData(BaseModel):
    """Complete fragmentation of a stroke sequence into fitted bases."""
    bases: Tuple[AnyBasis, ...]
    stroke_indices: Tuple[int, ...]
    num_strokes: int
    breakpoints: Tuple[Tuple[int, ...], ...]  # per stroke, interior point indices
    total_fit_error: float
    template: str

    model_config = ConfigDict(extra="forbid", frozen=True)

    @model_validator(mode="after")
    def _check_consistency(self):
        if not (len(self.bases) == len(self.stroke_indices) == len(self.template)):
            raise ValueError("bases, stroke_indices and template lengths differ")
        if len(self.breakpoints) != self.num_strokes:
            raise ValueError("one breakpoint list per stroke is required")
        if any(b < a for a, b in zip(self.stroke_indices, self.stroke_indices[1:])):
            raise ValueError("bases must be in stroke order")
        for i, bpts in enumerate(self.breakpoints):
            if self.stroke_indices.count(i) != len(bpts) + 1:
                raise ValueError(f"stroke {i} has {len(bpts)} breakpoints but "
                                 f"{self.stroke_indices.count(i)} bases")
            if any(b <= a for a, b in zip(bpts, bpts[1:])):
                raise ValueError(f"breakpoints on stroke {i} are not strictly increasing")
        return self

    @property
    def basis_count(self):
        return len(self.bases)

    def bases_on_stroke(self, stroke_index):
        """Return the bases fitted to the given stroke, in order."""
        return [b for b, s in zip(self.bases, self.stroke_indices) if s == stroke_index]

    def breakpoints_on_stroke(self, stroke_index):
        """Return the interior breakpoint indices on the given stroke."""
        return list(self.breakpoints[stroke_index])

    def all_breakpoints(self):
        """Return every breakpoint in stroke order."""
        return [
            Breakpoint(stroke_index=i, point_index=p)
            for i, bpts in enumerate(self.breakpoints)
            for p in bpts
        ]

    def segment_ranges(self):
        """
        Return (stroke_index, start, end) for each basis.

        Indices are inclusive; neighbouring segments on one stroke share
        their breakpoint sample.
        """
        ranges = []
        starts = {}
        for basis, stroke_index in zip(self.bases, self.stroke_indices):
            start = starts.get(stroke_index, 0)
            end = start + basis.num_points - 1
            ranges.append((stroke_index, start, end))
            starts[stroke_index] = end
        return ranges

    def summary(self):
        """Readable multi-line description of breakpoints and error."""
        lines = ["Breakpoints:"]
        for i, bpts in enumerate(self.breakpoints):
            lines.append(f"  stroke #{i}: [{', '.join(str(b) for b in bpts)}]")
        lines.append(self.template)
        lines.append(f"Total fit error: {self.total_fit_error}")
        return "\n".join(lines)


def build_fit_data(bases, stroke_indices, breakpoints, num_strokes):
    """
    Assemble a FitData from bases in stroke order.

    Args:
        bases: fitted LineBasis/EllipseBasis objects in forward order
        stroke_indices: source stroke of each basis
        breakpoints: Breakpoint objects (any order)
        num_strokes: number of strokes in the input

    Returns:
        FitData with total error and template derived from the bases
    """
    per_stroke = [[] for _ in range(num_strokes)]
    for bpt in sorted(breakpoints, key=lambda b: (b.stroke_index, b.point_index)):
        per_stroke[bpt.stroke_index].append(bpt.point_index)

    total = 0.0
    for basis in bases:
        total += basis.fit_error

    return FitData(
        bases=list(bases),
        stroke_indices=list(stroke_indices),
        num_strokes=num_strokes,
        breakpoints=per_stroke,
        total_fit_error=total,
        template="".join(b.kind.value for b in bases),
    )
