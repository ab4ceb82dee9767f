"""
Orthogonal (total least squares) line fitting.

The fitted line minimises perpendicular distances rather than vertical
ones, so near-vertical strokes fit as well as horizontal ones. The result
is clipped to the span of the samples projected onto it.
"""

import numpy as np

from sketchfrag.fitting.linalg import eigen_symmetric_2x2
from sketchfrag.models import LineBasis, Segment2D


def fit_line(xs, ys):
    """
    Fit a line segment to a contiguous range of samples.

    Both eigenvectors of the 2x2 scatter matrix are tried as the line
    normal and the one with the smaller sum of squared perpendicular
    residuals wins.

    Args:
        xs, ys: coordinate arrays of the range

    Returns:
        LineBasis, or None for a single sample or non-finite input
    """
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    num = len(xs)
    if num < 2:
        return None
    if not (np.all(np.isfinite(xs)) and np.all(np.isfinite(ys))):
        return None

    x_mean = float(np.mean(xs))
    y_mean = float(np.mean(ys))
    dx = xs - x_mean
    dy = ys - y_mean
    scatter = [
        [float(np.mean(dx * dx)), float(np.mean(dx * dy))],
        [float(np.mean(dx * dy)), float(np.mean(dy * dy))],
    ]
    _, vectors = eigen_symmetric_2x2(scatter)

    best = None
    best_error = None
    for col in range(2):
        a, b = float(vectors[0, col]), float(vectors[1, col])
        c = -a * x_mean - b * y_mean
        residual = a * xs + b * ys + c
        error = float(np.sum(residual * residual))
        if best is None or error < best_error:
            best = (a, b, c)
            best_error = error

    a, b, c = best
    if num == 2:
        line = Segment2D(p0=[float(xs[0]), float(ys[0])], p1=[float(xs[1]), float(ys[1])])
    else:
        line = _visible_extent(xs, ys, a, b, c)

    params = [a / c, b / c, 1.0] if c != 0.0 else [a, b, 0.0]
    if not np.all(np.isfinite(params)):
        return None

    return LineBasis(
        xs=xs.tolist(),
        ys=ys.tolist(),
        params=params,
        fit_error=best_error,
        line=line,
    )


def _visible_extent(xs, ys, a, b, c):
    """
    Clip the line a*x+b*y+c=0 (unit normal) to the projected samples.

    The segment runs in the stroke's drawing direction: it starts at the
    end nearest the first sample.
    """
    if a == 0.0:
        # horizontal
        y = -c / b
        lo, hi = float(np.min(xs)), float(np.max(xs))
        if xs[0] <= xs[-1]:
            return Segment2D(p0=[lo, y], p1=[hi, y])
        return Segment2D(p0=[hi, y], p1=[lo, y])

    if b == 0.0:
        # vertical
        x = -c / a
        lo, hi = float(np.min(ys)), float(np.max(ys))
        if ys[0] <= ys[-1]:
            return Segment2D(p0=[x, lo], p1=[x, hi])
        return Segment2D(p0=[x, hi], p1=[x, lo])

    offset = a * xs + b * ys + c
    px = xs - offset * a
    py = ys - offset * b

    # position along the line direction (-b, a)
    along = -b * px + a * py
    lo = int(np.argmin(along))
    hi = int(np.argmax(along))
    if along[0] > along[-1]:
        lo, hi = hi, lo
    return Segment2D(p0=[float(px[lo]), float(py[lo])], p1=[float(px[hi]), float(py[hi])])
