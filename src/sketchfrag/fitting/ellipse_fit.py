"""
Ellipse-specific direct least-squares fitting.

Implements the method of Fitzgibbon, Pilu and Fisher ("Direct least-square
fitting of ellipses", ICPR 1996): minimise the algebraic distance of the
samples to the conic ax^2+bxy+cy^2+dx+ey+f=0 subject to 4ac-b^2 = 1. The
constrained problem is a generalized eigenproblem S.a = l.C.a, solved here
through a Cholesky factor of the scatter matrix S and a Jacobi sweep on the
resulting symmetric matrix.

A successful fit is published as an EllipseBasis carrying its fit error and
derived geometry (center, axes, eccentricity, traced arc).
"""

import math

import numpy as np

from sketchfrag.config import EllipseConfig
from sketchfrag.errors import (
    FragmentationError, InsufficientPointsError, NotPositiveDefiniteError, NumericalError,
)
from sketchfrag.fitting.conic import path_length, select_arc, sample_conic
from sketchfrag.fitting.linalg import (
    SINGULAR_EPSILON, cholesky, eigen_symmetric_2x2, invert_gauss_jordan, jacobi_eigen,
    mat_mul, mat_mul_t, mat_t_mul,
)
from sketchfrag.models import EllipseBasis, Segment2D
from sketchfrag.tracer import get_tracer

MIN_ELLIPSE_POINTS = 6

# a^T C a = b^2 - 4ac, negative for every ellipse
CONSTRAINT = np.array([
    [0.0, 0.0, -2.0, 0.0, 0.0, 0.0],
    [0.0, 1.0, 0.0, 0.0, 0.0, 0.0],
    [-2.0, 0.0, 0.0, 0.0, 0.0, 0.0],
    [0.0, 0.0, 0.0, 0.0, 0.0, 0.0],
    [0.0, 0.0, 0.0, 0.0, 0.0, 0.0],
    [0.0, 0.0, 0.0, 0.0, 0.0, 0.0],
])


def fit_ellipse(xs, ys, config=None):
    """
    Fit an elliptical arc to a contiguous range of samples.

    Args:
        xs, ys: coordinate arrays of the range
        config: EllipseConfig (defaults if None)

    Returns:
        EllipseBasis, or None when no ellipse can be fitted (too few points,
        degenerate scatter, all-zero solution or non-finite error)
    """
    config = config or EllipseConfig()
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)

    try:
        params = solve_conic(xs, ys, config)
        return _build_basis(xs, ys, params, config)
    except FragmentationError as e:
        tracer = get_tracer()
        if tracer.enabled_for("DEBUG"):
            tracer.event(f"ellipse no-fit: {e}", level="DEBUG", points=len(xs))
        return None


def solve_conic(xs, ys, config=None):
    """
    Solve for the conic coefficients of the best-fitting ellipse.

    Returns:
        (a, b, c, d, e, f) as a numpy array, scaled so that sqrt(a*c) = 1
        and a > 0

    Raises:
        InsufficientPointsError: fewer than min_points samples
        NumericalError: degenerate scatter, no ellipse-specific root, or an
        all-zero solution
    """
    config = config or EllipseConfig()
    minimum = max(MIN_ELLIPSE_POINTS, config.min_points)
    if len(xs) < minimum:
        raise InsufficientPointsError("ellipse", len(xs), minimum)

    if config.normalize:
        cx, cy = float(np.mean(xs)), float(np.mean(ys))
        scale = float(np.sqrt(np.mean((xs - cx) ** 2 + (ys - cy) ** 2)))
        if not scale > 0.0:
            raise NumericalError("all samples coincide")
    else:
        cx, cy, scale = 0.0, 0.0, 1.0
    u = (xs - cx) / scale
    v = (ys - cy) / scale

    design = np.column_stack([u * u, u * v, v * v, u, v, np.ones_like(u)])
    scatter = mat_t_mul(design, design)

    try:
        lower = cholesky(scatter)
    except NotPositiveDefiniteError as e:
        # Samples lying exactly on a conic leave S singular only in its
        # last pivot; any earlier failure is a genuinely degenerate set.
        # Lifting that pivot alone keeps the leading factor, and with it
        # the recovered null direction, unchanged.
        if e.pivot != len(scatter) - 1:
            raise
        lifted = scatter.copy()
        lifted[-1, -1] += config.regularization * np.trace(scatter) / len(scatter)
        lower = cholesky(lifted)

    inv_lower = invert_gauss_jordan(lower, config.pivot_epsilon)
    transformed = mat_mul(inv_lower, mat_mul_t(CONSTRAINT, inv_lower))
    transformed = 0.5 * (transformed + transformed.T)
    values, vectors = jacobi_eigen(transformed)

    solutions = mat_t_mul(inv_lower, vectors)
    solutions = solutions / np.sqrt(np.sum(solutions * solutions, axis=0))

    # Exactly one eigenvalue is negative in exact arithmetic; the three
    # null ones carry rounding noise of either sign, so take the most
    # negative.
    chosen = None
    for i, value in enumerate(values):
        if value < 0.0 and abs(value) > config.zero_eigenvalue:
            if chosen is None or value < values[chosen]:
                chosen = i
    if chosen is None:
        raise NumericalError("no ellipse-specific eigenvalue")

    pvec = solutions[:, chosen]
    if not np.any(pvec):
        raise NumericalError("all-zero conic coefficients")

    pvec = _denormalize(pvec, cx, cy, scale)

    norm_factor = math.sqrt(pvec[0] * pvec[2]) if pvec[0] * pvec[2] > 0.0 else float("nan")
    if pvec[0] < 0.0:
        norm_factor = -norm_factor
    pvec = pvec / norm_factor
    if not np.all(np.isfinite(pvec)):
        raise NumericalError("conic is not an ellipse")
    return pvec


def _denormalize(pvec, cx, cy, scale):
    """Map a conic fitted in (x-cx)/scale, (y-cy)/scale back to x, y."""
    a, b, c, d, e, f = pvec
    return np.array([
        a,
        b,
        c,
        -2.0 * a * cx - b * cy + d * scale,
        -b * cx - 2.0 * c * cy + e * scale,
        a * cx * cx + b * cx * cy + c * cy * cy - d * scale * cx - e * scale * cy + f * scale * scale,
    ])


def conic_fit_error(xs, ys, params, epsilon=SINGULAR_EPSILON):
    """
    Radial residual of the samples against a fitted ellipse.

    With Q the quadratic part and g the linear part, the conic value at
    the center is shift = f - g^T Q^-1 g / 4. Each sample contributes
    (sqrt(F(x, y) - shift) - sqrt(|shift|))^2, zero on the curve.

    Returns:
        (error, shift)
    """
    a, b, c, d, e, f = params
    quad = np.array([[a, b / 2.0], [b / 2.0, c]])
    quad_inv = invert_gauss_jordan(quad, epsilon)
    g = np.array([d, e])
    shift = f - 0.25 * float(g @ quad_inv @ g)

    values = a * xs * xs + b * xs * ys + c * ys * ys + d * xs + e * ys + f
    with np.errstate(invalid="ignore"):
        residual = np.sqrt(values - shift) - math.sqrt(abs(shift))
    return float(np.sum(residual * residual)), shift


def _build_basis(xs, ys, params, config):
    """Derive the geometric descriptors and assemble the basis."""
    error, shift = conic_fit_error(xs, ys, params, config.pivot_epsilon)
    if not math.isfinite(error):
        raise NumericalError("fit error is not finite")

    a, b, c, d, e, _ = params
    values, vectors = eigen_symmetric_2x2([[a, b / 2.0], [b / 2.0, c]])
    max_val, min_val = values
    if not (min_val > 0.0 and shift < 0.0):
        raise NumericalError("quadratic part does not describe a real ellipse")
    major_length = 2.0 * math.sqrt(-shift / min_val)
    minor_length = 2.0 * math.sqrt(-shift / max_val)

    # center solves [[a, b/2], [b/2, c]] [x, y]^T = -[d/2, e/2]^T
    denom = a * c - b * b / 4.0
    center_x = (-d / 2.0 * c + e / 2.0 * b / 2.0) / denom
    center_y = (-a * e / 2.0 + d / 2.0 * b / 2.0) / denom
    if not (math.isfinite(center_x) and math.isfinite(center_y)):
        raise NumericalError("center is not finite")

    # smallest eigenvalue of Q runs along the major axis
    major_dir = vectors[:, 1]
    minor_dir = vectors[:, 0]
    major_axis = _axis_segment(center_x, center_y, major_dir, major_length / 2.0)
    minor_axis = _axis_segment(center_x, center_y, minor_dir, minor_length / 2.0)

    n = len(xs)
    samples = sample_conic(params, config.arc_samples)
    arc = select_arc(
        samples,
        (xs[0], ys[0]),
        (xs[n // 2], ys[n // 2]),
        (xs[-1], ys[-1]),
    )
    if arc is None:
        raise NumericalError("conic yields no traceable arc")

    return EllipseBasis(
        xs=xs.tolist(),
        ys=ys.tolist(),
        params=[float(p) for p in params],
        fit_error=error,
        center=[center_x, center_y],
        major_axis=major_axis,
        minor_axis=minor_axis,
        major_length=major_length,
        minor_length=minor_length,
        eccentricity=minor_length / major_length,
        circumference=path_length(arc),
        midpoint=_stroke_midpoint(xs, ys),
        arc_points=arc.tolist(),
    )


def _axis_segment(cx, cy, direction, half_length):
    dx = float(direction[0]) * half_length
    dy = float(direction[1]) * half_length
    return Segment2D(p0=[cx + dx, cy + dy], p1=[cx - dx, cy - dy])


def _stroke_midpoint(xs, ys):
    """Point halfway along the input polyline by arc length."""
    steps = np.hypot(np.diff(xs), np.diff(ys))
    half = steps.sum() / 2.0
    travelled = 0.0
    for i, step in enumerate(steps):
        if step > 0.0 and travelled + step >= half:
            ratio = (half - travelled) / step
            return [float(xs[i] + (xs[i + 1] - xs[i]) * ratio),
                    float(ys[i] + (ys[i + 1] - ys[i]) * ratio)]
        travelled += step
    return [float(xs[0]), float(ys[0])]
