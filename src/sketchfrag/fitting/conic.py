"""
Explicit sampling of an implicit conic.

Walks the conic ax^2+bxy+cy^2+dx+ey+f=0 at fixed angular steps of its
normal direction and picks out the arc actually traced by a stroke.
"""

import math

import numpy as np

from sketchfrag.fitting.linalg import invert_gauss_jordan, mat_mul, mat_t_mul


def sample_conic(params, num_samples=50):
    """
    Generate points around a central conic.

    For each unit normal u at angle theta in [0, pi), the point with
    gradient 2Ax+b = lambda*u lies at x = A^-1 (lambda*u - b) / 2 with
    lambda^2 = (b^T A^-1 b - 4f) / (u^T A^-1 u). The positive root gives the
    first half of the samples, the negative root the second half, so the
    samples run continuously around the curve.

    Args:
        params: (a, b, c, d, e, f) conic coefficients
        num_samples: total number of generated points (even)

    Returns:
        (num_samples, 2) array; rows where no real point exists are NaN

    Raises:
        SingularMatrixError: the quadratic part is not invertible
    """
    a, b, c, d, e, f = (float(p) for p in params)
    half = num_samples // 2

    quad = np.array([[a, b / 2.0], [b / 2.0, c]])
    linear = np.array([[d], [e]])
    quad_inv = invert_gauss_jordan(quad)

    r1 = float(mat_t_mul(linear, mat_mul(quad_inv, linear))[0, 0]) - 4.0 * f

    thetas = np.arange(half) * (math.pi / half)
    normals = np.vstack([np.cos(thetas), np.sin(thetas)])
    u_ainv_u = np.sum(normals * mat_mul(quad_inv, normals), axis=0)

    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = r1 / u_ainv_u
    valid = ratio >= 0.0
    lam = np.sqrt(np.where(valid, ratio, 0.0))

    pos = mat_mul(quad_inv, 0.5 * (lam * normals - linear))
    neg = mat_mul(quad_inv, 0.5 * (-lam * normals - linear))

    samples = np.full((2 * half, 2), np.nan)
    samples[:half][valid] = pos.T[valid]
    samples[half:][valid] = neg.T[valid]
    return samples


def nearest_sample(samples, x, y):
    """Index of the valid sample closest to (x, y), or -1 if none is valid."""
    dist = np.hypot(samples[:, 0] - x, samples[:, 1] - y)
    if np.all(np.isnan(dist)):
        return -1
    return int(np.nanargmin(dist))


def select_arc(samples, start, middle, end):
    """
    Cut the traced arc out of a closed ring of samples.

    Walks from the sample nearest start towards the one nearest end, in the
    direction that passes the sample nearest middle first, wrapping around
    the ring. Invalid samples are skipped. When start and end map to the
    same sample the whole ring is returned, closed.

    Returns:
        (k, 2) array of arc points, or None when fewer than three are usable
    """
    total = len(samples)
    s = nearest_sample(samples, *start)
    m = nearest_sample(samples, *middle)
    e = nearest_sample(samples, *end)
    if s == -1 or m == -1 or e == -1:
        return None

    step = -1 if (e - s) % total < (m - s) % total else 1

    indices = [s]
    i = s
    while True:
        i = (i + step) % total
        indices.append(i)
        if i == e:
            break

    arc = samples[indices]
    arc = arc[~np.isnan(arc).any(axis=1)]
    if len(arc) < 3:
        return None
    return arc


def trace_arc(params, start, middle, end, num_samples=50):
    """Sample the conic and return the arc from start through middle to end."""
    samples = sample_conic(params, num_samples)
    return select_arc(samples, start, middle, end)


def path_length(points):
    """Total length of a polyline given as an (n, 2) array."""
    points = np.asarray(points, dtype=float)
    if len(points) < 2:
        return 0.0
    return float(np.hypot(*np.diff(points, axis=0).T).sum())
