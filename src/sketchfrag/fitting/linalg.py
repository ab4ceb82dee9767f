"""
Small dense linear algebra for the fitters.

Fixed-size routines (at most 6x6) used to assemble and solve the line and
ellipse normal equations. Inputs are never modified; each routine returns
new arrays and signals degenerate systems with a NumericalError subclass.
"""

import math

import numpy as np

from sketchfrag.errors import NotPositiveDefiniteError, SingularMatrixError

# Pivots with magnitude below this are treated as zero by Gauss-Jordan.
SINGULAR_EPSILON = 1e-19

MAX_JACOBI_SWEEPS = 50

# Cholesky pivots within rounding of zero, relative to the diagonal entry.
PIVOT_RTOL = 64 * np.finfo(float).eps


def mat_mul(a, b):
    """Return A.B"""
    return np.asarray(a, dtype=float) @ np.asarray(b, dtype=float)


def mat_t_mul(a, b):
    """Return A^T.B"""
    return np.asarray(a, dtype=float).T @ np.asarray(b, dtype=float)


def mat_mul_t(a, b):
    """Return A.B^T"""
    return np.asarray(a, dtype=float) @ np.asarray(b, dtype=float).T


def eigen_symmetric_2x2(m):
    """
    Closed-form eigen-decomposition of a symmetric 2x2 matrix.

    Args:
        m: 2x2 symmetric matrix

    Returns:
        (values, vectors): values[0] >= values[1]; vectors[:, i] is the unit
        eigenvector for values[i]
    """
    a = float(m[0][0])
    b = float(m[0][1])
    d = float(m[1][1])

    # (a - d)^2 + 4b^2 written without cancellation
    root = math.hypot(a - d, 2.0 * b)
    lam1 = (a + d + root) / 2.0
    lam2 = (a + d - root) / 2.0

    # Take whichever row of (M - lam1 I) gives the longer null vector.
    row1 = (b, lam1 - a)
    row2 = (lam1 - d, b)
    vx, vy = row1 if math.hypot(*row1) >= math.hypot(*row2) else row2
    norm = math.hypot(vx, vy)
    if norm == 0.0:
        # scalar multiple of the identity; any basis works
        vx, vy, norm = 1.0, 0.0, 1.0
    vx /= norm
    vy /= norm

    values = np.array([lam1, lam2])
    vectors = np.array([[vx, -vy], [vy, vx]])
    return values, vectors


def jacobi_eigen(m, max_sweeps=MAX_JACOBI_SWEEPS):
    """
    Cyclic Jacobi eigen-decomposition of a real symmetric matrix.

    Each sweep rotates away every off-diagonal entry above the current
    threshold; iteration stops once the off-diagonal sum is exactly zero or
    after max_sweeps sweeps.

    Args:
        m: n x n symmetric matrix
        max_sweeps: sweep cap

    Returns:
        (values, vectors): unsorted eigenvalues and the matching eigenvectors
        as columns
    """
    a = np.array(m, dtype=float)
    n = a.shape[0]
    v = np.eye(n)
    d = np.diag(a).copy()
    b = d.copy()
    z = np.zeros(n)

    for sweep in range(1, max_sweeps + 1):
        off_sum = np.abs(np.triu(a, 1)).sum()
        if off_sum == 0.0:
            return d, v

        threshold = 0.2 * off_sum / (n * n) if sweep < 4 else 0.0

        for p in range(n - 1):
            for q in range(p + 1, n):
                apq = a[p, q]
                g = 100.0 * abs(apq)
                if sweep > 4 and abs(d[p]) + g == abs(d[p]) and abs(d[q]) + g == abs(d[q]):
                    a[p, q] = a[q, p] = 0.0
                    continue
                if abs(apq) <= threshold:
                    continue

                h = d[q] - d[p]
                if abs(h) + g == abs(h):
                    t = apq / h
                else:
                    theta = 0.5 * h / apq
                    t = 1.0 / (abs(theta) + math.sqrt(1.0 + theta * theta))
                    if theta < 0.0:
                        t = -t
                c = 1.0 / math.sqrt(1.0 + t * t)
                s = t * c
                tau = s / (1.0 + c)
                h = t * apq
                z[p] -= h
                z[q] += h
                d[p] -= h
                d[q] += h
                a[p, q] = a[q, p] = 0.0

                others = [j for j in range(n) if j != p and j != q]
                gp = a[others, p].copy()
                gq = a[others, q].copy()
                a[others, p] = gp - s * (gq + gp * tau)
                a[others, q] = gq + s * (gp - gq * tau)
                a[p, others] = a[others, p]
                a[q, others] = a[others, q]

                vp = v[:, p].copy()
                vq = v[:, q].copy()
                v[:, p] = vp - s * (vq + vp * tau)
                v[:, q] = vq + s * (vp - vq * tau)

        b += z
        d = b.copy()
        z[:] = 0.0

    return d, v


def cholesky(m, rtol=PIVOT_RTOL):
    """
    Cholesky factor L of a symmetric positive-definite matrix, L.L^T = M.

    Raises:
        NotPositiveDefiniteError: a diagonal pivot does not exceed rtol
        times its diagonal entry; the error's pivot attribute is its
        0-based index
    """
    a = np.array(m, dtype=float)
    n = a.shape[0]
    lower = np.zeros((n, n))

    for i in range(n):
        for j in range(i, n):
            total = a[i, j] - np.dot(lower[i, :i], lower[j, :i])
            if i == j:
                if not total > rtol * abs(a[i, i]):
                    raise NotPositiveDefiniteError(i)
                lower[i, i] = math.sqrt(total)
            else:
                lower[j, i] = total / lower[i, i]

    return lower


def invert_gauss_jordan(m, epsilon=SINGULAR_EPSILON):
    """
    Invert a square matrix by Gauss-Jordan elimination with partial pivoting.

    Raises:
        SingularMatrixError: the best pivot candidate in some column has
        magnitude below epsilon
    """
    a = np.array(m, dtype=float)
    n = a.shape[0]
    aug = np.hstack([a, np.eye(n)])

    for k in range(n):
        pivot_row = k + int(np.argmax(np.abs(aug[k:, k])))
        if not abs(aug[pivot_row, k]) >= epsilon:
            raise SingularMatrixError(f"matrix is singular at column {k}")
        if pivot_row != k:
            aug[[k, pivot_row]] = aug[[pivot_row, k]]
        aug[k] /= aug[k, k]
        for i in range(n):
            if i != k:
                aug[i] -= aug[i, k] * aug[k]

    return aug[:, n:]
