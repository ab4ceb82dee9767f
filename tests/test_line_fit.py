"""Tests for total-least-squares line fitting."""

import numpy as np
import pytest

from sketchfrag.fitting.line_fit import fit_line
from sketchfrag.models import LineBasis, PrimitiveType


class TestLineFit:
    """Tests for fit_line."""

    def test_collinear_points_zero_error(self):
        """Test that points on y = 2x + 1 fit with no residual."""
        xs = np.arange(10.0)
        ys = 2.0 * xs + 1.0

        basis = fit_line(xs, ys)

        assert isinstance(basis, LineBasis)
        assert basis.kind == PrimitiveType.LINE
        assert basis.fit_error == pytest.approx(0.0, abs=1e-9)
        assert basis.line.p0 == pytest.approx((0.0, 1.0), abs=1e-9)
        assert basis.line.p1 == pytest.approx((9.0, 19.0), abs=1e-9)

    def test_every_subrange_of_collinear_points(self):
        xs = np.linspace(-3.0, 7.0, 12)
        ys = -0.5 * xs + 4.0
        for start in range(len(xs) - 1):
            for end in range(start + 1, len(xs)):
                basis = fit_line(xs[start:end + 1], ys[start:end + 1])
                assert basis.fit_error == pytest.approx(0.0, abs=1e-9)

    def test_params_normalized_to_unit_constant(self):
        xs = np.arange(5.0)
        ys = xs + 2.0
        basis = fit_line(xs, ys)

        a, b, c = basis.params
        assert c == 1.0
        # every sample satisfies a*x + b*y + 1 = 0
        np.testing.assert_allclose(a * xs + b * ys + c, 0.0, atol=1e-9)

    def test_line_through_origin_keeps_unit_normal(self):
        xs = np.arange(5.0)
        basis = fit_line(xs, xs)

        a, b, c = basis.params
        assert c == 0.0
        assert np.hypot(a, b) == pytest.approx(1.0)

    def test_error_is_sum_of_perpendicular_residuals(self):
        """Test the error against the smallest principal variance."""
        rng = np.random.default_rng(0)
        xs = np.linspace(0.0, 20.0, 15)
        ys = 0.3 * xs + rng.normal(scale=0.5, size=15)

        basis = fit_line(xs, ys)

        expected = len(xs) * np.linalg.eigvalsh(np.cov(xs, ys, bias=True))[0]
        assert basis.fit_error == pytest.approx(expected, rel=1e-9)

    def test_near_vertical_stroke(self):
        """Test that a steep stroke is fitted by perpendicular distance."""
        ys = np.arange(10.0)
        xs = 5.0 + 0.001 * ys

        basis = fit_line(xs, ys)

        assert basis.fit_error == pytest.approx(0.0, abs=1e-9)
        assert basis.length == pytest.approx(np.hypot(0.009, 9.0), rel=1e-9)

    def test_two_points(self):
        basis = fit_line([1.0, 4.0], [2.0, 6.0])

        assert basis.fit_error == pytest.approx(0.0, abs=1e-12)
        assert basis.line.p0 == (1.0, 2.0)
        assert basis.line.p1 == (4.0, 6.0)
        assert basis.num_points == 2

    def test_single_point(self):
        assert fit_line([1.0], [2.0]) is None

    def test_non_finite_input(self):
        assert fit_line([0.0, 1.0, np.nan], [0.0, 1.0, 2.0]) is None

    def test_coincident_points(self):
        """Test that repeated samples give a zero-length segment."""
        basis = fit_line([2.0] * 4, [3.0] * 4)

        assert basis.fit_error == 0.0
        assert basis.line.p0 == pytest.approx((2.0, 3.0))
        assert basis.line.p1 == pytest.approx((2.0, 3.0))
        assert basis.length == 0.0


class TestVisibleExtent:
    """Tests for clipping the fitted line to the samples."""

    def test_horizontal_extent_follows_drawing_direction(self):
        """Test a right-to-left horizontal stroke."""
        basis = fit_line([3.0, 1.0, 5.0, 0.0], [2.0, 2.0, 2.0, 2.0])

        assert basis.line.p0 == pytest.approx((5.0, 2.0))
        assert basis.line.p1 == pytest.approx((0.0, 2.0))

    def test_vertical_extent(self):
        basis = fit_line([5.0] * 10, np.arange(10.0))

        assert basis.line.p0 == pytest.approx((5.0, 0.0))
        assert basis.line.p1 == pytest.approx((5.0, 9.0))

    def test_diagonal_reversed(self):
        """Test that a stroke drawn backwards starts at its first end."""
        xs = np.arange(10.0)[::-1]
        ys = xs.copy()

        basis = fit_line(xs, ys)

        assert basis.line.p0 == pytest.approx((9.0, 9.0), abs=1e-9)
        assert basis.line.p1 == pytest.approx((0.0, 0.0), abs=1e-9)

    def test_extent_is_projection_of_samples(self):
        """Test that noisy endpoints are projected onto the line."""
        xs = np.array([0.0, 1.0, 2.0, 3.0, 4.0])
        ys = np.array([0.5, 0.0, 0.0, 0.0, 0.5])

        basis = fit_line(xs, ys)

        a, b, c = basis.params
        for point in (basis.line.p0, basis.line.p1):
            assert a * point[0] + b * point[1] + c == pytest.approx(0.0, abs=1e-9)
        assert basis.line.p0[0] == pytest.approx(0.0)
        assert basis.line.p1[0] == pytest.approx(4.0)
