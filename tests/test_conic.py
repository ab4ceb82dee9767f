"""Tests for conic sampling and traced-arc selection."""

import numpy as np
import pytest

from sketchfrag.errors import SingularMatrixError
from sketchfrag.fitting.conic import (
    nearest_sample, path_length, sample_conic, select_arc, trace_arc,
)

UNIT_CIRCLE = (1.0, 0.0, 1.0, 0.0, 0.0, -1.0)


class TestSampleConic:
    """Tests for sample_conic."""

    def test_unit_circle_samples_on_curve(self):
        samples = sample_conic(UNIT_CIRCLE, 50)

        assert samples.shape == (50, 2)
        np.testing.assert_allclose(np.hypot(samples[:, 0], samples[:, 1]), 1.0, atol=1e-12)

    def test_branches_are_opposite(self):
        """Test that the two halves run around opposite sides."""
        samples = sample_conic(UNIT_CIRCLE, 50)

        assert samples[0] == pytest.approx([1.0, 0.0])
        assert samples[25] == pytest.approx([-1.0, 0.0])

    def test_samples_are_consecutive(self):
        """Test that neighbouring samples are close, including the wrap."""
        samples = sample_conic(UNIT_CIRCLE, 50)
        ring = np.vstack([samples, samples[:1]])
        steps = np.hypot(*np.diff(ring, axis=0).T)
        np.testing.assert_allclose(steps, 2 * np.sin(np.pi / 50), rtol=1e-9)

    def test_shifted_ellipse(self):
        # (x - 3)^2 / 4 + (y + 1)^2 = 1
        params = (0.25, 0.0, 1.0, -1.5, 2.0, 2.25)
        samples = sample_conic(params, 40)
        x, y = samples[:, 0], samples[:, 1]
        np.testing.assert_allclose((x - 3) ** 2 / 4 + (y + 1) ** 2, 1.0, atol=1e-9)

    def test_imaginary_conic_gives_nan(self):
        samples = sample_conic((1.0, 0.0, 1.0, 0.0, 0.0, 1.0), 20)
        assert np.all(np.isnan(samples))

    def test_parabola_is_singular(self):
        with pytest.raises(SingularMatrixError):
            sample_conic((1.0, 0.0, 0.0, 0.0, -1.0, 0.0))


class TestSelectArc:
    """Tests for nearest-sample matching and arc selection."""

    def test_nearest_sample(self):
        samples = sample_conic(UNIT_CIRCLE, 50)
        assert nearest_sample(samples, 1.2, 0.01) == 0

    def test_nearest_sample_all_invalid(self):
        samples = np.full((4, 2), np.nan)
        assert nearest_sample(samples, 0.0, 0.0) == -1

    def test_upper_half(self):
        """Test walking forward through the upper half."""
        samples = sample_conic(UNIT_CIRCLE, 50)

        arc = select_arc(samples, (1.0, 0.0), (0.0, 1.0), (-1.0, 0.0))

        assert len(arc) == 26
        assert arc[0] == pytest.approx([1.0, 0.0])
        assert arc[-1] == pytest.approx([-1.0, 0.0])
        assert np.all(arc[:, 1] >= -1e-12)

    def test_lower_half(self):
        """Test that the middle point reverses the walk."""
        samples = sample_conic(UNIT_CIRCLE, 50)

        arc = select_arc(samples, (1.0, 0.0), (0.0, -1.0), (-1.0, 0.0))

        assert len(arc) == 26
        assert arc[-1] == pytest.approx([-1.0, 0.0])
        assert np.all(arc[:, 1] <= 1e-12)

    def test_closed_stroke_traces_full_ring(self):
        samples = sample_conic(UNIT_CIRCLE, 50)

        arc = select_arc(samples, (1.0, 0.0), (-1.0, 0.0), (1.0, 0.0))

        assert len(arc) == 51
        assert arc[0] == pytest.approx(arc[-1])

    def test_too_short_arc(self):
        samples = sample_conic(UNIT_CIRCLE, 50)
        arc = select_arc(samples, (1.0, 0.0), (1.0, 0.0), (samples[1, 0], samples[1, 1]))
        assert arc is None

    def test_invalid_samples_skipped(self):
        samples = sample_conic(UNIT_CIRCLE, 50)
        samples[3] = np.nan

        arc = select_arc(samples, (1.0, 0.0), tuple(samples[5]), tuple(samples[10]))

        assert len(arc) == 10
        assert not np.any(np.isnan(arc))

    def test_trace_arc(self):
        arc = trace_arc(UNIT_CIRCLE, (0.0, 1.0), (-1.0, 0.0), (0.0, -1.0), num_samples=40)
        assert np.all(arc[:, 0] <= 1e-12)
        assert path_length(arc) == pytest.approx(np.pi, rel=1e-2)


class TestPathLength:
    """Tests for polyline length."""

    def test_single_segment(self):
        assert path_length([[0.0, 0.0], [3.0, 4.0]]) == pytest.approx(5.0)

    def test_single_point(self):
        assert path_length([[1.0, 1.0]]) == 0.0
