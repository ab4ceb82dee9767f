"""Pytest fixtures for sketchfrag tests."""

import numpy as np
import pytest

from sketchfrag.models import Stroke


@pytest.fixture(autouse=True)
def tracer_off():
    """Keep the global tracer disabled between tests."""
    from sketchfrag.tracer import configure_tracer

    configure_tracer(enabled=False)
    yield
    configure_tracer(enabled=False)


@pytest.fixture
def elliptical_arc():
    """20 samples along a 90 degree arc, center (50, 50), semi-axes 30 and 15."""
    t = np.linspace(0.0, np.pi / 2, 20)
    xs = 50.0 + 30.0 * np.cos(t)
    ys = 50.0 + 15.0 * np.sin(t)
    return Stroke.from_xy(xs, ys, timestamps=np.arange(20) * 10.0, stroke_id="arc")


@pytest.fixture
def right_angle_strokes():
    """Two 10-point collinear strokes meeting at a right angle at (9, 0)."""
    horizontal = Stroke.from_xy(np.arange(10.0), np.zeros(10), stroke_id="h")
    vertical = Stroke.from_xy(np.full(10, 9.0), np.arange(10.0), stroke_id="v")
    return [horizontal, vertical]


@pytest.fixture
def l_shape_stroke():
    """One stroke drawn as an L: down the y axis, then along the x axis."""
    xs = [0.0] * 10 + [float(i) for i in range(1, 10)]
    ys = [float(9 - i) for i in range(10)] + [0.0] * 9
    return Stroke.from_xy(xs, ys, stroke_id="L")


@pytest.fixture
def line_then_arc_stroke():
    """
    Ten samples along y=0 followed by a half circle of radius 5.

    The circle is centred at (9, 5) and starts at the last line sample, so
    the natural split is at point 9.
    """
    xs = [float(i) for i in range(10)]
    ys = [0.0] * 10
    for j in range(1, 15):
        theta = -np.pi / 2 + j * np.pi / 14
        xs.append(9.0 + 5.0 * np.cos(theta))
        ys.append(5.0 + 5.0 * np.sin(theta))
    return Stroke.from_xy(xs, ys, stroke_id="line-arc")


@pytest.fixture
def default_config():
    """Create default fragmentation configuration."""
    from sketchfrag.config import FragmentConfig
    return FragmentConfig()
