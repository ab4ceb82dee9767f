"""Tests for the tracer module."""

import json

import numpy as np
import pytest


class TestSummarize:
    """Tests for object summarization."""

    def test_numpy_array_summary(self):
        """Test that numpy arrays are summarized with shape and type."""
        from sketchfrag.tracer import summarize

        arr = np.zeros((20, 2), dtype=np.float64)
        summary = summarize(arr)

        assert "ndarray" in summary
        assert "20x2" in summary
        assert "float64" in summary

    def test_summary_capped_length(self):
        """Test that summary never exceeds max length."""
        from sketchfrag.tracer import summarize

        large_dict = {f"key_{i}": f"value_{i}" for i in range(100)}
        summary = summarize(large_dict, max_len=20)

        assert len(summary) <= 20

    def test_list_summary(self):
        from sketchfrag.tracer import summarize

        summary = summarize([1, 2, 3, 4, 5])

        assert "list" in summary
        assert "len=5" in summary

    def test_string_summary(self):
        """Test long string summarization."""
        from sketchfrag.tracer import summarize

        summary = summarize("a" * 1000)

        assert "str" in summary
        assert "len=1000" in summary
        assert len(summary) <= 200

    def test_none_summary(self):
        from sketchfrag.tracer import summarize

        assert summarize(None) == "None"

    def test_float_summary(self):
        from sketchfrag.tracer import summarize

        assert summarize(0.123456789) == "0.123457"

    def test_stroke_summary(self):
        """Test Pydantic model summarization."""
        from sketchfrag.models import Stroke
        from sketchfrag.tracer import summarize

        stroke = Stroke(stroke_id="test", points=[[0, 0], [10, 10]])
        summary = summarize(stroke)

        assert "Stroke" in summary

    def test_basis_and_fit_data_summary(self, l_shape_stroke):
        from sketchfrag.fragmentation.optimizer import fragment
        from sketchfrag.tracer import summarize

        fit_data = fragment(l_shape_stroke, "LL")

        assert "template='LL'" in summarize(fit_data)
        assert "n=10" in summarize(fit_data.bases[0])


class TestTracerSpan:
    """Tests for tracer span functionality."""

    def test_span_nesting(self, capsys):
        """Test that spans produce proper indentation."""
        from sketchfrag.tracer import configure_tracer, get_tracer

        configure_tracer(enabled=True, level="INFO")
        tracer = get_tracer()

        with tracer.span("outer", module="test"):
            with tracer.span("inner", module="test"):
                tracer.event("inside")

        lines = capsys.readouterr().err.strip().split("\n")

        assert len(lines) == 5
        assert "    test:inner  inside" in lines[2]

    def test_tracer_disabled_no_output(self, capsys):
        """Test that disabled tracer produces no output."""
        from sketchfrag.tracer import configure_tracer, get_tracer

        configure_tracer(enabled=False)
        tracer = get_tracer()

        with tracer.span("test", module="test"):
            tracer.event("should not appear")

        assert capsys.readouterr().err == ""

    def test_level_filtering(self, capsys):
        from sketchfrag.tracer import configure_tracer, get_tracer

        configure_tracer(enabled=True, level="WARN")
        tracer = get_tracer()

        tracer.event("hidden", level="DEBUG")
        tracer.event("shown", level="WARN")

        err = capsys.readouterr().err
        assert "hidden" not in err
        assert "shown" in err
        assert tracer.enabled_for("ERROR")
        assert not tracer.enabled_for("INFO")

    def test_span_failure_logged(self, capsys):
        from sketchfrag.tracer import configure_tracer, get_tracer

        configure_tracer(enabled=True, level="INFO")
        tracer = get_tracer()

        with pytest.raises(ValueError):
            with tracer.span("boom", module="test"):
                raise ValueError("bad input")

        err = capsys.readouterr().err
        assert "ERROR" in err
        assert "ValueError: bad input" in err
        assert tracer._span_stack == []

    def test_json_output(self, capsys):
        from sketchfrag.tracer import configure_tracer, get_tracer

        configure_tracer(enabled=True, level="INFO", json_output=True)
        get_tracer().event("fit", points=np.zeros(3))

        json_lines = [l for l in capsys.readouterr().err.splitlines() if l.startswith("{")]
        record = json.loads(json_lines[0])
        assert record["message"].startswith("fit")
        assert "ndarray" in record["meta"]["points"]

    def test_file_output(self, tmp_path, capsys):
        from sketchfrag.tracer import configure_tracer, get_tracer

        path = tmp_path / "trace.log"
        configure_tracer(enabled=True, level="INFO", file_path=str(path))
        get_tracer().event("to file")
        configure_tracer(enabled=False)

        assert "to file" in path.read_text()


class TestTraceDecorator:
    """Tests for the @trace decorator."""

    def test_decorator_runs_function(self):
        """Test that decorated function executes normally."""
        from sketchfrag.tracer import configure_tracer, trace

        configure_tracer(enabled=False)

        @trace(label="test_func")
        def my_func(x):
            return x * 2

        assert my_func(5) == 10

    def test_decorator_with_exception(self):
        """Test that decorator handles exceptions properly."""
        from sketchfrag.tracer import configure_tracer, trace

        configure_tracer(enabled=True)

        @trace(label="failing_func")
        def failing_func():
            raise ValueError("test error")

        with pytest.raises(ValueError):
            failing_func()

    def test_decorator_summarizes_named_args(self, capsys):
        from sketchfrag.tracer import configure_tracer, trace

        configure_tracer(enabled=True, level="INFO")

        @trace(label="labelled", arg_names=["template"])
        def run(template=None):
            return template

        run(template="LE")

        assert "template='LE'" in capsys.readouterr().err
