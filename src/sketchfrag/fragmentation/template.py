"""
Template parsing and feasibility planning.

A template is either a (num_lines, num_ellipses) count request or an exact
ordered string over 'L' and 'E'. Planning turns it, together with the
stroke lengths, into the number of interior breakpoints the search must
place, or rejects it before any fitting happens.
"""

from dataclasses import dataclass

from sketchfrag.errors import InfeasibleTemplateError, TemplateError
from sketchfrag.models import PrimitiveType

VALID_CHARS = frozenset(t.value for t in PrimitiveType)


@dataclass(frozen=True)
class TemplatePlan:
    """What the search has to produce for one request."""
    num_lines: int
    num_ellipses: int
    template: str  # None in count mode
    num_strokes: int
    total_points: int

    @property
    def num_segments(self):
        return self.num_lines + self.num_ellipses

    @property
    def required_breakpoints(self):
        return required_breakpoints(self.num_segments, self.num_strokes)

    @property
    def is_exact(self):
        return self.template is not None


def parse_template(template):
    """
    Validate an exact template string.

    Lower-case letters are accepted and upper-cased.

    Raises:
        TemplateError: not a string, or containing anything but L/E
    """
    if not isinstance(template, str):
        raise TemplateError(f"template must be a string, got {type(template).__name__}")
    template = template.upper()
    bad = sorted(set(template) - VALID_CHARS)
    if bad:
        raise TemplateError(f"template may only contain 'L' and 'E', found {bad}")
    return template


def required_breakpoints(num_segments, num_strokes):
    """Interior cuts needed: every stroke seam is already a boundary."""
    return num_segments - num_strokes


def max_segments(stroke_lengths):
    """Most segments the strokes can hold, each spanning at least two samples."""
    return sum(stroke_lengths) - len(stroke_lengths)


def plan_counts(num_lines, num_ellipses, stroke_lengths):
    """
    Plan a count-mode request.

    Raises:
        TemplateError: a negative count
        InfeasibleTemplateError: too few or too many segments for the strokes
    """
    if num_lines < 0 or num_ellipses < 0:
        raise TemplateError(f"segment counts must be non-negative, got "
                            f"lines={num_lines} ellipses={num_ellipses}")
    plan = TemplatePlan(
        num_lines=int(num_lines),
        num_ellipses=int(num_ellipses),
        template=None,
        num_strokes=len(stroke_lengths),
        total_points=int(sum(stroke_lengths)),
    )
    check_feasible(plan, stroke_lengths)
    return plan


def plan_template(template, stroke_lengths):
    """
    Plan an exact-template request.

    Raises:
        TemplateError: malformed template
        InfeasibleTemplateError: too few or too many segments for the strokes
    """
    template = parse_template(template)
    plan = TemplatePlan(
        num_lines=template.count(PrimitiveType.LINE.value),
        num_ellipses=template.count(PrimitiveType.ELLIPSE.value),
        template=template,
        num_strokes=len(stroke_lengths),
        total_points=int(sum(stroke_lengths)),
    )
    check_feasible(plan, stroke_lengths)
    return plan


def check_feasible(plan, stroke_lengths):
    """Raise InfeasibleTemplateError when the plan cannot be laid out."""
    if plan.num_strokes == 0:
        raise InfeasibleTemplateError("no strokes to fragment")
    if plan.required_breakpoints < 0:
        raise InfeasibleTemplateError(
            f"{plan.num_segments} segments cannot cover {plan.num_strokes} strokes")
    limit = max_segments(stroke_lengths)
    if plan.num_segments > limit:
        raise InfeasibleTemplateError(
            f"{plan.num_segments} segments exceed the {limit} available "
            f"over {plan.total_points} points")
