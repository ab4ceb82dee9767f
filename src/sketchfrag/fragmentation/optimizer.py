"""
Dynamic-programming fragmentation of strokes into lines and elliptical arcs.

A cell (n, k, m) holds the cheapest way to cover strokes 0..n-1 completely
and stroke n up to point m using exactly k interior breakpoints, together
with the remaining segment budget (a (ellipses, lines) pair in count mode,
a template prefix in exact mode). Each cell fits one final segment ending
at m and defers everything before it to a child cell, so the optimal
fragmentation is read back by following child links from the root cell
(last stroke, last point, all breakpoints).

Neighbouring segments on one stroke share their breakpoint sample.
"""

import math
import time

import numpy as np

from sketchfrag.config import FragmentConfig
from sketchfrag.errors import (
    InfeasibleTemplateError, SearchExhaustedError, SearchTimeoutError,
)
from sketchfrag.fitting.ellipse_fit import fit_ellipse
from sketchfrag.fitting.line_fit import fit_line
from sketchfrag.fragmentation.template import plan_counts, plan_template
from sketchfrag.models import Breakpoint, PrimitiveType, Stroke, as_stroke, build_fit_data
from sketchfrag.tracer import get_tracer, trace

INFINITY = math.inf

LINE = PrimitiveType.LINE
ELLIPSE = PrimitiveType.ELLIPSE


class _Cell:
    """Solved subproblem: cost, the final segment's fit and the link back."""

    __slots__ = ("cost", "basis", "child")

    def __init__(self, cost=INFINITY, basis=None, child=None):
        self.cost = cost
        self.basis = basis
        self.child = child  # (key, n, k, m) or None at the first segment


_UNREACHABLE = _Cell()
_DEAD_END = object()


class Fragmenter:
    """
    One fragmentation run over a fixed set of strokes.

    Holds the per-run memo tables and fit cache; nothing is shared between
    instances, so separate runs may proceed in parallel.
    """

    def __init__(self, strokes, config=None):
        self.config = config or FragmentConfig()
        self.strokes = [as_stroke(s) for s in strokes]
        self.coords = [s.coordinates() for s in self.strokes]
        self.lengths = [s.num_points for s in self.strokes]

        self._tables = {}
        self._fits = {}
        self._deadline = None
        self.fits_evaluated = 0
        self.cells_evaluated = 0

    # ------------------------------------------------------------------
    # Entry points

    def run_counts(self, num_lines, num_ellipses):
        """Best fragmentation into the given numbers of lines and ellipses."""
        plan = plan_counts(num_lines, num_ellipses, self.lengths)
        return self._solve(plan, (plan.num_ellipses, plan.num_lines))

    def run_template(self, template):
        """Best fragmentation following an exact 'L'/'E' template."""
        plan = plan_template(template, self.lengths)
        return self._solve(plan, plan.template)

    def _solve(self, plan, root_key):
        tracer = get_tracer()
        tracer.event(
            "plan",
            strokes=plan.num_strokes,
            points=plan.total_points,
            template=plan.template or f"L{plan.num_lines}/E{plan.num_ellipses}",
            breakpoints=plan.required_breakpoints,
        )

        budget = self.config.search.time_budget_s
        if budget is not None:
            self._deadline = time.perf_counter() + budget

        last = len(self.strokes) - 1
        root = self._link(root_key, last, plan.required_breakpoints, self.lengths[last] - 1)
        cell = _UNREACHABLE if root is _DEAD_END else self._solve_cell(root)
        if math.isinf(cell.cost):
            raise SearchExhaustedError("no branch of the search produced a fit")

        fit_data = self._backtrack(root)
        tracer.event(
            "result",
            template=fit_data.template,
            error=fit_data.total_fit_error,
            fits=self.fits_evaluated,
            cells=self.cells_evaluated,
        )
        return fit_data

    # ------------------------------------------------------------------
    # Memo tables

    def _link(self, key, n, k, m):
        """
        Normalized address of cell (key, n, k, m).

        Returns None for the empty prefix before the first stroke and
        _DEAD_END when the cell cannot exist. A key with s segments still
        to place always sits at k = s - n - 1, so each table needs only
        one row per stroke.
        """
        if isinstance(key, tuple):
            ne, nl = key
            if ne == 0 or nl == 0:
                key = LINE.value * nl + ELLIPSE.value * ne
        segments = _segment_count(key)
        if n < 0:
            return None if segments == 0 and k == 0 else _DEAD_END
        if segments == 0 or k != segments - n - 1:
            return _DEAD_END
        return (key, n, k, m)

    def _stored(self, address):
        key, n, _, m = address
        table = self._tables.get(key)
        if table is None:
            return None
        return table[n][m]

    def _store(self, address, cell):
        key, n, _, m = address
        table = self._tables.get(key)
        if table is None:
            table = [[None] * length for length in self.lengths]
            self._tables[key] = table
        table[n][m] = cell

    def _solve_cell(self, root):
        """
        Solve root and every cell it depends on.

        Runs on an explicit stack so the depth of the search is not bound by
        the interpreter's recursion limit. A cell is expanded once to push
        its unsolved children and evaluated when it comes back to the top.
        """
        stack = [(root, None)]
        while stack:
            address, moves = stack.pop()
            if self._stored(address) is not None:
                continue
            if moves is not None:
                self._check_deadline()
                self.cells_evaluated += 1
                self._store(address, self._evaluate(address, moves))
                continue

            moves = self._moves(*address)
            stack.append((address, moves))
            for _, _, child in moves:
                if child is not None and self._stored(child) is None:
                    stack.append((child, None))
        return self._stored(root)

    def _check_deadline(self):
        if self._deadline is not None and time.perf_counter() > self._deadline:
            raise SearchTimeoutError(
                f"time budget of {self.config.search.time_budget_s}s exceeded "
                f"after {self.cells_evaluated} cells")

    # ------------------------------------------------------------------
    # Recurrences

    def _moves(self, key, n, k, m):
        """
        Candidate final segments of a cell, in tie-breaking order.

        Each move is (kind, start, child): fit [start..m] of stroke n with
        kind and defer the rest to child. Moves whose child cannot exist
        are left out.
        """
        if isinstance(key, tuple):
            ne, nl = key
            options = ((ELLIPSE, (ne - 1, nl)), (LINE, (ne, nl - 1)))
            if k == 0:
                # the ellipse wins only when strictly cheaper
                options = options[::-1]
        else:
            options = ((PrimitiveType(key[-1]), key[:-1]),)

        moves = []
        if k == 0:
            # one segment per stroke: the whole of [0..m] is the final one
            prev_m = self.lengths[n - 1] - 1 if n > 0 else 0
            for kind, child_key in options:
                moves.append((kind, 0, self._link(child_key, n - 1, 0, prev_m)))
        else:
            first = k if n == 0 else 1
            for i in range(first, m):
                for kind, child_key in options:
                    moves.append((kind, i, self._link(child_key, n, k - 1, i)))
            if n > 0:
                prev_m = self.lengths[n - 1] - 1
                for kind, child_key in options:
                    moves.append((kind, 0, self._link(child_key, n - 1, k, prev_m)))
        return [move for move in moves if move[2] is not _DEAD_END]

    def _evaluate(self, address, moves):
        """Cheapest move of a cell whose children are all solved."""
        n, m = address[1], address[3]
        best = _UNREACHABLE
        for kind, start, child in moves:
            if child is None:
                child_cost = 0.0
            else:
                child_cost = self._stored(child).cost
                if math.isinf(child_cost):
                    continue

            basis = self._fit(kind, n, start, m)
            if basis is None:
                continue
            cost = basis.fit_error + child_cost
            if cost < best.cost:
                best = _Cell(cost, basis, child)
        return best


    def _fit(self, kind, n, start, end):
        cache_key = (n, start, end, kind)
        if self.config.search.cache_fits and cache_key in self._fits:
            return self._fits[cache_key]

        xs, ys = self.coords[n]
        xs = xs[start:end + 1]
        ys = ys[start:end + 1]
        self.fits_evaluated += 1
        if kind is LINE:
            basis = fit_line(xs, ys)
        else:
            basis = fit_ellipse(xs, ys, self.config.ellipse)

        if self.config.search.cache_fits:
            self._fits[cache_key] = basis
        return basis

    # ------------------------------------------------------------------
    # Reconstruction

    def _backtrack(self, root):
        """Follow child links from the root and assemble the FitData."""
        bases = []
        stroke_indices = []
        breakpoints = []

        link = root
        while link is not None:
            n, m = link[1], link[3]
            cell = self._stored(link)
            if cell is None or cell.basis is None:
                raise SearchExhaustedError(f"broken link at stroke {n} point {m}")
            if m != self.lengths[n] - 1:
                breakpoints.append(Breakpoint(stroke_index=n, point_index=m))
            bases.append(cell.basis)
            stroke_indices.append(n)
            link = cell.child

        bases.reverse()
        stroke_indices.reverse()
        return build_fit_data(bases, stroke_indices, breakpoints, len(self.strokes))


def _segment_count(key):
    if isinstance(key, tuple):
        return key[0] + key[1]
    return len(key)


def _as_stroke_list(strokes):
    """Accept a single stroke or a sequence of strokes."""
    if isinstance(strokes, Stroke):
        return [strokes]
    if isinstance(strokes, np.ndarray) and strokes.ndim == 2:
        return [strokes]
    return list(strokes)


@trace(label="fragment_with_counts")
def fragment_with_counts(strokes, num_lines, num_ellipses, config=None):
    """
    Fragment strokes into num_lines lines and num_ellipses elliptical arcs.

    The order of types along the strokes is free; the search picks the
    arrangement with the least total fit error.

    Args:
        strokes: Stroke models, (n, 2)/(n, 3) arrays or row sequences
        num_lines, num_ellipses: segment counts
        config: FragmentConfig (defaults if None)

    Returns:
        FitData, or None when the request is infeasible, every branch
        fails, or the time budget runs out

    Raises:
        TemplateError: negative counts
    """
    fragmenter = Fragmenter(_as_stroke_list(strokes), config)
    return _run(fragmenter, fragmenter.run_counts, num_lines, num_ellipses)


@trace(label="fragment_with_template")
def fragment_with_template(strokes, template, config=None):
    """
    Fragment strokes following an exact ordered template such as "LLE".

    Returns:
        FitData, or None when the template is infeasible, every branch
        fails, or the time budget runs out

    Raises:
        TemplateError: malformed template
    """
    fragmenter = Fragmenter(_as_stroke_list(strokes), config)
    return _run(fragmenter, fragmenter.run_template, template)


def fragment(strokes, template_or_lines, num_ellipses=None, config=None):
    """
    Fragment strokes into lines and elliptical arcs.

    fragment(strokes, "LE") follows an exact template;
    fragment(strokes, 2, 1) asks for two lines and one ellipse in any order.
    """
    if isinstance(template_or_lines, str):
        if num_ellipses is not None:
            raise TypeError("num_ellipses cannot be combined with a template string")
        return fragment_with_template(strokes, template_or_lines, config=config)
    return fragment_with_counts(strokes, template_or_lines, num_ellipses or 0, config=config)


def _run(fragmenter, solve, *args):
    tracer = get_tracer()
    try:
        return solve(*args)
    except InfeasibleTemplateError as e:
        tracer.event(f"infeasible template: {e}", level="WARN")
    except SearchExhaustedError as e:
        tracer.event(f"search exhausted: {e}", level="WARN")
    except SearchTimeoutError as e:
        tracer.event(f"search timed out: {e}", level="WARN", fits=fragmenter.fits_evaluated)
    return None
