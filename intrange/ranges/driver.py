from __future__ import annotations

import sys
from enum import Enum
from typing import Optional

from intrange.analysis import (
    NO_TAINT,
    BackEdgeAnalysis,
    CallGraph,
    DFGAnalysis,
    IRAnalysesCache,
    TaintOracle,
)
from intrange.ir.basicblock import IRBasicBlock
from intrange.ir.context import IRContext
from intrange.ir.function import IRFunction
from intrange.ranges.evaluators import LocalValueMap, update_range_for
from intrange.ranges.initializers import collect_initializers, seed_taint
from intrange.ranges.refinement import refine_edge
from intrange.ranges.symbols import SymbolID, SymbolTable, symbol_from_string
from intrange.settings import Settings
from intrange.utils import OrderedSet


class AnalysisState(Enum):
    SWEEPING = "sweeping"
    CONVERGED = "converged"


class AnalysisContext:
    """
    Everything shared by the components of one analysis run: the module,
    its oracles, the symbol table and the per-block ranges of the function
    being swept.
    """

    ctx: IRContext
    settings: Settings
    taint: TaintOracle
    symbols: SymbolTable
    callgraph: CallGraph
    _block_ranges: dict[IRBasicBlock, LocalValueMap]
    _analyses: dict[IRFunction, IRAnalysesCache]

    def __init__(self, ctx: IRContext, settings: Settings, taint: TaintOracle):
        self.ctx = ctx
        self.settings = settings
        self.taint = taint

        watch = symbol_from_string(settings.watch) if settings.watch else None
        self.symbols = SymbolTable(taint, watch)
        self.callgraph = CallGraph(ctx)

        self._block_ranges = {}
        self._analyses = {}

    def analyses(self, fn: IRFunction) -> IRAnalysesCache:
        if fn not in self._analyses:
            self._analyses[fn] = IRAnalysesCache(fn)
        return self._analyses[fn]

    def dfg(self, fn: IRFunction) -> DFGAnalysis:
        return self.analyses(fn).request_analysis(DFGAnalysis)

    def back_edges(self, fn: IRFunction) -> BackEdgeAnalysis:
        return self.analyses(fn).request_analysis(BackEdgeAnalysis)

    def block_ranges(self, bb: IRBasicBlock) -> LocalValueMap:
        if bb not in self._block_ranges:
            self._block_ranges[bb] = {}
        return self._block_ranges[bb]

    def has_block_ranges(self, bb: IRBasicBlock) -> bool:
        return bb in self._block_ranges

    def clear_block_ranges(self, fn: Optional[IRFunction] = None) -> None:
        if fn is None:
            self._block_ranges.clear()
            return
        for bb in fn.get_basic_blocks():
            self._block_ranges.pop(bb, None)


class RangeAnalysis:
    """
    Interprocedural integer range analysis of a module.

    Every function is swept block by block, in declaration order. Facts
    flow within a function through per-block range maps and between
    functions through the symbol table (globals, struct fields, arguments
    and return values). Module sweeps repeat until the symbol table stops
    changing. Loop-carried values only move between sweeps, so symbols
    that are still changing after `max_iterations` sweeps are widened to
    the full set.
    """

    settings: Settings
    actx: AnalysisContext
    state: AnalysisState
    iterations: int

    def __init__(
        self,
        ctx: IRContext,
        settings: Optional[Settings] = None,
        taint: TaintOracle = NO_TAINT,
    ):
        self.settings = settings or Settings()
        self.actx = AnalysisContext(ctx, self.settings, taint)
        self.state = AnalysisState.SWEEPING
        self.iterations = 0
        self._seeded = False
        self._last_changes: OrderedSet[SymbolID] = OrderedSet()

    @property
    def ctx(self) -> IRContext:
        return self.actx.ctx

    @property
    def symbols(self) -> SymbolTable:
        return self.actx.symbols

    def seed(self) -> None:
        """
        Seed the symbol table from global initializers and taint sources.
        Runs once, before the first sweep.
        """
        if self._seeded:
            return
        self._seeded = True
        collect_initializers(self.ctx, self.symbols)
        seed_taint(self.ctx, self.symbols, self.actx.taint)

    def run(self) -> bool:
        """
        Sweep the module until a fixpoint is reached. Returns True if any
        sweep changed the symbol table.
        """
        self.seed()
        ret = False
        while self.state is AnalysisState.SWEEPING:
            changed = self.sweep_module()
            ret |= changed
            if not changed:
                self._converge()
        return ret

    def _converge(self) -> None:
        self.state = AnalysisState.CONVERGED
        # local ranges are only meaningful during a sweep
        self.actx.clear_block_ranges()

    def sweep_module(self) -> bool:
        """
        Sweep every function with a body once. Returns True if the symbol
        table changed.
        """
        self.seed()
        self.iterations += 1

        # if some values converge too slowly, expand them to full-set
        if self.iterations > self.settings.max_iterations:
            for sym in self._last_changes:
                if self.settings.debug:
                    print(f"; widening {sym} to full-set", file=sys.stderr)
                self.symbols.widen(sym)

        self.symbols.reset_changes()
        for fn in self.ctx.get_defined_functions():
            self.sweep_function(fn)

        self._last_changes = self.symbols.changes
        if self.settings.debug:
            changed = ", ".join(str(sym) for sym in self._last_changes)
            print(f"; sweep {self.iterations}: {changed or 'no changes'}", file=sys.stderr)

        return len(self._last_changes) > 0

    def sweep_function(self, fn: IRFunction) -> bool:
        """
        Sweep every block of `fn` once, starting from fresh local ranges.
        """
        assert not fn.is_declaration, fn
        self.actx.clear_block_ranges(fn)
        self.actx.analyses(fn).force_analysis(BackEdgeAnalysis)

        changed = False
        for bb in fn.get_basic_blocks():
            changed |= self.sweep_block(bb)
        return changed

    def sweep_block(self, bb: IRBasicBlock) -> bool:
        # ranges in bb are the union of the ranges in its predecessors,
        # each narrowed by the edge it comes in on
        back_edges = self.actx.back_edges(bb.parent)
        ranges = self.actx.block_ranges(bb)
        for pred in back_edges.forward_preds(bb):
            pred_ranges = dict(self.actx.block_ranges(pred))
            refine_edge(self.actx, pred, bb, pred_ranges)

            for op, interval in pred_ranges.items():
                if op in ranges:
                    ranges[op] = ranges[op].union(interval)
                else:
                    ranges[op] = interval

        changed = False
        for inst in bb.instructions:
            changed |= update_range_for(inst, self.actx)
        return changed

    def block_ranges(self, bb: IRBasicBlock) -> LocalValueMap:
        """
        The local ranges of `bb` from the latest sweep. Empty once the
        analysis has converged.
        """
        if not self.actx.has_block_ranges(bb):
            return {}
        return dict(self.actx.block_ranges(bb))
