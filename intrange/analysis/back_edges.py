from intrange.analysis.analysis import IRAnalysis
from intrange.analysis.cfg import CFGAnalysis
from intrange.ir.basicblock import IRBasicBlock
from intrange.utils import OrderedSet


class BackEdgeAnalysis(IRAnalysis):
    """
    Find the control flow edges which close a cycle: edges whose target is
    still on the depth-first stack when the edge is walked from the entry.
    """

    back_edges: OrderedSet[tuple[IRBasicBlock, IRBasicBlock]]
    reachable: OrderedSet[IRBasicBlock]

    def analyze(self):
        self.cfg = self.analyses_cache.request_analysis(CFGAnalysis)
        self.back_edges = OrderedSet()
        self.reachable = OrderedSet()
        self._find_back_edges(self.function.entry)

    def _find_back_edges(self, entry: IRBasicBlock) -> None:
        on_stack: OrderedSet[IRBasicBlock] = OrderedSet([entry])
        self.reachable.add(entry)

        # (block, remaining successors) pairs
        stack = [(entry, iter(self.cfg.cfg_out(entry)))]
        while len(stack) > 0:
            bb, succs = stack[-1]
            for succ in succs:
                if succ not in self.reachable:
                    self.reachable.add(succ)
                    on_stack.add(succ)
                    stack.append((succ, iter(self.cfg.cfg_out(succ))))
                    break
                if succ in on_stack:
                    self.back_edges.add((bb, succ))
            else:
                stack.pop()
                on_stack.remove(bb)

    def is_back_edge(self, src: IRBasicBlock, dst: IRBasicBlock) -> bool:
        return (src, dst) in self.back_edges

    def forward_preds(self, bb: IRBasicBlock) -> list[IRBasicBlock]:
        """
        Predecessors of `bb` reached over edges which are not back edges.
        """
        return [pred for pred in self.cfg.cfg_in(bb) if not self.is_back_edge(pred, bb)]
