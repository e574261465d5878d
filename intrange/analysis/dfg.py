from typing import Optional

from intrange.analysis.analysis import IRAnalysesCache, IRAnalysis
from intrange.ir.basicblock import IRInstruction, IROperand, IRVariable
from intrange.ir.function import IRFunction


class DFGAnalysis(IRAnalysis):
    _dfg_outputs: dict[IRVariable, IRInstruction]

    def __init__(self, analyses_cache: IRAnalysesCache, function: IRFunction):
        super().__init__(analyses_cache, function)
        self._dfg_outputs = dict()

    # the instruction which produces this variable.
    def get_producing_instruction(self, op: IROperand) -> Optional[IRInstruction]:
        if not isinstance(op, IRVariable):
            return None
        return self._dfg_outputs.get(op)

    def analyze(self):
        # %15 = add i32 %13, %14
        # dfg_outputs of %15 is (%15 = add i32 %13, %14)
        for bb in self.function.get_basic_blocks():
            for inst in bb.instructions:
                for op in inst.get_outputs():
                    self._dfg_outputs[op] = inst
