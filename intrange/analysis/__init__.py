from .analysis import IRAnalysesCache, IRAnalysis
from .back_edges import BackEdgeAnalysis
from .callgraph import CallGraph
from .cfg import CFGAnalysis
from .dfg import DFGAnalysis
from .taint import NO_TAINT, TaintOracle, TaintSources
