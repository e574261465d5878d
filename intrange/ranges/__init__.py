from .driver import AnalysisContext, AnalysisState, RangeAnalysis
from .interval import Interval, make_icmp_region
from .symbols import (
    ArgSymbol,
    FieldSymbol,
    GlobalSymbol,
    ReturnSymbol,
    SymbolID,
    SymbolTable,
    symbol_from_string,
)
