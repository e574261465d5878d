from typing import TYPE_CHECKING, Iterable, Protocol

from intrange.utils import OrderedSet

if TYPE_CHECKING:
    from intrange.ranges.symbols import SymbolID


class TaintOracle(Protocol):
    """
    Decides which symbols carry attacker-controlled (unconstrained) values.
    """

    def is_taint_source(self, symbol: "SymbolID") -> bool: ...


class TaintSources:
    """
    A fixed set of taint source symbols.
    """

    def __init__(self, symbols: Iterable["SymbolID"] = ()):
        self.symbols: OrderedSet["SymbolID"] = OrderedSet(symbols)

    def is_taint_source(self, symbol: "SymbolID") -> bool:
        return symbol in self.symbols

    def __iter__(self):
        return iter(self.symbols)

    def __len__(self):
        return len(self.symbols)

    def __repr__(self):
        return f"TaintSources({list(self.symbols)!r})"


NO_TAINT = TaintSources()
