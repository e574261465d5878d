from typing import Generic, TypeVar

_T = TypeVar("_T")


class OrderedSet(Generic[_T], dict[_T, None]):
    """
    a minimal "ordered set" class. iteration follows insertion order,
    which keeps sweeps and dumps deterministic.
    only the operations the analyses need are implemented.
    """

    def __init__(self, iterable=None):
        super().__init__()
        if iterable is not None:
            for item in iterable:
                self.add(item)

    def __repr__(self):
        keys = ", ".join(repr(k) for k in self.keys())
        return f"{{{keys}}}"

    def get(self, *args, **kwargs):
        raise RuntimeError("can't call get() on OrderedSet!")

    def add(self, item: _T) -> None:
        self[item] = None

    def remove(self, item: _T) -> None:
        del self[item]


def wrap(value: int, bits: int) -> int:
    """
    Reduce an arbitrary python int modulo 2**bits.
    """
    return value & ((1 << bits) - 1)


def unsigned_to_signed(int_: int, bits: int) -> int:
    """
    Reinterpret an unsigned integer with n bits as a signed integer.
    The input is assumed to be in bounds for uint<bits>.
    """
    if int_ > (2 ** (bits - 1)) - 1:
        return int_ - (2**bits)
    return int_
