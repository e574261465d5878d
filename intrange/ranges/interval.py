from __future__ import annotations

from dataclasses import dataclass

from intrange.utils import unsigned_to_signed, wrap
from intrange.warnings import WidthMismatch, range_warn


@dataclass(frozen=True, slots=True)
class Interval:
    """Immutable wraparound interval of fixed-width integers.

    Denotes the half-open range [lower, upper) modulo 2**width. When
    lower > upper the range wraps around through zero. lower == upper is
    reserved for the two special values:
        lower == upper == 2**width - 1 -> the full set
        lower == upper == 0            -> the empty set
    """

    width: int
    lower: int
    upper: int

    def __post_init__(self):
        assert self.width > 0, self.width
        mask = (1 << self.width) - 1
        assert 0 <= self.lower <= mask and 0 <= self.upper <= mask, self
        assert self.lower != self.upper or self.lower in (0, mask), self

    @classmethod
    def full(cls, width: int) -> Interval:
        """Every value of the given width."""
        mask = (1 << width) - 1
        return cls(width, mask, mask)

    @classmethod
    def empty(cls, width: int) -> Interval:
        """No value at all."""
        return cls(width, 0, 0)

    @classmethod
    def constant(cls, width: int, value: int) -> Interval:
        """The single value `value` (taken modulo 2**width)."""
        value = wrap(value, width)
        return cls(width, value, wrap(value + 1, width))

    @classmethod
    def from_bounds(cls, width: int, lower: int, upper: int) -> Interval:
        """[lower, upper) with both bounds taken modulo 2**width."""
        return cls(width, wrap(lower, width), wrap(upper, width))

    @property
    def modulus(self) -> int:
        return 1 << self.width

    @property
    def mask(self) -> int:
        return self.modulus - 1

    @property
    def is_full(self) -> bool:
        return self.lower == self.upper and self.lower == self.mask

    @property
    def is_empty(self) -> bool:
        return self.lower == self.upper and self.lower == 0

    @property
    def is_wrapped(self) -> bool:
        return self.lower > self.upper

    @property
    def is_single_element(self) -> bool:
        return not self.is_full and self.size == 1

    @property
    def size(self) -> int:
        """Number of values in the interval."""
        if self.is_full:
            return self.modulus
        return wrap(self.upper - self.lower, self.width)

    @property
    def umin(self) -> int:
        if self.is_full or (self.is_wrapped and self.upper != 0):
            return 0
        return self.lower

    @property
    def umax(self) -> int:
        if self.is_full or self.is_wrapped:
            return self.mask
        return self.upper - 1

    @property
    def smin(self) -> int:
        """Smallest value as a signed integer."""
        signed_min = 1 << (self.width - 1)
        if self.is_full or self.contains(signed_min):
            return -signed_min
        # the signed values are a single run starting at lower
        return unsigned_to_signed(self.lower, self.width)

    @property
    def smax(self) -> int:
        """Largest value as a signed integer."""
        signed_max = (1 << (self.width - 1)) - 1
        if self.is_full or self.contains(signed_max):
            return signed_max
        return unsigned_to_signed(wrap(self.upper - 1, self.width), self.width)

    @property
    def is_sign_wrapped(self) -> bool:
        """
        Whether the interval wraps around through the signed boundary, i.e.
        contains both the largest and the smallest signed value.
        """
        smax = (1 << (self.width - 1)) - 1
        return self.contains(smax) and self.contains(smax + 1)

    def contains(self, value: int) -> bool:
        value = wrap(value, self.width)
        if self.lower == self.upper:
            return self.is_full
        if not self.is_wrapped:
            return self.lower <= value < self.upper
        return value >= self.lower or value < self.upper

    def __contains__(self, value: int) -> bool:
        return self.contains(value)

    def contains_interval(self, other: Interval) -> bool:
        """Whether every value of `other` is in this interval."""
        if self.is_full or other.is_empty:
            return True
        if self.is_empty or other.is_full:
            return False
        if not self.is_wrapped:
            if other.is_wrapped:
                return False
            return self.lower <= other.lower and other.upper <= self.upper
        if not other.is_wrapped:
            return other.upper <= self.upper or self.lower <= other.lower
        return other.upper <= self.upper and self.lower <= other.lower

    def values(self):
        """Iterate over the members in order, starting from lower."""
        for i in range(self.size):
            yield wrap(self.lower + i, self.width)

    def match_width(self, other: Interval) -> Interval:
        """
        Bring `other` to the width of this interval by zero extension or
        truncation, warning when that changes anything.
        """
        if other.width == self.width:
            return other
        range_warn(
            WidthMismatch(
                f"combining i{self.width} interval {self} with i{other.width} "
                f"interval {other}, converting the latter to i{self.width}"
            )
        )
        return other.zext_or_trunc(self.width)

    def _make(self, lower: int, upper: int) -> Interval:
        return Interval.from_bounds(self.width, lower, upper)

    @staticmethod
    def _smaller(a: Interval, b: Interval) -> Interval:
        # tie-break on the lower bound so that the choice is symmetric
        if a.size != b.size:
            return a if a.size < b.size else b
        return a if a.lower <= b.lower else b

    def _bridge(self, other: Interval) -> Interval:
        """
        Smallest single interval covering two disjoint intervals, by closing
        the smaller of the two gaps between them.
        """
        gap_after = wrap(other.lower - self.upper, self.width)
        gap_before = wrap(self.lower - other.upper, self.width)
        if gap_after != gap_before:
            if gap_after < gap_before:
                return self._make(self.lower, other.upper)
            return self._make(other.lower, self.upper)
        if self.lower <= other.lower:
            return self._make(self.lower, other.upper)
        return self._make(other.lower, self.upper)

    def union(self, other: Interval) -> Interval:
        """
        Smallest interval containing every value of both operands.
        """
        other = self.match_width(other)
        if self.is_full or other.is_empty:
            return self
        if other.is_full or self.is_empty:
            return other

        if not self.is_wrapped and other.is_wrapped:
            return other.union(self)

        if not self.is_wrapped and not other.is_wrapped:
            if other.upper < self.lower or self.upper < other.lower:
                return self._bridge(other)

            lower = min(self.lower, other.lower)
            upper = self.upper
            if other.upper - 1 > self.upper - 1:
                upper = other.upper
            return self._make(lower, upper)

        if not other.is_wrapped:
            # other lies inside one of the two pieces
            if other.upper <= self.upper or other.lower >= self.lower:
                return self
            # other spans the gap
            if other.lower <= self.upper and self.lower <= other.upper:
                return Interval.full(self.width)
            if self.upper < other.lower:
                # other lies inside the gap
                if other.upper < self.lower:
                    return self._bridge(other)
                # other reaches the upper piece, possibly just touching it
                return self._make(other.lower, self.upper)
            # other extends the lower piece into the gap
            return self._make(self.lower, other.upper)

        if other.lower <= self.upper or self.lower <= other.upper:
            return Interval.full(self.width)

        return self._make(min(self.lower, other.lower), max(self.upper, other.upper))

    def intersect(self, other: Interval) -> Interval:
        """
        Smallest interval containing every value in both operands. When the
        exact intersection is two disjoint pieces, the smaller operand is
        returned.
        """
        other = self.match_width(other)
        if self.is_empty or other.is_full:
            return self
        if other.is_empty or self.is_full:
            return other

        if not self.is_wrapped and other.is_wrapped:
            return other.intersect(self)

        if not self.is_wrapped and not other.is_wrapped:
            if self.lower < other.lower:
                if self.upper <= other.lower:
                    return Interval.empty(self.width)
                if self.upper < other.upper:
                    return self._make(other.lower, self.upper)
                return other
            if self.upper < other.upper:
                return self
            if self.lower < other.upper:
                return self._make(self.lower, other.upper)
            return Interval.empty(self.width)

        if not other.is_wrapped:
            if other.lower < self.upper:
                if other.upper < self.upper:
                    return other
                if other.upper <= self.lower:
                    return self._make(other.lower, self.upper)
                return self._smaller(self, other)
            if other.lower < self.lower:
                if other.upper <= self.lower:
                    return Interval.empty(self.width)
                return self._make(self.lower, other.upper)
            return other

        if other.upper < self.upper:
            if other.lower < self.upper:
                return self._smaller(self, other)
            if other.lower < self.lower:
                return self._make(self.lower, other.upper)
            return other
        if other.upper <= self.lower:
            if other.lower < self.lower:
                return self
            return self._make(other.lower, self.upper)
        return self._smaller(self, other)

    def inverse(self) -> Interval:
        """
        The complement: every value not in this interval.
        """
        if self.is_full:
            return Interval.empty(self.width)
        if self.is_empty:
            return Interval.full(self.width)
        return Interval(self.width, self.upper, self.lower)

    def add(self, other: Interval) -> Interval:
        other = self.match_width(other)
        if self.is_empty or other.is_empty:
            return Interval.empty(self.width)
        if self.is_full or other.is_full:
            return Interval.full(self.width)
        size = self.size + other.size - 1
        if size >= self.modulus:
            return Interval.full(self.width)
        lower = self.lower + other.lower
        return self._make(lower, lower + size)

    def sub(self, other: Interval) -> Interval:
        other = self.match_width(other)
        if self.is_empty or other.is_empty:
            return Interval.empty(self.width)
        if self.is_full or other.is_full:
            return Interval.full(self.width)
        size = self.size + other.size - 1
        if size >= self.modulus:
            return Interval.full(self.width)
        lower = self.lower - (other.upper - 1)
        return self._make(lower, lower + size)

    def multiply(self, other: Interval) -> Interval:
        other = self.match_width(other)
        if self.is_empty or other.is_empty:
            return Interval.empty(self.width)
        if self.is_full or other.is_full:
            return Interval.full(self.width)
        # exact product bounds in double width, then truncate
        lower = self.umin * other.umin
        upper = self.umax * other.umax + 1
        if upper - lower >= self.modulus:
            return Interval.full(self.width)
        return self._make(lower, upper)

    def udiv(self, other: Interval) -> Interval:
        other = self.match_width(other)
        if self.is_empty or other.is_empty or other.umax == 0:
            return Interval.empty(self.width)
        if other.is_full:
            return Interval.full(self.width)

        lower = self.umin // other.umax

        divisor_min = other.umin
        if divisor_min == 0:
            # smallest non-zero divisor: 1, except for [X, 1)
            divisor_min = other.lower if other.upper == 1 else 1

        upper = wrap(self.umax // divisor_min + 1, self.width)
        if lower == upper:
            return Interval.full(self.width)
        return self._make(lower, upper)

    def shl(self, other: Interval) -> Interval:
        other = self.match_width(other)
        if self.is_empty or other.is_empty:
            return Interval.empty(self.width)

        lower = wrap(self.umin << other.umin, self.width) if other.umin < self.width else 0
        upper = wrap(self.umax << other.umax, self.width) if other.umax < self.width else 0

        leading_zeros = self.width - self.umax.bit_length()
        if leading_zeros > other.umax:
            # no bit is shifted out
            return self._make(lower, upper + 1)
        return Interval.full(self.width)

    def lshr(self, other: Interval) -> Interval:
        other = self.match_width(other)
        if self.is_empty or other.is_empty:
            return Interval.empty(self.width)

        upper = self.umax >> other.umin if other.umin < self.width else 0
        lower = self.umin >> other.umax if other.umax < self.width else 0
        if lower == wrap(upper + 1, self.width):
            return Interval.full(self.width)
        return self._make(lower, upper + 1)

    def binary_and(self, other: Interval) -> Interval:
        other = self.match_width(other)
        if self.is_empty or other.is_empty:
            return Interval.empty(self.width)
        umax = min(self.umax, other.umax)
        if umax == self.mask:
            return Interval.full(self.width)
        return self._make(0, umax + 1)

    def binary_or(self, other: Interval) -> Interval:
        other = self.match_width(other)
        if self.is_empty or other.is_empty:
            return Interval.empty(self.width)
        umin = max(self.umin, other.umin)
        if umin == 0:
            return Interval.full(self.width)
        return self._make(umin, 0)

    def zero_extend(self, width: int) -> Interval:
        assert width > self.width, (self, width)
        if self.is_empty:
            return Interval.empty(width)
        if self.is_full or self.is_wrapped:
            # [X, 0) does not really wrap around
            lower = self.lower if self.upper == 0 else 0
            return Interval(width, lower, 1 << self.width)
        return Interval(width, self.lower, self.upper)

    def sign_extend(self, width: int) -> Interval:
        assert width > self.width, (self, width)
        if self.is_empty:
            return Interval.empty(width)

        signed_min = 1 << (self.width - 1)
        if self.upper == signed_min:
            # [X, INT_MIN) does not really wrap around
            lower = wrap(unsigned_to_signed(self.lower, self.width), width)
            return Interval(width, lower, self.upper)

        if self.is_full or self.is_sign_wrapped:
            return Interval.from_bounds(width, -signed_min, signed_min)

        lower = unsigned_to_signed(self.lower, self.width)
        upper = unsigned_to_signed(self.upper, self.width)
        return Interval.from_bounds(width, lower, upper)

    def truncate(self, width: int) -> Interval:
        assert width < self.width, (self, width)
        if self.is_full or self.size >= (1 << width):
            return Interval.full(width)
        return Interval.from_bounds(width, self.lower, self.upper)

    def zext_or_trunc(self, width: int) -> Interval:
        if width > self.width:
            return self.zero_extend(width)
        if width < self.width:
            return self.truncate(width)
        return self

    def __str__(self) -> str:
        if self.is_full:
            return "full-set"
        if self.is_empty:
            return "empty-set"
        return f"[{self.lower},{self.upper})"

    __repr__ = __str__


def make_icmp_region(predicate: str, other: Interval) -> Interval:
    """
    The values `x` for which `x <predicate> y` can hold for some y in `other`.
    """
    width = other.width
    if other.is_empty:
        return other

    signed_min = 1 << (width - 1)

    if predicate == "eq":
        return other
    if predicate == "ne":
        if other.is_single_element:
            return Interval(width, other.upper, other.lower)
        return Interval.full(width)

    if predicate == "ult":
        if other.umax == 0:
            return Interval.empty(width)
        return Interval(width, 0, other.umax)
    if predicate == "ule":
        if other.umax == other.mask:
            return Interval.full(width)
        return Interval(width, 0, other.umax + 1)
    if predicate == "ugt":
        if other.umin == other.mask:
            return Interval.empty(width)
        return Interval(width, other.umin + 1, 0)
    if predicate == "uge":
        if other.umin == 0:
            return Interval.full(width)
        return Interval(width, other.umin, 0)

    if predicate == "slt":
        if other.smax == -signed_min:
            return Interval.empty(width)
        return Interval.from_bounds(width, signed_min, other.smax)
    if predicate == "sle":
        if other.smax == signed_min - 1:
            return Interval.full(width)
        return Interval.from_bounds(width, signed_min, other.smax + 1)
    if predicate == "sgt":
        if other.smin == signed_min - 1:
            return Interval.empty(width)
        return Interval.from_bounds(width, other.smin + 1, signed_min)
    if predicate == "sge":
        if other.smin == -signed_min:
            return Interval.full(width)
        return Interval.from_bounds(width, other.smin, signed_min)

    raise ValueError(f"not a comparison predicate: {predicate}")
