class ErrorList(list):
    """
    List subclass for storing exceptions.
    To deliver multiple IR errors to the user at once, append each
    raised Exception to this list and call raise_if_not_empty once the task
    is completed.
    """

    def raise_if_not_empty(self):
        if len(self) == 1:
            raise self[0]
        elif len(self) > 1:
            err_msg = ["IR check failed with the following errors:"]
            err_msg += [f"{type(i).__name__}: {i}" for i in self]
            raise IRValidationError("\n\n".join(err_msg))


class _BaseIntRangeException(Exception):
    """
    Base intrange exception class.

    This exception is not raised directly. Other exceptions inherit it in
    order to display location information in the error string.
    """

    def __init__(self, message="Error Message not found.", *items, hint=None):
        """
        Exception initializer.

        Arguments
        ---------
        message : str
            Error message to display with the exception.
        *items : object | Tuple[int, int], optional
            IR objects (instructions, blocks, functions) the error refers to,
            or a single (lineno, col_offset) tuple for errors in IR source text.
        """
        self._message = message
        self._hint = hint

        self.lineno = None
        self.col_offset = None
        self.annotations = None

        if len(items) == 1 and isinstance(items[0], tuple) and isinstance(items[0][0], int):
            self.lineno, self.col_offset = items[0][:2]
        else:
            # strip out None sources so that None can be passed as a valid
            # annotation (in case it is only available optionally)
            self.annotations = [k for k in items if k is not None]

    @property
    def hint(self):
        if callable(self._hint):
            return self._hint()
        return self._hint

    @property
    def message(self):
        msg = self._message
        if self.hint:
            msg += f"\n\n  (hint: {self.hint})"
        return msg

    def __str__(self):
        if not self.annotations:
            if self.lineno is not None and self.col_offset is not None:
                return f"line {self.lineno}:{self.col_offset} {self.message}"
            return self.message

        annotation_msg = "\n".join(f"  {str(item).strip()}" for item in self.annotations)
        return f"{self.message}\n\n{annotation_msg}"


class IntRangeException(_BaseIntRangeException):
    pass


class ParserException(IntRangeException):
    """Text IR could not be parsed."""


class IRValidationError(IntRangeException):
    """IR is syntactically valid but malformed (bad labels, undefined vars)."""


class UnknownSymbol(IntRangeException):
    """A symbol string does not name a known symbol kind."""


class InvalidSettings(IntRangeException):
    """A configuration value is out of range."""


class IntRangeInternalException(_BaseIntRangeException):
    """
    Base intrange internal exception class.

    Internal exceptions mean the analysis met input that breaks its
    well-typed-IR assumption. They are never recovered from.
    """

    def __str__(self):
        return (
            f"{super().__str__()}\n\n"
            "This is an unhandled internal analysis error: the input IR "
            "violates an assumption the range analysis relies on."
        )


class AnalysisPanic(IntRangeInternalException):
    """General unexpected condition during range analysis."""
