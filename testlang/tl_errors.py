"""
Error types raised by the testlang lexer, parser and evaluator.

Every error is fatal for the run it occurs in. The runner converts them into
an error ExecutionResult; `execute` lets them propagate to the caller.
"""
from typing import Optional


class TLError(Exception):
    """Base class for all testlang errors. `loc` is the source Location, if known."""
    def __init__(self, message: str, loc=None):
        super().__init__(message)
        self.loc = loc


class LexError(TLError):
    def __init__(self, char: str, offset: int, loc=None):
        super().__init__(f'Unknown character "{char}" at position {offset}', loc)
        self.char = char
        self.offset = offset


class TLSyntaxError(TLError):
    """A malformed token sequence. Carries the offending token."""
    def __init__(self, expected: str, found, loc=None):
        from testlang.tl_lexer import stringify_token
        super().__init__(
            f"Expected {expected} but found {stringify_token(found)} instead.",
            loc if loc is not None else getattr(found, "loc", None),
        )
        self.expected = expected
        self.found = found


class TLNameError(TLError):
    def __init__(self, kind: str, name: str, loc=None):
        super().__init__(
            f"{kind} {name} could not be found in the current scope, "
            "are you sure it is spelled correctly?",
            loc,
        )
        self.kind = kind
        self.name = name


class TLTypeError(TLError):
    pass


class TLZeroDivisionError(TLError):
    pass


def error_kind(e: Exception) -> str:
    """Short label used when formatting an error for display."""
    match e:
        case LexError():
            return "LexError"
        case TLSyntaxError():
            return "SyntaxError"
        case TLNameError():
            return "NameError"
        case TLTypeError():
            return "TypeError"
        case TLZeroDivisionError():
            return "ZeroDivisionError"
        case RecursionError():
            return "RecursionError"
        case _:
            return "InternalError"


def location_of(e: Exception) -> Optional[dict]:
    loc = getattr(e, "loc", None)
    if loc is None:
        return None
    return {"line": loc.line, "col": loc.column}
