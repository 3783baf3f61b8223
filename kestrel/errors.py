from typing import Optional

TYPE_MISMATCH = 'TypeMismatch'
UNBOUND_NAME = 'UnboundName'
IMMUTABLE_BINDING = 'ImmutableBinding'
ARGUMENT_ERROR = 'ArgumentError'
DIVISION_BY_ZERO = 'DivisionByZero'
STACK_OVERFLOW = 'StackOverflow'
PARSE_ERROR = 'ParseError'
INDEX_OUT_OF_RANGE = 'IndexOutOfRange'
ASSERTION_FAILURE = 'AssertionFailure'


class KestrelError(Exception):
    """Exception type used to propagate Kestrel runtime errors."""
    def __init__(self, kind: str, message: str):
        super().__init__(f"{kind}: {message}")
        self.kind = kind
        self.message = message


class ParseError(KestrelError):
    """Raised when source text does not match the grammar."""
    def __init__(self, line: Optional[int], column: Optional[int], message: str):
        super().__init__(PARSE_ERROR, message)
        self.line = line
        self.column = column
