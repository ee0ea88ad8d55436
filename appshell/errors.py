"""
Error types raised by the shell kernel and its built-in modules.

All kernel errors derive from ShellError so front-ends can catch one type.
Argument errors raised by built-in functions surface inside EvalError as the
chained cause.
"""

from __future__ import annotations


class ShellError(Exception):
    """Base class for every error raised by the shell kernel."""

    pass


class ParseError(ShellError):
    """Raised when a fragment is not syntactically valid."""

    def __init__(
        self,
        message: str,
        filename: str = "(repl)",
        line: int = 0,
        column: int = 0,
        source: str = "",
    ):
        self.message = message
        self.filename = filename
        self.line = line
        self.column = column
        self.source = source
        super().__init__(f"{filename}:{line}:{column}: {message}")


class CompilationError(ShellError):
    """Raised when a parsed fragment cannot be compiled."""

    def __init__(self, errors: list[str] | tuple[str, ...] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__(f"appshell: compilation error {'; '.join(self.errors)}")


class EvalError(ShellError):
    """Raised when a compiled fragment fails at run time."""

    def __init__(self, error: BaseException):
        self.error = error
        super().__init__(f"appshell: eval error: {type(error).__name__}: {error}")


class ShellBusyError(ShellError):
    """Raised when eval is entered while another evaluation is running."""

    pass


class CancelledError(ShellError):
    """Raised when an operation observes a cancelled context."""

    pass


class SnapshotError(ShellError):
    """Raised when a snapshot value cannot be installed into the session."""

    pass


class ImportNotAllowedError(ImportError):
    """Raised when script code imports a module outside the registry."""

    pass


class WrongNumArgumentsError(ShellError):
    """Raised by built-in functions called with the wrong arity."""

    def __init__(self) -> None:
        super().__init__("wrong number of arguments")


class InvalidArgumentTypeError(ShellError):
    """Raised by built-in functions receiving an argument of the wrong type."""

    def __init__(self, name: str, expected: str, found: str):
        self.name = name
        self.expected = expected
        self.found = found
        super().__init__(f"invalid type for argument '{name}': expected {expected}, found {found}")


class StringLimitError(ShellError):
    """Raised when a string result would exceed the configured maximum length."""

    def __init__(self) -> None:
        super().__init__("exceeding string size limit")


class JSONRPCError(ShellError):
    """Raised by the jsonrpc module for transport and protocol failures."""

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"json-rpc-error: {code}, {message}")


__all__ = [
    "ShellError",
    "ParseError",
    "CompilationError",
    "EvalError",
    "ShellBusyError",
    "CancelledError",
    "SnapshotError",
    "ImportNotAllowedError",
    "WrongNumArgumentsError",
    "InvalidArgumentTypeError",
    "StringLimitError",
    "JSONRPCError",
]
