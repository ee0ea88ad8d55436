"""
The fmt script module: print helpers bound to the shell's stdout proxy.
"""

from __future__ import annotations

from types import ModuleType
from typing import Any

from .config import MAX_STRING_LEN
from .errors import InvalidArgumentTypeError, StringLimitError, WrongNumArgumentsError
from .streams import DiscardWriter, Writer
from .values import to_string, type_name


def get_print_args(args: tuple[Any, ...], max_len: int = MAX_STRING_LEN) -> list[str]:
    """Stringify args, failing as soon as their total length passes max_len."""
    print_args: list[str] = []
    total = 0
    for arg in args:
        s = to_string(arg)
        if total + len(s) > max_len:
            raise StringLimitError()
        total += len(s)
        print_args.append(s)
    return print_args


def format_args(args: tuple[Any, ...], max_len: int = MAX_STRING_LEN) -> str:
    """Apply printf-style formatting: args[0] is the format, the rest its values."""
    if not args:
        raise WrongNumArgumentsError()
    fmt = args[0]
    if not isinstance(fmt, str):
        raise InvalidArgumentTypeError("format", "str", type_name(fmt))
    if len(args) == 1:
        return fmt
    s = fmt % tuple(args[1:])
    if len(s) > max_len:
        raise StringLimitError()
    return s


def safe_fmt(out: Writer | None, max_len: int = MAX_STRING_LEN) -> ModuleType:
    """Build the fmt module writing to out (discarded when None)."""
    if out is None:
        out = DiscardWriter()

    def print_(*args: Any) -> None:
        out.write("".join(get_print_args(args, max_len)))

    def println(*args: Any) -> None:
        out.write(" ".join(get_print_args(args, max_len)) + "\n")

    def printf(*args: Any) -> None:
        out.write(format_args(args, max_len))

    def sprintf(*args: Any) -> str:
        return format_args(args, max_len)

    module = ModuleType("fmt", "Formatted printing to the shell output.")
    module.print = print_
    module.println = println
    module.printf = printf
    module.sprintf = sprintf
    return module


__all__ = ["format_args", "get_print_args", "safe_fmt"]
