"""
Guarded builtins and RestrictedPython guard functions for script namespaces.

Script code only reaches the outside world through the stream proxies, the
module registry and the guards installed here.
"""

from __future__ import annotations

import operator
from collections.abc import Callable
from typing import Any

from RestrictedPython import safe_builtins
from RestrictedPython.Eval import default_guarded_getiter
from RestrictedPython.Guards import (
    guarded_iter_unpack_sequence,
    guarded_unpack_sequence,
    safer_getattr,
)

from .streams import ProxyReader, ProxyWriter

# Module name given to fragment namespaces
REPL_MODULE_NAME = "__appshell_repl__"

# Blocked builtins that could be dangerous
BLOCKED_BUILTINS = frozenset(
    {
        "open",
        "exec",
        "eval",
        "compile",
        "breakpoint",
        "globals",
        "locals",
        "vars",
    }
)

INPLACE_OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "+=": operator.iadd,
    "-=": operator.isub,
    "*=": operator.imul,
    "/=": operator.itruediv,
    "//=": operator.ifloordiv,
    "%=": operator.imod,
    "**=": operator.ipow,
    "<<=": operator.ilshift,
    ">>=": operator.irshift,
    "&=": operator.iand,
    "|=": operator.ior,
    "^=": operator.ixor,
    "@=": operator.imatmul,
}


class ScriptType(type):
    """Metaclass of every class defined by script code."""

    pass


class StreamPrintCollector:
    """Print collector for RestrictedPython that writes to a stream proxy."""

    def __init__(self, stream: ProxyWriter, getattr_: Callable[..., Any] | None = None):
        self._stream = stream
        self._getattr = getattr_ or safer_getattr

    def _call_print(self, *objects: Any, **kwargs: Any) -> None:
        """Called by RestrictedPython for print() calls."""
        if kwargs.get("file") is None:
            kwargs["file"] = self._stream
        else:
            self._getattr(kwargs["file"], "write")
        print(*objects, **kwargs)

    def __call__(self) -> str:
        # output goes straight to the stream, so `printed` is always empty
        return ""


def guarded_getitem(obj: Any, key: Any) -> Any:
    """
    Safe getitem guard for RestrictedPython.

    Allows subscript access (obj[key]) for safe container types.
    """
    if isinstance(obj, (dict, list, tuple, str, bytes)):
        return obj[key]
    if hasattr(obj, "__getitem__"):
        return obj[key]
    msg = f"Subscript access not allowed on {type(obj).__name__}"
    raise TypeError(msg)


def guarded_write(obj: Any) -> Any:
    """
    Safe write guard for RestrictedPython.

    Containers and instances of script-defined classes may be mutated.
    Modules and host objects may not.
    """
    if isinstance(obj, (dict, list, set)):
        return obj
    if isinstance(type(obj), ScriptType) or isinstance(obj, ScriptType):
        return obj
    msg = f"Write access not allowed on {type(obj).__name__}"
    raise TypeError(msg)


def inplace_var(op: str, target: Any, value: Any) -> Any:
    try:
        fn = INPLACE_OPERATORS[op]
    except KeyError:
        raise TypeError(f"unsupported in-place operator {op}") from None
    return fn(target, value)


def apply(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    return func(*args, **kwargs)


def build_safe_builtins(
    stdout: ProxyWriter,
    stdin: ProxyReader,
    importer: Callable[..., Any],
) -> dict[str, Any]:
    """
    Build restricted builtins dict.

    Insertion order is stable, which keeps builtin symbol indices stable.
    """
    builtins = dict(safe_builtins)

    def input_(prompt: Any = "") -> str:
        if prompt:
            stdout.write(str(prompt))
        line = stdin.readline()
        if not line:
            raise EOFError("EOF when reading a line")
        return line.rstrip("\n")

    safe_additions = {
        "str": str,
        "int": int,
        "float": float,
        "bool": bool,
        "list": list,
        "dict": dict,
        "tuple": tuple,
        "set": set,
        "frozenset": frozenset,
        "sorted": sorted,
        "reversed": reversed,
        "enumerate": enumerate,
        "range": range,
        "zip": zip,
        "map": map,
        "filter": filter,
        "any": any,
        "all": all,
        "sum": sum,
        "min": min,
        "max": max,
        "abs": abs,
        "round": round,
        "pow": pow,
        "divmod": divmod,
        "isinstance": isinstance,
        "issubclass": issubclass,
        "hasattr": hasattr,
        "getattr": safer_getattr,
        "repr": repr,
        "hash": hash,
        "ord": ord,
        "chr": chr,
        "hex": hex,
        "bin": bin,
        "oct": oct,
        "format": format,
        "slice": slice,
        "iter": iter,
        "next": next,
        "input": input_,
        "__import__": importer,
    }
    builtins.update(safe_additions)

    for blocked in BLOCKED_BUILTINS:
        builtins.pop(blocked, None)

    return builtins


def build_namespace(builtins: dict[str, Any], stdout: ProxyWriter, name: str = REPL_MODULE_NAME) -> dict[str, Any]:
    """Fresh module namespace carrying the guards RestrictedPython code expects."""
    return {
        "__name__": name,
        "__doc__": None,
        "__builtins__": builtins,
        "__metaclass__": ScriptType,
        "_getiter_": default_guarded_getiter,
        "_iter_unpack_sequence_": guarded_iter_unpack_sequence,
        "_unpack_sequence_": guarded_unpack_sequence,
        "_getattr_": safer_getattr,
        "_getitem_": guarded_getitem,
        "_write_": guarded_write,
        "_inplacevar_": inplace_var,
        "_apply_": apply,
        "_print_": lambda _getattr_=None: StreamPrintCollector(stdout, _getattr_),
    }


__all__ = [
    "BLOCKED_BUILTINS",
    "REPL_MODULE_NAME",
    "ScriptType",
    "StreamPrintCollector",
    "build_namespace",
    "build_safe_builtins",
    "guarded_getitem",
    "guarded_write",
]
