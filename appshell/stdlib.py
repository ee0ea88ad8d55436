"""
Safe standard modules exposed to scripts.

Each module is a plain ModuleType populated with a curated set of functions
over the Python standard library. None of them touch the filesystem, the
network or the process.
"""

from __future__ import annotations

import base64 as _base64
import binascii
import json as _json
import math as _math
import random
import re
import time
from collections.abc import Callable
from types import ModuleType
from typing import Any

from .config import MAX_STRING_LEN
from .errors import InvalidArgumentTypeError, StringLimitError
from .values import from_interface, to_interface, type_name

# Names scripts may import unconditionally.
SAFE_MODULES = (
    "math",
    "text",
    "times",
    "rand",
    "json",
    "base64",
    "hex",
)


def make_module(name: str, doc: str, attrs: dict[str, Any]) -> ModuleType:
    module = ModuleType(name, doc)
    for key, value in attrs.items():
        setattr(module, key, value)
    return module


def _require_str(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidArgumentTypeError(name, "str", type_name(value))
    return value


def _as_bytes(name: str, value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode()
    raise InvalidArgumentTypeError(name, "bytes", type_name(value))


def math_module(max_len: int = MAX_STRING_LEN) -> ModuleType:
    attrs = {k: getattr(_math, k) for k in dir(_math) if not k.startswith("_")}
    return make_module("math", "Mathematical constants and functions.", attrs)


def text_module(max_len: int = MAX_STRING_LEN) -> ModuleType:
    def limited(s: str) -> str:
        if len(s) > max_len:
            raise StringLimitError()
        return s

    def repeat(s: str, count: int) -> str:
        _require_str("s", s)
        if len(s) * max(count, 0) > max_len:
            raise StringLimitError()
        return s * count

    def replace(s: str, old: str, new: str, count: int = -1) -> str:
        _require_str("s", s)
        _require_str("old", old)
        _require_str("new", new)
        hits = s.count(old) if old else len(s) + 1
        if count >= 0:
            hits = min(hits, count)
        if len(s) + hits * (len(new) - len(old)) > max_len:
            raise StringLimitError()
        return s.replace(old, new, count)

    def format_int(value: int, base: int = 10) -> str:
        if base == 10:
            return str(value)
        digits = "0123456789abcdefghijklmnopqrstuvwxyz"
        if not 2 <= base <= 36:
            raise ValueError(f"invalid base {base}")
        n, out = abs(value), ""
        while True:
            n, r = divmod(n, base)
            out = digits[r] + out
            if n == 0:
                break
        return ("-" if value < 0 else "") + out

    def re_find(pattern: str, s: str) -> list[str]:
        return [m.group(0) for m in re.finditer(pattern, s)]

    attrs: dict[str, Callable[..., Any]] = {
        "contains": lambda s, sub: sub in s,
        "has_prefix": lambda s, prefix: s.startswith(prefix),
        "has_suffix": lambda s, suffix: s.endswith(suffix),
        "split": lambda s, sep=None: s.split(sep),
        "join": lambda items, sep: limited(sep.join(items)),
        "replace": replace,
        "to_upper": lambda s: limited(s.upper()),
        "to_lower": lambda s: limited(s.lower()),
        "trim_space": lambda s: s.strip(),
        "repeat": repeat,
        "format_int": format_int,
        "parse_int": lambda s, base=10: int(s, base),
        "parse_float": lambda s: float(s),
        "re_match": lambda pattern, s: re.search(pattern, s) is not None,
        "re_find": re_find,
        "re_replace": lambda pattern, s, repl: limited(re.sub(pattern, repl, s)),
        "re_split": lambda pattern, s: re.split(pattern, s),
    }
    return make_module("text", "String helpers.", attrs)


def times_module(max_len: int = MAX_STRING_LEN) -> ModuleType:
    def format_(ts: float, layout: str = "%Y-%m-%dT%H:%M:%S%z") -> str:
        return time.strftime(layout, time.localtime(ts))

    def parse(s: str, layout: str = "%Y-%m-%dT%H:%M:%S%z") -> float:
        return time.mktime(time.strptime(s, layout))

    attrs = {
        "now": time.time,
        "unix": lambda: int(time.time()),
        "sleep": time.sleep,
        "format": format_,
        "parse": parse,
        "millisecond": 0.001,
        "second": 1.0,
        "minute": 60.0,
        "hour": 3600.0,
    }
    return make_module("times", "Wall clock helpers.", attrs)


def rand_module(max_len: int = MAX_STRING_LEN) -> ModuleType:
    rng = random.Random()
    attrs = {
        "int": lambda: rng.getrandbits(63),
        "float": rng.random,
        "intn": lambda n: rng.randrange(n),
        "seed": rng.seed,
        "shuffle": rng.shuffle,
    }
    return make_module("rand", "Pseudo-random numbers.", attrs)


def json_module(max_len: int = MAX_STRING_LEN) -> ModuleType:
    def encode(value: Any) -> str:
        return _json.dumps(to_interface(value), allow_nan=False)

    def decode(s: str | bytes) -> Any:
        return from_interface(_json.loads(s))

    def indent(value: Any, width: int = 2) -> str:
        return _json.dumps(to_interface(value), indent=width, allow_nan=False)

    return make_module(
        "json", "JSON encoding of script values.", {"encode": encode, "decode": decode, "indent": indent}
    )


def base64_module(max_len: int = MAX_STRING_LEN) -> ModuleType:
    attrs = {
        "encode": lambda b: _base64.b64encode(_as_bytes("b", b)).decode("ascii"),
        "decode": lambda s: _base64.b64decode(_require_str("s", s)),
        "url_encode": lambda b: _base64.urlsafe_b64encode(_as_bytes("b", b)).decode("ascii"),
        "url_decode": lambda s: _base64.urlsafe_b64decode(_require_str("s", s)),
        "raw_encode": lambda b: _base64.b64encode(_as_bytes("b", b)).decode("ascii").rstrip("="),
        "raw_decode": lambda s: _base64.b64decode(_require_str("s", s) + "=" * (-len(s) % 4)),
    }
    return make_module("base64", "Base64 encoding.", attrs)


def hex_module(max_len: int = MAX_STRING_LEN) -> ModuleType:
    attrs = {
        "encode": lambda b: binascii.hexlify(_as_bytes("b", b)).decode("ascii"),
        "decode": lambda s: binascii.unhexlify(_require_str("s", s)),
    }
    return make_module("hex", "Hexadecimal encoding.", attrs)


BUILDERS: dict[str, Callable[[int], ModuleType]] = {
    "math": math_module,
    "text": text_module,
    "times": times_module,
    "rand": rand_module,
    "json": json_module,
    "base64": base64_module,
    "hex": hex_module,
}


def get_module_map(*names: str, max_len: int = MAX_STRING_LEN) -> dict[str, ModuleType]:
    """Build the named safe modules. Unknown names are ignored."""
    return {name: BUILDERS[name](max_len) for name in names if name in BUILDERS}


__all__ = ["SAFE_MODULES", "get_module_map"]
