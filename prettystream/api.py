from __future__ import annotations
import json, math, re
from json.encoder import encode_basestring
from typing import Any, List, Optional

from .highlight import highlight_chunk
from .splitter import compute_chunk_boundaries, iter_chunks

DEFAULT_INDENT = 2
DEFAULT_CHUNK_SIZE = 1_000_000

class JSONParseError(ValueError):
    """Input is not well-formed JSON. `msg` is the parser diagnostic."""

    def __init__(self, msg: str, lineno: Optional[int] = None, colno: Optional[int] = None):
        self.msg = msg
        self.lineno = lineno
        self.colno = colno
        where = f" at line {lineno} column {colno}" if lineno is not None else ""
        super().__init__(f"{msg}{where}")

def _reject_constant(name: str) -> Any:
    raise JSONParseError(f"Unexpected token {name}")

def _parse_float(s: str) -> Any:
    f = float(s)
    # 1e400 and friends: no finite value, serialized as null
    return None if math.isinf(f) else f

def parse_json(text: str) -> Any:
    try:
        return json.loads(text, parse_constant=_reject_constant, parse_float=_parse_float)
    except json.JSONDecodeError as ex:
        raise JSONParseError(ex.msg, ex.lineno, ex.colno) from ex

_LONE_SURROGATE_RE = re.compile(r"[\ud800-\udfff]")

def _dump_string(s: str) -> str:
    # pairs were joined by the parser; whatever surrogate is left is unpaired
    return _LONE_SURROGATE_RE.sub(lambda m: "\\u%04x" % ord(m.group()), encode_basestring(s))

def _dump_float(x: float) -> str:
    """Shortest round-trip spelling, laid out the way Number#toString does."""
    if x == 0:
        return "0"
    sign = "-" if x < 0 else ""
    mant, _, exp = repr(abs(x)).partition("e")
    intpart, _, frac = mant.partition(".")
    digits = intpart + frac
    lead = len(digits) - len(digits.lstrip("0"))
    # value == 0.<digits> * 10**n
    n = len(intpart) + (int(exp) if exp else 0) - lead
    digits = digits.strip("0")
    k = len(digits)
    if k <= n <= 21:
        return sign + digits + "0" * (n - k)
    if 0 < n <= 21:
        return sign + digits[:n] + "." + digits[n:]
    if -6 < n <= 0:
        return sign + "0." + "0" * -n + digits
    e = n - 1
    head = digits if k == 1 else digits[0] + "." + digits[1:]
    return f"{sign}{head}e{'+' if e > 0 else '-'}{abs(e)}"

def _dump_scalar(val: Any) -> str:
    if val is None: return "null"
    if val is True: return "true"
    if val is False: return "false"
    if isinstance(val, str): return _dump_string(val)
    if isinstance(val, float): return _dump_float(val)
    if isinstance(val, int): return str(val)
    raise TypeError(f"Object of type {type(val).__name__} is not JSON serializable")

def _format_value(val: Any, out: List[str], indent: int, level: int) -> None:
    if isinstance(val, dict):
        items = list(val.items())
        if not items:
            out.append("{}"); return
        child = "\n" + " " * (indent * (level + 1)) if indent > 0 else ""
        colon = ": " if indent > 0 else ":"
        out.append("{")
        for i, (k, v) in enumerate(items):
            out.append(("," if i else "") + child + _dump_string(k) + colon)
            _format_value(v, out, indent, level + 1)
        out.append(("\n" + " " * (indent * level) if indent > 0 else "") + "}")
        return
    if isinstance(val, list):
        if not val:
            out.append("[]"); return
        child = "\n" + " " * (indent * (level + 1)) if indent > 0 else ""
        out.append("[")
        for i, el in enumerate(val):
            out.append(("," if i else "") + child)
            _format_value(el, out, indent, level + 1)
        out.append(("\n" + " " * (indent * level) if indent > 0 else "") + "]")
        return
    out.append(_dump_scalar(val))

def format_json(data: Any, indent: int = DEFAULT_INDENT) -> str:
    """`JSON.stringify(data, null, indent)`: original key order, no trailing newline."""
    out: List[str] = []
    _format_value(data, out, indent, 0)
    return "".join(out)

def line_count(s: str) -> int:
    return s.count("\n") + 1

def format_text(text: str, *, indent: Optional[int] = None) -> str:
    """Parse `text` and return its pretty form. Raises JSONParseError."""
    return format_json(parse_json(text), DEFAULT_INDENT if indent is None else indent)

def highlight_text(text: str, *, chunk_size: Optional[int] = None, indent: Optional[int] = None) -> List[str]:
    """Synchronous pipeline: pretty-print `text` and return the markup of each chunk."""
    pretty = format_text(text, indent=indent)
    bounds = compute_chunk_boundaries(pretty, chunk_size or DEFAULT_CHUNK_SIZE)
    return [highlight_chunk(piece) for _, _, _, piece in iter_chunks(pretty, bounds)]
