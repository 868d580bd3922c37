from __future__ import annotations
from enum import Enum
from typing import Dict, Iterable, Iterator, Optional, Tuple

# =======================================================
#        Single-pass contextual tokenizer (per chunk)
# =======================================================
# Works over text that already parsed as JSON. Context never crosses a chunk:
# whatever sits at the start of a chunk has no known position and is left plain.

class TokenKind(Enum):
    PUNCTUATION = "punctuation"
    COMMA       = "comma"
    KEY         = "key"
    STRING      = "string"
    NUMBER      = "number"
    BOOLEAN     = "boolean"
    NULL        = "null"
    OTHER       = "other"

CSS_CLASSES: Dict[TokenKind, str] = {
    TokenKind.PUNCTUATION: "jv-punc",
    TokenKind.COMMA:       "jv-punc",
    TokenKind.STRING:      "jv-string",
    TokenKind.NUMBER:      "jv-number",
    TokenKind.BOOLEAN:     "jv-boolean",
    TokenKind.NULL:        "jv-null",
}

_WS = " \t\r\n"
_BRACKETS = "{}[]"
_DIGITS = "0123456789"
_KEYWORDS = (("true", TokenKind.BOOLEAN), ("false", TokenKind.BOOLEAN), ("null", TokenKind.NULL))

_S_TEXT, _S_STRING, _S_STRING_ESC = 0, 1, 2

def escape_markup(s: str) -> str:
    return s.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")

def _scan_string(src: str, i: int) -> int:
    """Index just past the string literal opening at src[i] (or len(src) if cut)."""
    n = len(src); i += 1
    state = _S_STRING
    while i < n:
        c = src[i]; i += 1
        if state == _S_STRING_ESC:
            state = _S_STRING
        elif c == "\\":
            state = _S_STRING_ESC
        elif c == '"':
            return i
    return n

def _scan_digits(src: str, i: int) -> int:
    n = len(src)
    while i < n and src[i] in _DIGITS: i += 1
    return i

def _scan_number(src: str, i: int) -> int:
    """Greedy JSON number grammar: -?int(.frac)?([eE][+-]?exp)?"""
    n = len(src)
    if src[i] == "-": i += 1
    i = _scan_digits(src, i)
    if i < n and src[i] == ".":
        i = _scan_digits(src, i + 1)
    if i < n and src[i] in "eE":
        i += 1
        if i < n and src[i] in "+-": i += 1
        i = _scan_digits(src, i)
    return i

def _at_boundary(src: str, i: int) -> bool:
    # end of chunk counts as a boundary
    if i >= len(src): return True
    c = src[i]
    return not (c.isascii() and (c.isalnum() or c == "_"))

def _match_keyword(src: str, i: int) -> Optional[Tuple[str, TokenKind]]:
    for word, kind in _KEYWORDS:
        if src.startswith(word, i) and _at_boundary(src, i + len(word)):
            return word, kind
    return None

def tokenize(src: str) -> Iterator[Tuple[TokenKind, str]]:
    """Classify `src` left to right into (kind, text) pieces covering it exactly."""
    n = len(src); i = 0
    # last non-whitespace character already consumed; None = chunk start
    last: Optional[str] = None
    while i < n:
        ch = src[i]
        value_pos = last == ":"

        if ch == '"':
            end = _scan_string(src, i)
            yield (TokenKind.STRING if value_pos else TokenKind.KEY), src[i:end]
            last = src[end - 1]; i = end
            continue

        if value_pos:
            if ch == "-" or ch in _DIGITS:
                end = _scan_number(src, i)
                yield TokenKind.NUMBER, src[i:end]
                last = src[end - 1]; i = end
                continue
            kw = _match_keyword(src, i)
            if kw:
                word, kind = kw
                yield kind, word
                last = word[-1]; i += len(word)
                continue

        if ch in _BRACKETS:
            yield TokenKind.PUNCTUATION, ch
        elif ch == ",":
            yield TokenKind.COMMA, ch
        else:
            yield TokenKind.OTHER, ch
        if ch not in _WS:
            last = ch
        i += 1

def render_tokens(tokens: Iterable[Tuple[TokenKind, str]]) -> str:
    out = []
    for kind, text in tokens:
        cls = CSS_CLASSES.get(kind)
        if cls:
            out.append(f'<span class="{cls}">{escape_markup(text)}</span>')
        else:
            out.append(escape_markup(text))
    return "".join(out)

def highlight_chunk(chunk: str) -> str:
    """Escaped, class-tagged markup for one chunk of pretty-printed JSON."""
    return render_tokens(tokenize(chunk))

# ------------------------------ HTML page ------------------------------
STYLESHEET = """\
body { background: #0f0b1a; color: #e5e7eb; margin: 0; }
pre.jv { font: 13px/1.45 Consolas, Menlo, monospace; padding: 16px; margin: 0; }
.jv-punc    { color: #e5e7eb; }
.jv-string  { color: #f0abfc; }
.jv-number  { color: #bae6fd; }
.jv-boolean { color: #c4b5fd; }
.jv-null    { color: #c4b5fd; font-style: italic; }
"""

def render_document(chunks: Iterable[str], title: str = "prettystream") -> str:
    """Wrap already-highlighted chunk markup (in index order) into a standalone page."""
    body = "".join(chunks)
    return (
        "<!DOCTYPE html>\n<html>\n<head>\n<meta charset=\"utf-8\">\n"
        f"<title>{escape_markup(title)}</title>\n<style>\n{STYLESHEET}</style>\n"
        f"</head>\n<body>\n<pre class=\"jv\">{body}</pre>\n</body>\n</html>\n"
    )
