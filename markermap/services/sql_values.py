"""
Marker Map Moderation Platform
Tokenizer and literal coercion for the VALUES list of export INSERT lines.

    split_sql_values("51.5, 'Cafe, Bar', 'It\\'s', NULL")
    → ["51.5", "'Cafe, Bar'", "'It\\'s'", "NULL"]

    [coerce_sql_value(t) for t in tokens]
    → [51.5, "Cafe, Bar", "It's", None]

Tokens keep their surrounding quotes; coercion strips them. Inside quotes
a backslash escapes the next character, so neither an escaped quote nor
a comma ends the token.
"""

import re

OUTSIDE = "outside"
IN_SINGLE = "in_single"
IN_DOUBLE = "in_double"

_QUOTE_STATES = {"'": IN_SINGLE, '"': IN_DOUBLE}
_STATE_QUOTES = {IN_SINGLE: "'", IN_DOUBLE: '"'}

_NUMERIC_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")

_UNESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "0": "\0",
}

# Escaping applied by quote_sql_value; the inverse of _UNESCAPES plus the
# characters that stand for themselves after a backslash.
_ESCAPES = {
    "\\": "\\\\",
    "'": "\\'",
    '"': '\\"',
    "\0": "\\0",
    "\n": "\\n",
    "\r": "\\r",
}


def split_sql_values(text: str) -> list[str]:
    """Split a VALUES list on commas that sit outside quotes."""
    tokens: list[str] = []
    buf: list[str] = []
    state = OUTSIDE
    i = 0
    while i < len(text):
        ch = text[i]
        if state == OUTSIDE:
            if ch == ",":
                tokens.append("".join(buf).strip())
                buf = []
            else:
                if ch in _QUOTE_STATES:
                    state = _QUOTE_STATES[ch]
                buf.append(ch)
        else:
            buf.append(ch)
            if ch == "\\" and i + 1 < len(text):
                buf.append(text[i + 1])
                i += 1
            elif ch == _STATE_QUOTES[state]:
                state = OUTSIDE
        i += 1
    tokens.append("".join(buf).strip())
    return tokens


def unescape_sql_string(body: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            out.append(_UNESCAPES.get(nxt, nxt))
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def coerce_sql_value(token: str):
    """Turn one raw token into a Python value.

    quoted → unescaped str, NULL → None, numeric → int or float (float when
    it has a decimal point or exponent), true/false → bool, else the raw text.
    """
    value = token.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in _QUOTE_STATES:
        return unescape_sql_string(value[1:-1])
    if value == "NULL":
        return None
    if _NUMERIC_RE.match(value):
        if "." in value or "e" in value.lower():
            return float(value)
        return int(value)
    if value in ("true", "false"):
        return value == "true"
    return value


def quote_sql_value(value) -> str:
    """Render a Python value as a SQL literal for export."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if hasattr(value, "isoformat"):
        value = value.isoformat()
    text = "".join(_ESCAPES.get(ch, ch) for ch in str(value))
    return f"'{text}'"
