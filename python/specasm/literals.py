"""Operand literal grammar shared by instructions, directives and fixups."""

from __future__ import annotations

import re
from typing import List

DECIMAL_RE = re.compile(r"-?[0-9]+")
HEX_RE = re.compile(r"\$([0-9a-fA-F]+)")


def parse_const(token) -> int:
    """Parse a decimal or ``$``-prefixed hexadecimal literal.

    Raises ValueError when ``token`` is not a literal, which callers use to
    treat the text as a symbol reference instead.
    """
    if isinstance(token, int) and not isinstance(token, bool):
        return token
    text = str(token).strip()
    if not text:
        raise ValueError("empty literal")
    m = HEX_RE.fullmatch(text)
    if m:
        return int(m.group(1), 16)
    if DECIMAL_RE.fullmatch(text):
        return int(text, 10)
    raise ValueError(f"not a literal: {text!r}")


def is_const(token) -> bool:
    try:
        parse_const(token)
    except ValueError:
        return False
    return True


def hex_digits(width: int) -> int:
    return max(1, (int(width) + 3) // 4)


def format_hex(value: int, digits: int = 2) -> str:
    return f"{int(value):0{digits}X}"


def string_to_words(text: str) -> List[int]:
    return [ord(ch) for ch in text]
