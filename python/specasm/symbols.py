"""Symbol table and deferred fixup resolution."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, Optional, Tuple, Union

from .literals import parse_const
from .output import OutputBuffer

LOGGER = logging.getLogger("specasm.symbols")

SymbolValue = Union[int, str]
WarnFn = Callable[[str, Optional[int]], None]


class SymbolTable:
    """Flat identifier -> value mapping. Redefinition overwrites."""

    def __init__(self) -> None:
        self._values: Dict[str, SymbolValue] = {}

    def define(self, name: str, value: SymbolValue) -> None:
        if name in self._values and self._values[name] != value:
            LOGGER.debug("symbol %s redefined: %r -> %r", name, self._values[name], value)
        self._values[name] = value

    def get(self, name: str) -> Optional[SymbolValue]:
        return self._values.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def items(self) -> Iterable[Tuple[str, SymbolValue]]:
        return self._values.items()

    def as_dict(self) -> Dict[str, SymbolValue]:
        return dict(self._values)


@dataclass(frozen=True)
class Fixup:
    """A symbolic field waiting for its value.

    ``ofs`` is the absolute address of the owning instruction, ``bitofs`` the
    field's offset from the opcode's most significant bit and ``nbits`` the
    opcode's total length.
    """

    sym: str
    ofs: int
    bitlen: int
    bitofs: int
    line: int
    iprel: bool = False
    ipofs: int = 0
    nbits: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "sym": self.sym,
            "ofs": self.ofs,
            "bitlen": self.bitlen,
            "bitofs": self.bitofs,
            "line": self.line,
            "iprel": self.iprel,
            "ipofs": self.ipofs,
        }


def fixup_value(fix: Fixup, value: int) -> int:
    if fix.iprel:
        value -= fix.ofs + fix.ipofs
    return value


def apply_fixup(buffer: OutputBuffer, fix: Fixup, value: int) -> None:
    """XOR a masked field value into the words of its instruction.

    Fields sharing a word must not overlap, a zero placeholder is assumed.
    """
    width = buffer.width
    nbits = fix.nbits or (fix.bitofs + fix.bitlen)
    nwords = max(1, -(-nbits // width))
    shift = nbits - fix.bitofs - fix.bitlen
    positioned = value << shift
    word_mask = (1 << width) - 1
    for k in range(nwords):
        part = (positioned >> ((nwords - 1 - k) * width)) & word_mask
        if part:
            buffer.xor(fix.ofs + k, part)


def resolve_fixups(fixups: Iterable[Fixup], symbols: SymbolTable, buffer: OutputBuffer, warn: WarnFn) -> int:
    resolved = 0
    for fix in fixups:
        if fix.ofs < buffer.origin:
            warn(f"Address {fix.ofs} is below origin {buffer.origin}", fix.line)
            continue
        sym = symbols.get(fix.sym)
        if sym is None:
            warn(f"Symbol '{fix.sym}' not found", fix.line)
            continue
        try:
            value = parse_const(sym)
        except ValueError:
            warn(f"Symbol {fix.sym} has non-numeric value '{sym}'", fix.line)
            continue
        value = fixup_value(fix, value)
        mask = (1 << fix.bitlen) - 1
        if value > mask or value < -mask:
            warn(f"Symbol {fix.sym} ({value}) does not fit in {fix.bitlen} bits", fix.line)
        value &= mask
        LOGGER.debug("fixup %s @%d+%d/%d = %d", fix.sym, fix.ofs, fix.bitofs, fix.bitlen, value)
        apply_fixup(buffer, fix, value)
        resolved += 1
    return resolved
