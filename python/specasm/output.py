"""Output word buffer and per-line listing records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from .literals import format_hex, hex_digits


class OutputBuffer:
    """Words indexed by ``address - origin``, each masked to ``width`` bits."""

    def __init__(self, width: int = 8, origin: int = 0) -> None:
        self.width = width
        self.origin = origin
        self._words: List[int] = []

    @property
    def mask(self) -> int:
        return (1 << self.width) - 1

    def _index(self, address: int) -> int:
        index = address - self.origin
        if index < 0:
            raise IndexError(f"Address {address} is below origin {self.origin}")
        return index

    def put(self, address: int, value: int) -> None:
        index = self._index(address)
        if index >= len(self._words):
            self._words.extend([0] * (index + 1 - len(self._words)))
        self._words[index] = value & self.mask

    def get(self, address: int) -> int:
        index = self._index(address)
        if index >= len(self._words):
            return 0
        return self._words[index]

    def xor(self, address: int, value: int) -> None:
        self.put(address, self.get(address) ^ value)

    def pad_to(self, length: int) -> None:
        if len(self._words) < length:
            self._words.extend([0] * (length - len(self._words)))

    def words(self) -> List[int]:
        return list(self._words)

    def __len__(self) -> int:
        return len(self._words)

    def __iter__(self) -> Iterator[int]:
        return iter(self._words)

    def __getitem__(self, index: int) -> int:
        return self._words[index]


@dataclass
class LineRecord:
    line: int
    offset: int
    nbits: int
    insns: str = ""

    def word_count(self, width: int) -> int:
        return -(-self.nbits // width)

    def to_dict(self) -> Dict[str, object]:
        return {"line": self.line, "offset": self.offset, "nbits": self.nbits, "insns": self.insns}


def render_words(buffer: OutputBuffer, offset: int, count: int) -> str:
    digits = hex_digits(buffer.width)
    return " ".join(format_hex(buffer.get(offset + j), digits) for j in range(count))


def render_line_records(
    records: Iterable[LineRecord],
    buffer: OutputBuffer,
    warn: Optional[Callable[[str, Optional[int]], None]] = None,
) -> None:
    """Fill in each record's ``insns``; records below the origin are left empty."""
    for record in records:
        if record.offset < buffer.origin:
            if warn is not None:
                warn(f"Address {record.offset} is below origin {buffer.origin}", record.line)
            continue
        record.insns = render_words(buffer, record.offset, record.word_count(buffer.width))


def pack_words(words: Iterable[int], width: int) -> bytes:
    """Serialise words big-endian, ``ceil(width / 8)`` bytes each."""
    nbytes = max(1, -(-width // 8))
    return b"".join((int(w) & ((1 << width) - 1)).to_bytes(nbytes, "big") for w in words)
