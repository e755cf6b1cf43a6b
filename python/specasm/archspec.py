"""Architecture specification model.

An architecture is described by a JSON document::

    {
      "width": 8,
      "vars": {
        "reg": {"bits": 2, "toks": ["a", "b", "c", "d"]},
        "imm": {"bits": 8},
        "rel": {"bits": 8, "iprel": true, "ipofs": 2}
      },
      "rules": [
        {"fmt": "ld ~reg,~imm", "bits": ["000001", 0, 1]}
      ]
    }

``from_mapping`` validates that document and turns it into frozen
dataclasses. Variables are either enumerated (``toks`` present) or numeric.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple, Union

from .errors import SpecError

LOGGER = logging.getLogger("specasm.archspec")

DEFAULT_WIDTH = 8


@dataclass(frozen=True)
class EnumVar:
    """Field whose value is the index of a token in ``tokens``."""

    name: str
    bits: int
    tokens: Tuple[str, ...]

    def index(self, token: str) -> int:
        try:
            return self.tokens.index(token)
        except ValueError:
            return -1


@dataclass(frozen=True)
class NumericVar:
    """Field holding a literal or a symbol, optionally relative to the ip."""

    name: str
    bits: int
    iprel: bool = False
    ipofs: int = 0


VariableDef = Union[EnumVar, NumericVar]


@dataclass(frozen=True)
class RuleDef:
    fmt: str
    bits: Tuple[Union[str, int], ...]


@dataclass(frozen=True)
class ArchSpec:
    width: int = DEFAULT_WIDTH
    vars: Mapping[str, VariableDef] = field(default_factory=dict)
    rules: Tuple[RuleDef, ...] = ()
    name: str = ""

    @classmethod
    def from_mapping(cls, data: Any, *, name: str = "") -> "ArchSpec":
        if isinstance(data, ArchSpec):
            return data
        if not isinstance(data, Mapping):
            raise SpecError(f"Architecture spec must be an object, got {type(data).__name__}")
        vars_raw = data.get("vars")
        rules_raw = data.get("rules")
        if not isinstance(vars_raw, Mapping):
            raise SpecError('Architecture spec requires a "vars" object')
        if not isinstance(rules_raw, list):
            raise SpecError('Architecture spec requires a "rules" array')
        width = _coerce_positive("width", data.get("width") or DEFAULT_WIDTH)
        variables: Dict[str, VariableDef] = {}
        for var_name, entry in vars_raw.items():
            variables[str(var_name)] = _parse_variable(str(var_name), entry)
        rules = tuple(_parse_rule(idx, entry) for idx, entry in enumerate(rules_raw))
        LOGGER.debug("parsed architecture %r: width=%d vars=%d rules=%d", name, width, len(variables), len(rules))
        return cls(width=width, vars=variables, rules=rules, name=name)

    @classmethod
    def from_json(cls, text: str, *, name: str = "") -> "ArchSpec":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise SpecError(f"Architecture spec {name or '<text>'} is not valid JSON: {exc}") from exc
        return cls.from_mapping(data, name=name)

    @classmethod
    def from_file(cls, path: Path) -> "ArchSpec":
        path = Path(path)
        return cls.from_json(path.read_text(encoding="utf-8"), name=path.stem)


def _coerce_positive(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise SpecError(f"{name} must be a positive integer, got {value!r}")
    if value < 1:
        raise SpecError(f"{name} must be a positive integer, got {value}")
    return value


def _parse_variable(name: str, entry: Any) -> VariableDef:
    if not isinstance(entry, Mapping):
        raise SpecError(f'Variable "{name}" must be an object')
    bits = _coerce_positive(f'Variable "{name}" bits', entry.get("bits"))
    toks = entry.get("toks")
    if toks is not None:
        if not isinstance(toks, list) or not all(isinstance(tok, str) for tok in toks):
            raise SpecError(f'Variable "{name}" toks must be a list of strings')
        if len(toks) > (1 << bits):
            LOGGER.warning("variable %s has %d tokens but only %d bits", name, len(toks), bits)
        return EnumVar(name=name, bits=bits, tokens=tuple(toks))
    ipofs = entry.get("ipofs") or 0
    if isinstance(ipofs, bool) or not isinstance(ipofs, int):
        raise SpecError(f'Variable "{name}" ipofs must be an integer')
    return NumericVar(name=name, bits=bits, iprel=bool(entry.get("iprel")), ipofs=ipofs)


def _parse_rule(index: int, entry: Any) -> RuleDef:
    if not isinstance(entry, Mapping):
        raise SpecError(f"Rule #{index} must be an object")
    fmt = entry.get("fmt")
    if not fmt or not isinstance(fmt, str):
        raise SpecError('Each rule must have a "fmt" string field')
    bits = entry.get("bits")
    if not isinstance(bits, list):
        raise SpecError('Each rule must have a "bits" array field')
    return RuleDef(fmt=fmt, bits=tuple(bits))
