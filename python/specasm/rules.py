"""Compile architecture rules into line matchers."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Mapping, Pattern, Tuple

from .archspec import ArchSpec, EnumVar, NumericVar, RuleDef, VariableDef
from .errors import SpecError

LOGGER = logging.getLogger("specasm.rules")

VAR_SIGIL_RE = re.compile(r"~(\w+)")
WHITESPACE_RE = re.compile(r"\s+")
BIT_STRING_RE = re.compile(r"[01]+")

ENUM_GROUP = r"(\w+)"
NUMERIC_GROUP = r"([0-9]+|[$][0-9a-f]+|\w+)"


@dataclass(frozen=True)
class CompiledRule:
    rule: RuleDef
    regex: Pattern[str]
    pattern: str
    varlist: Tuple[str, ...]
    prefix: str

    @property
    def fmt(self) -> str:
        return self.rule.fmt

    @property
    def bits(self):
        return self.rule.bits

    def match(self, line: str):
        return self.regex.match(line)


def _escape_literal(text: str) -> str:
    pieces = WHITESPACE_RE.split(text)
    return r"\s+".join(re.escape(piece) for piece in pieces)


def _group_for(var: VariableDef) -> str:
    if isinstance(var, EnumVar):
        return ENUM_GROUP
    if isinstance(var, NumericVar):
        return NUMERIC_GROUP
    raise SpecError(f"Unsupported variable definition {var!r}")


def compile_rule(rule: RuleDef, variables: Mapping[str, VariableDef]) -> CompiledRule:
    fmt = rule.fmt
    if not fmt or not isinstance(fmt, str):
        raise SpecError('Each rule must have a "fmt" string field')
    if not isinstance(rule.bits, (list, tuple)):
        raise SpecError('Each rule must have a "bits" array field')

    varlist: List[str] = []
    parts: List[str] = []
    pos = 0
    for m in VAR_SIGIL_RE.finditer(fmt):
        parts.append(_escape_literal(fmt[pos:m.start()]))
        varname = m.group(1)
        var = variables.get(varname)
        if var is None:
            raise SpecError(f'Could not find variable definition for "~{varname}"')
        varlist.append(varname)
        parts.append(_group_for(var))
        pos = m.end()
    parts.append(_escape_literal(fmt[pos:]))
    pattern = "^" + "".join(parts) + "$"

    for entry in rule.bits:
        if isinstance(entry, str):
            if not BIT_STRING_RE.fullmatch(entry):
                raise SpecError(f'Rule "{fmt}" has invalid bit string "{entry}"')
        elif isinstance(entry, int) and not isinstance(entry, bool):
            if not 0 <= entry < len(varlist):
                raise SpecError(f'Rule "{fmt}" references variable #{entry} but only has {len(varlist)}')
        else:
            raise SpecError(f'Rule "{fmt}" has invalid bits entry {entry!r}')

    try:
        regex = re.compile(pattern, re.IGNORECASE)
    except re.error as exc:
        raise SpecError(f'Bad regex for rule "{fmt}": /{pattern}/ -- {exc}') from exc

    prefix = fmt.split()[0] if fmt.split() else ""
    LOGGER.debug("compiled rule %r -> /%s/ vars=%s", fmt, pattern, varlist)
    return CompiledRule(rule=rule, regex=regex, pattern=pattern, varlist=tuple(varlist), prefix=prefix.lower())


def compile_rules(spec: ArchSpec) -> List[CompiledRule]:
    return [compile_rule(rule, spec.vars) for rule in spec.rules]
