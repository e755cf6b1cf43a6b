"""
specasm - data-driven assembler.

An architecture is described as data (word width, named bit-fields and
instruction patterns); ``Assembler`` compiles it into line matchers and
turns source text into a word image, resolving labels through fixups.
Run ``python -m specasm`` for the command line front-end.
"""

from __future__ import annotations

from .archspec import ArchSpec, EnumVar, NumericVar, RuleDef, VariableDef  # noqa: F401
from .assembler import Assembler, AssemblyResult, Diagnostic, assemble  # noqa: F401
from .errors import LoadError, SpecasmError, SpecError  # noqa: F401
from .loader import DocumentLoader, FileSystemLoader, MemoryLoader  # noqa: F401
from .output import LineRecord, OutputBuffer  # noqa: F401
from .rules import CompiledRule, compile_rule, compile_rules  # noqa: F401
from .symbols import Fixup, SymbolTable, resolve_fixups  # noqa: F401

__all__ = [
    "ArchSpec",
    "EnumVar",
    "NumericVar",
    "RuleDef",
    "VariableDef",
    "Assembler",
    "AssemblyResult",
    "Diagnostic",
    "assemble",
    "LoadError",
    "SpecasmError",
    "SpecError",
    "DocumentLoader",
    "FileSystemLoader",
    "MemoryLoader",
    "LineRecord",
    "OutputBuffer",
    "CompiledRule",
    "compile_rule",
    "compile_rules",
    "Fixup",
    "SymbolTable",
    "resolve_fixups",
]

__version__ = "0.1.0"
