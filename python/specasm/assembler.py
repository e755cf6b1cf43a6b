"""Line assembler driven by an architecture specification.

Each source line is matched against the compiled rules of the loaded
architecture and packed into one opcode, most significant field first.
Operands naming a symbol become fixups that ``finish`` resolves once every
label is known.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .archspec import DEFAULT_WIDTH, ArchSpec, EnumVar, NumericVar
from .errors import LoadError, SpecError
from .literals import parse_const, string_to_words
from .loader import DocumentLoader
from .output import LineRecord, OutputBuffer, render_line_records
from .rules import CompiledRule, compile_rules
from .symbols import Fixup, SymbolTable, resolve_fixups

LOGGER = logging.getLogger("specasm.assembler")

COMMENT_RE = re.compile(r";.*")
LABEL_RE = re.compile(r"^(\w+):")
TOKEN_SPLIT_RE = re.compile(r"\s+")

DIRECTIVES = (
    ".define",
    ".org",
    ".len",
    ".width",
    ".arch",
    ".include",
    ".module",
    ".data",
    ".string",
    ".align",
)


@dataclass
class Diagnostic:
    msg: str
    line: int
    fatal: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"msg": self.msg, "line": self.line}


@dataclass
class BuildResult:
    opcode: int
    nbits: int
    fixups: List[Fixup] = field(default_factory=list)


class BuildError(Exception):
    """A matching rule rejected its operands; the next candidate is tried."""


@dataclass
class AssemblyResult:
    ip: int
    line: int
    origin: int
    codelen: int
    output: List[int]
    lines: List[LineRecord]
    errors: List[Diagnostic]
    fixups: List[Fixup]
    width: int = DEFAULT_WIDTH
    aborted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ip": self.ip,
            "line": self.line,
            "origin": self.origin,
            "codelen": self.codelen,
            "output": list(self.output),
            "lines": [rec.to_dict() for rec in self.lines],
            "errors": [err.to_dict() for err in self.errors],
            "fixups": [fix.to_dict() for fix in self.fixups],
        }


class Assembler:
    def __init__(
        self,
        spec: Union[ArchSpec, Mapping[str, Any], None] = None,
        *,
        loader: Optional[DocumentLoader] = None,
    ) -> None:
        self.loader = loader
        self.ip = 0
        self.origin = 0
        self.linenum = 0
        self.codelen = 0
        self.width = DEFAULT_WIDTH
        self.aborted = False
        self.spec: Optional[ArchSpec] = None
        self.rules: List[CompiledRule] = []
        self.symbols = SymbolTable()
        self._buffer = OutputBuffer(self.width, self.origin)
        self._errors: List[Diagnostic] = []
        self._asmlines: List[LineRecord] = []
        self._fixups: List[Fixup] = []
        if spec is not None:
            self.load_spec(spec)

    # ------------------------------------------------------------------
    # configuration

    def load_spec(self, spec: Union[ArchSpec, Mapping[str, Any]], *, name: str = "") -> None:
        """Activate an architecture; raises SpecError for malformed rules."""
        arch = ArchSpec.from_mapping(spec, name=name)
        rules = compile_rules(arch)
        self.spec = arch
        self.rules = rules
        self.width = arch.width
        self._buffer.width = arch.width
        LOGGER.debug("architecture %r active: %d rules, width %d", arch.name, len(rules), arch.width)

    @property
    def ready(self) -> bool:
        return self.spec is not None

    @property
    def errors(self) -> List[Diagnostic]:
        return list(self._errors)

    @property
    def pending_fixups(self) -> List[Fixup]:
        return list(self._fixups)

    @property
    def line_records(self) -> List[LineRecord]:
        return list(self._asmlines)

    @property
    def output(self) -> OutputBuffer:
        return self._buffer

    # ------------------------------------------------------------------
    # diagnostics

    def warning(self, msg: str, line: Optional[int] = None) -> None:
        self._errors.append(Diagnostic(msg, line if line else self.linenum))

    def fatal(self, msg: str, line: Optional[int] = None) -> None:
        self._errors.append(Diagnostic(msg, line if line else self.linenum, fatal=True))
        self.aborted = True

    # ------------------------------------------------------------------
    # emission

    def _emit(self, opcode: int, nbits: int) -> LineRecord:
        record = LineRecord(line=self.linenum, offset=self.ip, nbits=nbits)
        self._asmlines.append(record)
        nwords = record.word_count(self.width)
        mask = (1 << self.width) - 1
        for i in range(nwords):
            self._buffer.put(self.ip, (opcode >> ((nwords - 1 - i) * self.width)) & mask)
            self.ip += 1
        return record

    def add_words(self, data: Sequence[int]) -> LineRecord:
        record = LineRecord(line=self.linenum, offset=self.ip, nbits=self.width * len(data))
        self._asmlines.append(record)
        for value in data:
            self._buffer.put(self.ip, value)
            self.ip += 1
        return record

    def align_ip(self, align: int) -> None:
        if align < 1 or align > self.codelen:
            self.fatal("Invalid alignment value")
        else:
            self.ip = -(-self.ip // align) * align

    # ------------------------------------------------------------------
    # instructions

    def build_instruction(self, rule: CompiledRule, operands: Sequence[str]) -> BuildResult:
        """Pack the rule's bit layout; raises BuildError if an operand is rejected."""
        if self.spec is None:
            raise BuildError("Need to load .arch first")
        opcode = 0
        oplen = 0
        fixups: List[Fixup] = []
        for entry in rule.bits:
            if isinstance(entry, str):
                n = len(entry)
                x = int(entry, 2)
            else:
                token = operands[entry]
                var = self.spec.vars.get(rule.varlist[entry])
                if var is None:
                    raise BuildError(f"Could not find matching identifier for '{token}'")
                n = var.bits
                if isinstance(var, EnumVar):
                    x = var.index(token)
                    if x < 0:
                        raise BuildError(f"Can't use '{token}' here, only one of: {', '.join(var.tokens)}")
                elif isinstance(var, NumericVar):
                    try:
                        x = parse_const(token)
                    except ValueError:
                        fixups.append(
                            Fixup(
                                sym=token,
                                ofs=self.ip,
                                bitlen=n,
                                bitofs=oplen,
                                line=self.linenum,
                                iprel=var.iprel,
                                ipofs=var.ipofs,
                            )
                        )
                        x = 0
                else:
                    raise BuildError(f"Unsupported variable '{rule.varlist[entry]}'")
            mask = (1 << n) - 1
            if (x & mask) != x:
                raise BuildError(f"Value {x} does not fit in {n} bits")
            opcode = (opcode << n) | x
            oplen += n
        return BuildResult(opcode=opcode, nbits=oplen, fixups=[replace(fix, nbits=oplen) for fix in fixups])

    def _check_length(self, nbits: int) -> None:
        if nbits == 0:
            self.warning("Opcode had zero length")
        elif nbits > 32:
            self.warning("Opcodes > 32 bits not supported")
        elif nbits % self.width != 0:
            self.warning(f"Opcode was not word-aligned ({nbits} bits)")

    # ------------------------------------------------------------------
    # directives

    def _load_arch(self, name: str) -> Optional[str]:
        if self.loader is None:
            return f"Could not load arch '{name}': no loader configured"
        try:
            self.load_spec(self.loader.load_arch(name), name=name)
        except (LoadError, SpecError) as exc:
            return str(exc)
        return None

    def _load_source(self, kind: str, name: str) -> Optional[str]:
        if self.loader is None:
            return f"Could not load {kind} '{name}': no loader configured"
        try:
            if kind == "module":
                text = self.loader.load_module(name)
            else:
                text = self.loader.load_include(name)
        except LoadError as exc:
            return str(exc)
        LOGGER.debug("assembling %s %r", kind, name)
        self.assemble_lines(text.splitlines())
        return None

    def _const_arg(self, cmd: str, token: str) -> Optional[int]:
        try:
            return parse_const(token)
        except ValueError:
            self.fatal(f"Invalid value for {cmd}: '{token}'")
            return None

    def _data_words(self, tokens: Sequence[str]) -> List[int]:
        data: List[int] = []
        for token in tokens:
            try:
                data.append(parse_const(token))
            except ValueError:
                self._fixups.append(
                    Fixup(
                        sym=token.lower(),
                        ofs=self.ip + len(data),
                        bitlen=self.width,
                        bitofs=0,
                        line=self.linenum,
                        nbits=self.width,
                    )
                )
                data.append(0)
        return data

    def parse_directive(self, line: str) -> None:
        tokens = TOKEN_SPLIT_RE.split(line)
        cmd = tokens[0].lower()
        args = tokens[1:]
        LOGGER.debug("line %d: directive %s %s", self.linenum, cmd, args)
        if cmd not in DIRECTIVES:
            self.warning(f"Unrecognized directive: {tokens[0]}")
            return
        if cmd == ".string":
            text = line[len(tokens[0]):].strip()
            if len(text) >= 2 and text[0] == text[-1] == '"':
                text = text[1:-1]
            self.add_words(string_to_words(text))
            return
        if cmd == ".data":
            self.add_words(self._data_words(args))
            return
        if cmd == ".define":
            if len(args) < 2:
                self.warning("Directive .define expects NAME VALUE")
                return
            self.symbols.define(args[0].lower(), args[1])
            return
        if not args:
            self.warning(f"Directive {cmd} expects an argument")
            return
        if cmd == ".arch":
            error = self._load_arch(args[0])
            if error:
                self.fatal(error)
        elif cmd in (".include", ".module"):
            error = self._load_source(cmd[1:], args[0])
            if error:
                self.fatal(error)
        else:
            value = self._const_arg(cmd, args[0])
            if value is None:
                return
            if cmd == ".org":
                self.ip = self.origin = value
                self._buffer.origin = value
            elif cmd == ".len":
                self.codelen = value
            elif cmd == ".width":
                if value < 1:
                    self.fatal(f"Invalid word width {value}")
                    return
                self.width = value
                self._buffer.width = value
            elif cmd == ".align":
                self.align_ip(value)

    # ------------------------------------------------------------------
    # line and batch drivers

    def assemble_line(self, line: str) -> Optional[LineRecord]:
        """Assemble one source line.

        Returns the record of an emitted instruction. Does not refuse input
        once ``aborted`` is set; callers feeding lines one by one check it.
        """
        self.linenum += 1
        line = COMMENT_RE.sub("", line).strip()
        if line.startswith("."):
            self.parse_directive(line)
            return None
        m = LABEL_RE.match(line)
        if m:
            self.symbols.define(m.group(1).lower(), self.ip)
            line = line[m.end():].strip()
            if line.startswith("."):
                self.parse_directive(line)
                return None
        line = line.lower()
        if not line:
            return None
        if self.spec is None:
            self.fatal("Need to load .arch first")
            return None
        last_error: Optional[str] = None
        for rule in self.rules:
            match = rule.match(line)
            if not match:
                continue
            try:
                result = self.build_instruction(rule, match.groups())
            except BuildError as exc:
                last_error = str(exc)
                continue
            self._check_length(result.nbits)
            self._fixups.extend(result.fixups)
            return self._emit(result.opcode, result.nbits)
        self.warning(last_error or f"Could not decode instruction: {line}")
        return None

    def assemble_lines(self, lines: Iterable[str]) -> None:
        for line in lines:
            if self.aborted:
                break
            try:
                self.assemble_line(line)
            except Exception as exc:
                LOGGER.exception("line %d failed", self.linenum)
                self.fatal(f"Exception during assembly: {exc}")

    def assemble(self, text: str) -> AssemblyResult:
        self.assemble_lines(text.splitlines())
        return self.finish()

    def finish(self) -> AssemblyResult:
        resolve_fixups(self._fixups, self.symbols, self._buffer, self.warning)
        render_line_records(self._asmlines, self._buffer, self.warning)
        self._buffer.pad_to(self.codelen)
        self._fixups = []
        return self.state()

    def state(self) -> AssemblyResult:
        return AssemblyResult(
            ip=self.ip,
            line=self.linenum,
            origin=self.origin,
            codelen=self.codelen,
            output=self._buffer.words(),
            lines=list(self._asmlines),
            errors=list(self._errors),
            fixups=list(self._fixups),
            width=self.width,
            aborted=self.aborted,
        )


def assemble(
    text: str,
    spec: Union[ArchSpec, Mapping[str, Any], None] = None,
    *,
    loader: Optional[DocumentLoader] = None,
) -> AssemblyResult:
    return Assembler(spec, loader=loader).assemble(text)
