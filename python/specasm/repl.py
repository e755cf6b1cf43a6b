"""Interactive line-at-a-time assembler."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory, InMemoryHistory
from prompt_toolkit.patch_stdout import patch_stdout

from .assembler import Assembler
from .completion import AssemblerCompleter
from .literals import format_hex, hex_digits
from .output import render_words

LOGGER = logging.getLogger("specasm.repl")

HELP_TEXT = """\
Enter assembly lines or directives; each line is assembled immediately.
  :state     show ip, origin, length and diagnostic count
  :symbols   list defined symbols
  :finish    resolve fixups and print the output image
  :reset     discard everything assembled so far
  :help      show this text
  :quit      leave the assembler"""


class AssemblerREPL:
    """prompt_toolkit REPL feeding lines to one Assembler.

    The assembler keeps accepting lines after a fatal diagnostic, so the REPL
    checks ``aborted`` and refuses input until ``:reset``.
    """

    def __init__(self, assembler: Assembler, *, history_path: Optional[Path] = None) -> None:
        self.assembler = assembler
        self.history_path = history_path
        self._loader = assembler.loader
        self._reported = 0

    def run(self) -> int:
        if self.history_path:
            history = FileHistory(str(Path(self.history_path).expanduser()))
        else:
            history = InMemoryHistory()
        completer = AssemblerCompleter(lambda: self.assembler)
        session = PromptSession("asm> ", history=history, completer=completer)
        while True:
            try:
                with patch_stdout():
                    line = session.prompt()
            except (EOFError, KeyboardInterrupt):
                print()
                return 0
            if not self.handle(line):
                return 0

    def handle(self, line: str) -> bool:
        """Process one input line; returns False when the REPL should exit."""
        stripped = line.strip()
        if stripped.startswith(":"):
            return self._command(stripped[1:].strip().lower())
        if self.assembler.aborted:
            print("assembly aborted; use :reset to start over")
            return True
        try:
            record = self.assembler.assemble_line(line)
        except Exception as exc:
            LOGGER.exception("line failed")
            self.assembler.fatal(f"Exception during assembly: {exc}")
            record = None
        if record is not None:
            words = render_words(self.assembler.output, record.offset, record.word_count(self.assembler.width))
            print(f"{format_hex(record.offset, 4)}: {words}")
        self._report_new_diagnostics()
        return True

    def _report_new_diagnostics(self) -> None:
        errors = self.assembler.errors
        for diag in errors[self._reported:]:
            kind = "error" if diag.fatal else "warning"
            print(f"line {diag.line}: {kind}: {diag.msg}")
        self._reported = len(errors)

    def _command(self, name: str) -> bool:
        asm = self.assembler
        if name in ("quit", "q", "exit"):
            return False
        if name == "help":
            print(HELP_TEXT)
        elif name == "state":
            state = "aborted" if asm.aborted else ("ready" if asm.ready else "unconfigured")
            print(
                f"state={state} ip={asm.ip} origin={asm.origin} len={asm.codelen} width={asm.width} "
                f"fixups={len(asm.pending_fixups)} diagnostics={len(asm.errors)}"
            )
        elif name == "symbols":
            if not len(asm.symbols):
                print("  symbols: (none)")
            for sym, value in sorted(asm.symbols.items()):
                print(f"  {sym} = {value}")
        elif name == "finish":
            result = asm.finish()
            self._report_new_diagnostics()
            digits = hex_digits(result.width)
            print(" ".join(format_hex(word, digits) for word in result.output) or "(empty)")
        elif name == "reset":
            self.assembler = Assembler(asm.spec, loader=self._loader)
            self._reported = 0
            print("reset")
        else:
            print(f"Unknown command: :{name}")
        return True
