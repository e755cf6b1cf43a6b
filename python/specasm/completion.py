"""prompt_toolkit completer for the interactive assembler."""

from __future__ import annotations

from typing import Iterable, List

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from .assembler import DIRECTIVES, Assembler

REPL_COMMANDS = (":state", ":symbols", ":finish", ":reset", ":help", ":quit")


class AssemblerCompleter(Completer):
    """Completes directives, REPL commands, mnemonics and known symbols."""

    def __init__(self, assembler_ref) -> None:
        # Callable returning the live assembler; :reset swaps the instance.
        self._assembler_ref = assembler_ref

    @property
    def assembler(self) -> Assembler:
        return self._assembler_ref()

    def mnemonics(self) -> List[str]:
        return sorted({rule.prefix for rule in self.assembler.rules if rule.prefix and not rule.prefix.startswith("~")})

    def candidates(self, text: str) -> List[str]:
        stripped = text.lstrip()
        words = stripped.split()
        at_start = not words or (len(words) == 1 and not stripped.endswith(" "))
        prefix = "" if stripped.endswith(" ") or not words else words[-1]
        if at_start:
            if prefix.startswith(":"):
                pool: Iterable[str] = REPL_COMMANDS
            elif prefix.startswith("."):
                pool = DIRECTIVES
            else:
                pool = self.mnemonics()
        else:
            pool = sorted(self.assembler.symbols)
            prefix = prefix.split(",")[-1]
        needle = prefix.lower()
        return [word for word in pool if word.lower().startswith(needle) and word != prefix]

    def get_completions(self, document: Document, complete_event) -> Iterable[Completion]:
        text = document.text_before_cursor
        words = text.split()
        prefix = "" if not words or text.endswith(" ") else words[-1].split(",")[-1]
        for word in self.candidates(text):
            yield Completion(word, start_position=-len(prefix))
