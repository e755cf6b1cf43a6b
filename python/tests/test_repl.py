from specasm import Assembler
from specasm.completion import REPL_COMMANDS, AssemblerCompleter
from specasm.repl import AssemblerREPL

from prompt_toolkit.document import Document


def test_lines_are_assembled_immediately(tiny_arch, capsys):
    repl = AssemblerREPL(Assembler(tiny_arch))
    assert repl.handle("mov a,$42") is True
    assert repl.handle("ld a,1") is True
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "0000: 10 42"
    assert out[1] == "0002: 00 41"
    assert out[2] == "line 2: warning: Opcode was not word-aligned (10 bits)"


def test_aborted_assembler_refuses_lines_until_reset(tiny_arch, capsys):
    repl = AssemblerREPL(Assembler(tiny_arch))
    repl.handle(".align 0")
    assert repl.assembler.aborted is True
    repl.handle("nop")
    assert repl.assembler.output.words() == []
    out = capsys.readouterr().out
    assert "error: Invalid alignment value" in out
    assert "assembly aborted; use :reset to start over" in out
    repl.handle(":reset")
    assert repl.assembler.aborted is False
    repl.handle("nop")
    assert repl.assembler.output.words() == [0]


def test_finish_resolves_forward_references(tiny_arch, capsys):
    repl = AssemblerREPL(Assembler(tiny_arch))
    repl.handle("jmp end")
    repl.handle("end: nop")
    capsys.readouterr()
    repl.handle(":finish")
    assert capsys.readouterr().out.strip() == "20 02 00"


def test_state_and_symbols_commands(tiny_arch, capsys):
    repl = AssemblerREPL(Assembler(tiny_arch))
    repl.handle(":symbols")
    repl.handle("start: nop")
    repl.handle(":symbols")
    repl.handle(":state")
    out = capsys.readouterr().out
    assert "symbols: (none)" in out
    assert "start = 0" in out
    assert "state=ready ip=1" in out


def test_unconfigured_state_and_unknown_command(capsys):
    repl = AssemblerREPL(Assembler())
    repl.handle(":state")
    repl.handle(":bogus")
    out = capsys.readouterr().out
    assert "state=unconfigured" in out
    assert "Unknown command: :bogus" in out


def test_quit_command(tiny_arch):
    repl = AssemblerREPL(Assembler(tiny_arch))
    assert repl.handle(":quit") is False


def test_completer_offers_mnemonics_and_directives(tiny_arch):
    asm = Assembler(tiny_arch)
    completer = AssemblerCompleter(lambda: asm)
    assert "mov" in completer.candidates("m")
    assert "ldi" in completer.candidates("ld")
    assert completer.candidates(".al") == [".align"]
    assert completer.candidates(":f") == [":finish"]
    assert set(completer.candidates(":")) == set(REPL_COMMANDS)


def test_completer_offers_symbols_for_operands(tiny_arch):
    asm = Assembler(tiny_arch)
    asm.assemble_line("loop: nop")
    asm.assemble_line("label2: nop")
    completer = AssemblerCompleter(lambda: asm)
    assert completer.candidates("jmp l") == ["label2", "loop"]
    completions = list(completer.get_completions(Document("jmp lo"), None))
    assert [c.text for c in completions] == ["loop"]
    assert completions[0].start_position == -2
