import pytest

from specasm import ArchSpec, SpecError
from specasm.archspec import EnumVar, NumericVar, RuleDef
from specasm.rules import NUMERIC_GROUP, compile_rule, compile_rules


def _vars():
    return {
        "reg": EnumVar(name="reg", bits=2, tokens=("a", "b", "c", "d")),
        "imm": NumericVar(name="imm", bits=4),
    }


def test_pattern_for_enum_and_numeric_operands():
    rule = compile_rule(RuleDef(fmt="ld ~reg,~imm", bits=("0001", 0, 1)), _vars())
    assert rule.pattern == r"^ld\s+(\w+)," + NUMERIC_GROUP + "$"
    assert rule.varlist == ("reg", "imm")
    assert rule.prefix == "ld"


def test_pattern_is_case_insensitive_and_anchored():
    rule = compile_rule(RuleDef(fmt="ld ~reg,~imm", bits=("0001", 0, 1)), _vars())
    m = rule.match("LD B,$F")
    assert m is not None
    assert m.groups() == ("B", "$F")
    assert rule.match("ld b,1 extra") is None
    assert rule.match("xld b,1") is None


def test_whitespace_runs_collapse():
    rule = compile_rule(RuleDef(fmt="ld   ~reg,~imm", bits=("0001", 0, 1)), _vars())
    assert rule.match("ld b,1")
    assert rule.match("ld \t  b,1")
    assert rule.match("ldb,1") is None


def test_regex_metacharacters_are_literal():
    rule = compile_rule(RuleDef(fmt="ld [~reg+~imm].w*", bits=("0001", 0, 1)), _vars())
    assert rule.match("ld [a+5].w*")
    assert rule.match("ld a+5.w") is None
    assert rule.match("ld [a+5]xw*") is None


def test_numeric_operand_accepts_identifier():
    rule = compile_rule(RuleDef(fmt="jmp ~imm", bits=("0000", 0)), _vars())
    assert rule.match("jmp loop_1").group(1) == "loop_1"
    assert rule.match("jmp $1f").group(1) == "$1f"
    assert rule.match("jmp 12").group(1) == "12"


def test_undefined_variable_fails():
    with pytest.raises(SpecError, match='Could not find variable definition for "~nope"'):
        compile_rule(RuleDef(fmt="jmp ~nope", bits=(0,)), _vars())


@pytest.mark.parametrize(
    "rule, message",
    [
        (RuleDef(fmt="", bits=("0",)), '"fmt" string'),
        (RuleDef(fmt="nop", bits=None), '"bits" array'),
        (RuleDef(fmt="nop", bits=("0102",)), "invalid bit string"),
        (RuleDef(fmt="nop", bits=(0,)), "only has 0"),
        (RuleDef(fmt="jmp ~imm", bits=(True,)), "invalid bits entry"),
        (RuleDef(fmt="jmp ~imm", bits=(1.5,)), "invalid bits entry"),
    ],
)
def test_malformed_rules_fail(rule, message):
    with pytest.raises(SpecError, match=message):
        compile_rule(rule, _vars())


def _sample_line(rule, spec, value_style):
    text = rule.fmt
    for name in rule.varlist:
        var = spec.vars[name]
        if isinstance(var, EnumVar):
            replacement = var.tokens[-1]
        elif value_style == "hex":
            replacement = "$" + format((1 << var.bits) - 1, "x")
        else:
            replacement = str((1 << var.bits) - 1)
        text = text.replace("~" + name, replacement, 1)
    return text


@pytest.mark.parametrize("value_style", ["dec", "hex"])
def test_every_rule_matches_its_own_format(tiny_arch, value_style):
    spec = ArchSpec.from_mapping(tiny_arch)
    for rule in compile_rules(spec):
        line = _sample_line(rule, spec, value_style)
        assert rule.match(line), (rule.fmt, line)
        assert rule.match(line.upper()), (rule.fmt, line)
