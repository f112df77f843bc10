from pathlib import Path

import pytest

from regalloc.ir_dump import ir_to_debug_data
from regalloc.ir_nodes import (
    Assign,
    BuiltIn,
    Branch,
    Call,
    Goto,
    IntLit,
    LabelRef,
    MemRead,
    MemWrite,
    Return,
    StringLit,
    VarRef,
)
from regalloc.lexer import lex
from regalloc.parser import ParserError, parse


def _parse(source: str):
    return parse(lex(source, source_path="examples/parser.vapor"))


def _parse_body(source: str):
    return _parse(source).functions[0].body


def test_parse_function_header_params_and_labels() -> None:
    program = _parse(
        """
func Fac.ComputeFac(this num)
  if0 num goto :done
  num = Sub(num 1)
done:
end:
  ret num
"""
    )

    fn = program.functions[0]
    assert fn.name == "Fac.ComputeFac"
    assert [param.name for param in fn.params] == ["this", "num"]
    assert len(fn.body) == 3
    assert [(label.name, label.instr_index) for label in fn.labels] == [("done", 2), ("end", 2)]
    assert fn.labels_by_index() == {2: ["done", "end"]}


def test_parse_data_segments() -> None:
    program = _parse(
        """
const vmt_Fac
  :Fac.ComputeFac
  :Fac.Other

var table
  1 2
  -3
"""
    )

    const_segment, var_segment = program.data_segments
    assert const_segment.name == "vmt_Fac"
    assert not const_segment.is_mutable
    assert [value.name for value in const_segment.values] == ["Fac.ComputeFac", "Fac.Other"]
    assert var_segment.is_mutable
    assert [value.value for value in var_segment.values] == [1, 2, -3]


def test_parse_every_instruction_kind() -> None:
    body = _parse_body(
        """
func Main(p)
  a = 5
  b = [p+8]
  [p] = a
  c = call :Helper(a 1)
  call b(p)
  d = Add(a c)
  Error("boom")
  if d goto :out
  goto :out
out:
  ret d
"""
    )

    assert [type(instr) for instr in body] == [
        Assign,
        MemRead,
        MemWrite,
        Call,
        Call,
        BuiltIn,
        BuiltIn,
        Branch,
        Goto,
        Return,
    ]

    assign, mem_read, mem_write, direct_call, indirect_call, add, error, branch, goto, ret = body
    assert isinstance(assign.source, IntLit) and assign.source.value == 5
    assert mem_read.source.base.name == "p" and mem_read.source.byte_offset == 8
    assert mem_write.dest.byte_offset == 0
    assert isinstance(direct_call.addr, LabelRef) and direct_call.dest.name == "c"
    assert isinstance(indirect_call.addr, VarRef) and indirect_call.dest is None
    assert add.op_name == "Add" and add.dest.name == "d"
    assert error.dest is None and isinstance(error.args[0], StringLit)
    assert branch.positive and branch.target.name == "out"
    assert goto.target.name == "out"
    assert isinstance(ret.value, VarRef)


def test_parse_if0_branch_is_negative() -> None:
    branch = _parse_body("func Main(x)\n  if0 x goto :l\nl:\n  ret\n")[0]
    assert isinstance(branch, Branch)
    assert not branch.positive


def test_parse_return_without_value() -> None:
    ret = _parse_body("func Main()\n  ret\n")[0]
    assert isinstance(ret, Return)
    assert ret.value is None


def test_parse_negative_memory_offset() -> None:
    mem_read = _parse_body("func Main(p)\n  x = [p-4]\n  ret x\n")[0]
    assert mem_read.source.byte_offset == -4


def test_parse_label_operand_assignment() -> None:
    assign = _parse_body("func Main()\n  x = :vmt_A\n  ret x\n")[0]
    assert isinstance(assign.source, LabelRef)
    assert assign.source.name == "vmt_A"


def test_parse_reports_location_of_bad_instruction() -> None:
    with pytest.raises(ParserError, match="Expected instruction at examples/parser.vapor:3:3"):
        _parse("func Main()\n  ret\n  = 4\n")


def test_parse_rejects_register_offset_memory_reference() -> None:
    with pytest.raises(ParserError, match="Expected integer offset after '\\+'"):
        _parse("func Main(p)\n  [p+p] = 1\n")


def test_parse_rejects_duplicate_labels() -> None:
    with pytest.raises(ParserError, match="Duplicate label 'l'"):
        _parse("func Main()\nl:\nl:\n  ret\n")


def test_parse_rejects_duplicate_parameters() -> None:
    with pytest.raises(ParserError, match="Duplicate parameter 'a'"):
        _parse("func Main(a a)\n  ret\n")


def test_parse_rejects_duplicate_function_names() -> None:
    with pytest.raises(ParserError, match="Duplicate top-level name 'Main'"):
        _parse("func Main()\n  ret\nfunc Main()\n  ret\n")


def test_parse_rejects_unterminated_argument_list() -> None:
    with pytest.raises(ParserError, match="Unterminated argument list"):
        _parse("func Main()\n  PrintIntS(1\n  ret\n")


def test_parse_rejects_statement_at_top_level() -> None:
    with pytest.raises(ParserError, match="Expected 'func', 'const' or 'var' at top level"):
        _parse("x = 1\n")


def test_ir_debug_data_omits_spans_by_default() -> None:
    program = _parse("func Main()\n  x = 1\n  ret x\n")

    data = ir_to_debug_data(program)

    fn_data = data["functions"][0]
    assert fn_data["node"] == "FunctionIr"
    assert "span" not in fn_data
    assert fn_data["body"][0] == {
        "node": "Assign",
        "dest": {"node": "VarRef", "name": "x"},
        "source": {"node": "IntLit", "value": 1},
    }


def test_parse_golden_factorial_program() -> None:
    source_path = Path(__file__).resolve().parents[1] / "golden" / "programs" / "test_factorial.vapor"
    program = parse(lex(source_path.read_text(encoding="utf-8"), source_path=str(source_path)))

    assert [fn.name for fn in program.functions] == ["Main", "Fac.ComputeFac"]
    assert [segment.name for segment in program.data_segments] == ["vmt_Fac"]
