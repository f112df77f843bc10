import pytest

from regalloc.allocation import StackSlot
from regalloc.frame import FrameSizes
from regalloc.ir_nodes import IntLit, LabelRef, StringLit, VarRef
from regalloc.lexer import SourcePos, SourceSpan
from regalloc.registers import register_named
from regalloc.vaporm_format import (
    memory_reference,
    render_branch,
    render_builtin,
    render_location,
    render_operand,
    render_signature,
)


SPAN = SourceSpan(start=SourcePos("<test>", 0, 1, 1), end=SourcePos("<test>", 0, 1, 1))


def test_memory_reference_offsets() -> None:
    base = register_named("$t0")

    assert memory_reference(base, 0) == "[$t0]"
    assert memory_reference(base, 12) == "[$t0+12]"
    assert memory_reference(base, -4) == "[$t0-4]"


def test_render_location() -> None:
    assert render_location(register_named("$s2")) == "$s2"
    assert render_location(StackSlot(3)) == "local[3]"


def test_render_operands() -> None:
    assert render_operand(IntLit(value=-7, span=SPAN)) == "-7"
    assert render_operand(LabelRef(name="vmt_A", span=SPAN)) == ":vmt_A"
    assert render_operand(StringLit(lexeme='"error"', span=SPAN)) == '"error"'


def test_render_operand_refuses_unresolved_variable() -> None:
    with pytest.raises(ValueError, match="must be rendered through its location"):
        render_operand(VarRef(name="x", span=SPAN))


def test_render_builtin_and_branch() -> None:
    operands = [register_named("$t1"), IntLit(value=4, span=SPAN)]

    assert render_builtin("MulS", operands) == "MulS($t1 4)"
    assert render_builtin("Error", [StringLit(lexeme='"null pointer"', span=SPAN)]) == 'Error("null pointer")'
    assert render_branch(True, register_named("$t0"), LabelRef(name="L1", span=SPAN)) == "if $t0 goto :L1"
    assert render_branch(False, register_named("$t0"), LabelRef(name="L1", span=SPAN)) == "if0 $t0 goto :L1"


def test_render_signature() -> None:
    assert render_signature("Main", FrameSizes(in_=0, out=2, local=5)) == "func Main [in 0, out 2, local 5]"
