from __future__ import annotations

from regalloc.allocation import StackSlot
from regalloc.frame import FrameSizes
from regalloc.ir_nodes import IntLit, LabelRef, Operand, StringLit, VarRef
from regalloc.registers import Register


def local_slot(offset: int) -> str:
    return f"local[{offset}]"


def in_slot(offset: int) -> str:
    return f"in[{offset}]"


def out_slot(offset: int) -> str:
    return f"out[{offset}]"


def memory_reference(base: Register, byte_offset: int) -> str:
    if byte_offset == 0:
        return f"[{base}]"
    if byte_offset < 0:
        return f"[{base}-{abs(byte_offset)}]"
    return f"[{base}+{byte_offset}]"


def render_location(location: Register | StackSlot) -> str:
    if isinstance(location, StackSlot):
        return local_slot(location.offset)
    return location.name


def render_operand(operand: Operand) -> str:
    if isinstance(operand, IntLit):
        return str(operand.value)
    if isinstance(operand, LabelRef):
        return f":{operand.name}"
    if isinstance(operand, StringLit):
        return operand.lexeme
    if isinstance(operand, VarRef):
        raise ValueError(f"variable '{operand.name}' must be rendered through its location")
    raise NotImplementedError(f"operand rendering not implemented for {type(operand).__name__}")


def render_value(value: Register | Operand) -> str:
    if isinstance(value, Register):
        return value.name
    return render_operand(value)


def render_builtin(op_name: str, operands: list[Register | Operand]) -> str:
    return f"{op_name}(" + " ".join(render_value(operand) for operand in operands) + ")"


def render_assignment(lhs: str, rhs: str) -> str:
    return f"{lhs} = {rhs}"


def render_signature(fn_name: str, frame: FrameSizes) -> str:
    return f"func {fn_name} [in {frame.in_}, out {frame.out}, local {frame.local}]"


def render_label(name: str) -> str:
    return f"{name}:"


def render_branch(positive: bool, test: Register | Operand, target: LabelRef) -> str:
    keyword = "if" if positive else "if0"
    return f"{keyword} {render_value(test)} goto {render_operand(target)}"
