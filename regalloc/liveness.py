from __future__ import annotations

from dataclasses import dataclass

from regalloc.ir_nodes import (
    Assign,
    BuiltIn,
    Branch,
    Call,
    FunctionIr,
    Goto,
    Instruction,
    MemRead,
    MemWrite,
    Operand,
    Return,
    VarRef,
)
from regalloc.lexer import SourceSpan


class LivenessError(ValueError):
    def __init__(self, message: str, span: SourceSpan):
        super().__init__(f"{message} at {span.start.path}:{span.start.line}:{span.start.column}")
        self.message = message
        self.span = span


def _operand_vars(operands: list[Operand | None]) -> frozenset[str]:
    return frozenset(op.name for op in operands if isinstance(op, VarRef))


def instruction_uses(instr: Instruction) -> frozenset[str]:
    if isinstance(instr, Assign):
        return _operand_vars([instr.source])
    if isinstance(instr, Call):
        return _operand_vars([instr.addr, *instr.args])
    if isinstance(instr, BuiltIn):
        return _operand_vars(list(instr.args))
    if isinstance(instr, MemWrite):
        return _operand_vars([instr.dest.base, instr.source])
    if isinstance(instr, MemRead):
        return _operand_vars([instr.source.base])
    if isinstance(instr, Branch):
        return _operand_vars([instr.value])
    if isinstance(instr, Goto):
        return frozenset()
    if isinstance(instr, Return):
        return _operand_vars([instr.value])
    raise NotImplementedError(f"liveness not implemented for {type(instr).__name__}")


def instruction_defs(instr: Instruction) -> frozenset[str]:
    if isinstance(instr, (Assign, MemRead)):
        return frozenset({instr.dest.name})
    if isinstance(instr, (Call, BuiltIn)):
        return frozenset() if instr.dest is None else frozenset({instr.dest.name})
    if isinstance(instr, (MemWrite, Branch, Goto, Return)):
        return frozenset()
    raise NotImplementedError(f"liveness not implemented for {type(instr).__name__}")


def _resolve_label(fn: FunctionIr, name: str, span: SourceSpan) -> int:
    index = fn.label_index(name)
    if index is None:
        raise LivenessError(f"Unknown label ':{name}' in function '{fn.name}'", span)
    return index


def instruction_successors(fn: FunctionIr, index: int) -> list[int]:
    instr = fn.body[index]
    fallthrough = [index + 1] if index + 1 < len(fn.body) else []

    if isinstance(instr, Return):
        return []
    if isinstance(instr, Goto):
        target = _resolve_label(fn, instr.target.name, instr.target.span)
        return [target] if target < len(fn.body) else []
    if isinstance(instr, Branch):
        target = _resolve_label(fn, instr.target.name, instr.target.span)
        successors = list(fallthrough)
        if target < len(fn.body) and target not in successors:
            successors.append(target)
        return successors
    return fallthrough


@dataclass(frozen=True)
class Liveness:
    live_in_sets: list[frozenset[str]]
    live_out_sets: list[frozenset[str]]
    use_sets: list[frozenset[str]]
    def_sets: list[frozenset[str]]
    call_indices: list[int]

    def out(self, index: int) -> frozenset[str]:
        return self.live_out_sets[index]

    def live_in(self, index: int) -> frozenset[str]:
        return self.live_in_sets[index]

    def defs(self, index: int) -> frozenset[str]:
        return self.def_sets[index]

    def uses(self, index: int) -> frozenset[str]:
        return self.use_sets[index]

    def live_across(self, index: int) -> frozenset[str]:
        return self.live_out_sets[index] - self.def_sets[index]

    def entry_live(self) -> frozenset[str]:
        return self.live_in_sets[0] if self.live_in_sets else frozenset()

    def __len__(self) -> int:
        return len(self.live_out_sets)


def analyze_liveness(fn: FunctionIr) -> Liveness:
    count = len(fn.body)
    use_sets = [instruction_uses(instr) for instr in fn.body]
    def_sets = [instruction_defs(instr) for instr in fn.body]
    successors = [instruction_successors(fn, index) for index in range(count)]

    for label in fn.labels:
        if label.instr_index > count:
            raise LivenessError(f"Label '{label.name}' is out of range", label.span)

    live_in: list[frozenset[str]] = [frozenset() for _ in range(count)]
    live_out: list[frozenset[str]] = [frozenset() for _ in range(count)]

    changed = True
    while changed:
        changed = False
        for index in reversed(range(count)):
            new_out: frozenset[str] = frozenset().union(*(live_in[succ] for succ in successors[index]))
            new_in = use_sets[index] | (new_out - def_sets[index])
            if new_in != live_in[index] or new_out != live_out[index]:
                changed = True
                live_in[index] = new_in
                live_out[index] = new_out

    return Liveness(
        live_in_sets=live_in,
        live_out_sets=live_out,
        use_sets=use_sets,
        def_sets=def_sets,
        call_indices=[index for index, instr in enumerate(fn.body) if isinstance(instr, Call)],
    )
