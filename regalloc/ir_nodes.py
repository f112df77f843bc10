from __future__ import annotations

from dataclasses import dataclass

from regalloc.lexer import SourceSpan


@dataclass(frozen=True)
class VarRef:
    name: str
    span: SourceSpan


@dataclass(frozen=True)
class IntLit:
    value: int
    span: SourceSpan


@dataclass(frozen=True)
class StringLit:
    lexeme: str
    span: SourceSpan


@dataclass(frozen=True)
class LabelRef:
    name: str
    span: SourceSpan


Operand = VarRef | IntLit | StringLit | LabelRef
CallTarget = VarRef | LabelRef
StaticValue = IntLit | LabelRef


@dataclass(frozen=True)
class MemRef:
    base: VarRef
    byte_offset: int
    span: SourceSpan


@dataclass(frozen=True)
class Assign:
    dest: VarRef
    source: Operand
    span: SourceSpan


@dataclass(frozen=True)
class Call:
    dest: VarRef | None
    addr: CallTarget
    args: list[Operand]
    span: SourceSpan


@dataclass(frozen=True)
class BuiltIn:
    dest: VarRef | None
    op_name: str
    args: list[Operand]
    span: SourceSpan


@dataclass(frozen=True)
class MemWrite:
    dest: MemRef
    source: Operand
    span: SourceSpan


@dataclass(frozen=True)
class MemRead:
    dest: VarRef
    source: MemRef
    span: SourceSpan


@dataclass(frozen=True)
class Branch:
    value: Operand
    positive: bool
    target: LabelRef
    span: SourceSpan


@dataclass(frozen=True)
class Goto:
    target: LabelRef
    span: SourceSpan


@dataclass(frozen=True)
class Return:
    value: Operand | None
    span: SourceSpan


Instruction = Assign | Call | BuiltIn | MemWrite | MemRead | Branch | Goto | Return


@dataclass(frozen=True)
class CodeLabel:
    name: str
    instr_index: int
    span: SourceSpan


@dataclass(frozen=True)
class FunctionIr:
    name: str
    params: list[VarRef]
    body: list[Instruction]
    labels: list[CodeLabel]
    span: SourceSpan

    def labels_by_index(self) -> dict[int, list[str]]:
        labels: dict[int, list[str]] = {}
        for label in self.labels:
            names = labels.setdefault(label.instr_index, [])
            if label.name not in names:
                names.append(label.name)
        return labels

    def label_index(self, name: str) -> int | None:
        for label in self.labels:
            if label.name == name:
                return label.instr_index
        return None


@dataclass(frozen=True)
class DataSegment:
    name: str
    is_mutable: bool
    values: list[StaticValue]
    span: SourceSpan


@dataclass(frozen=True)
class ProgramIr:
    data_segments: list[DataSegment]
    functions: list[FunctionIr]
    span: SourceSpan
