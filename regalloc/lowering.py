from __future__ import annotations

from regalloc.allocation import AllocationMap, LinearScanAllocator, Location, StackSlot
from regalloc.frame import FrameSizes, caller_saved_live_across, compute_frame_sizes
from regalloc.ir_nodes import (
    Assign,
    BuiltIn,
    Branch,
    Call,
    DataSegment,
    FunctionIr,
    Goto,
    Instruction,
    LabelRef,
    MemRead,
    MemWrite,
    Operand,
    ProgramIr,
    Return,
    VarRef,
)
from regalloc.lexer import SourceSpan
from regalloc.liveness import Liveness, analyze_liveness
from regalloc.output import Output
from regalloc.register_pool import RegisterPool, RegisterPoolError
from regalloc.registers import ARGUMENT_REGISTER_COUNT, ARGUMENT_REGISTERS, RETURN_REGISTER, Register
from regalloc.vaporm_format import (
    in_slot,
    local_slot,
    memory_reference,
    out_slot,
    render_assignment,
    render_branch,
    render_builtin,
    render_label,
    render_location,
    render_operand,
    render_signature,
    render_value,
)


class LoweringError(ValueError):
    def __init__(self, message: str, span: SourceSpan | None = None):
        if span is not None:
            super().__init__(f"{message} at {span.start.path}:{span.start.line}:{span.start.column}")
        else:
            super().__init__(message)
        self.message = message
        self.span = span


class FunctionLowering:
    """Rewrites one function onto physical registers and stack slots.

    Spilled variables travel through scratch registers from a pool owned by
    this lowering; every scratch register is back in the pool once an
    instruction has been translated.
    """

    def __init__(self, fn: FunctionIr, allocation: AllocationMap, liveness: Liveness, out: Output) -> None:
        self.fn = fn
        self.allocation = allocation
        self.liveness = liveness
        self.out = out
        self.pool = RegisterPool()
        self.callee_saved = allocation.used_callee_registers()

    def lower(self) -> FrameSizes:
        frame = compute_frame_sizes(self.fn, self.allocation, self.liveness)
        labels = self.fn.labels_by_index()

        self.out.write_line(render_signature(self.fn.name, frame))
        self.out.increase_indent()

        self._emit_callee_saves()
        self._emit_param_moves()

        for index, instr in enumerate(self.fn.body):
            self._emit_labels(labels.get(index, []))
            self._lower_instruction(index, instr)
            if not self.pool.is_idle():
                leaked = ", ".join(register.name for register in self.pool.in_use())
                raise RegisterPoolError(
                    f"scratch registers {leaked} still checked out after instruction {index} of '{self.fn.name}'"
                )

        self._emit_labels(labels.get(len(self.fn.body), []))
        self.out.decrease_indent()
        return frame

    def _emit(self, lhs: str, rhs: str) -> None:
        self.out.write_line(render_assignment(lhs, rhs))

    def _emit_labels(self, names: list[str]) -> None:
        if not names:
            return
        self.out.decrease_indent()
        for name in names:
            self.out.write_line(render_label(name))
        self.out.increase_indent()

    def _location(self, var: VarRef) -> Location:
        location = self.allocation.lookup(var.name)
        if location is None:
            raise LoweringError(f"variable '{var.name}' has no allocated location", var.span)
        return location

    def _load(self, var: VarRef) -> Register:
        location = self._location(var)
        if isinstance(location, StackSlot):
            scratch = self.pool.acquire()
            self._emit(scratch.name, local_slot(location.offset))
            return scratch
        return location

    def _load_operand(self, operand: Operand) -> Register | Operand:
        if isinstance(operand, VarRef):
            return self._load(operand)
        return operand

    def _store(self, register: Register, var: VarRef) -> None:
        offset = self.allocation.lookup_stack(var.name)
        if offset is not None:
            self._emit(local_slot(offset), register.name)

    def _release_if_pooled(self, value: Register | Operand) -> None:
        if isinstance(value, Register) and self.pool.contains(value):
            self.pool.release(value)

    def _emit_callee_saves(self) -> None:
        for index, register in enumerate(self.callee_saved):
            self._emit(local_slot(index), register.name)

    def _emit_param_moves(self) -> None:
        entry_live = self.liveness.entry_live()
        for index, param in enumerate(self.fn.params):
            # Dead on entry: its register may already belong to another parameter.
            if param.name not in entry_live:
                continue
            location = self.allocation.lookup(param.name)
            if location is None:
                continue

            if index < ARGUMENT_REGISTER_COUNT:
                self._emit(render_location(location), ARGUMENT_REGISTERS[index].name)
            elif isinstance(location, StackSlot):
                scratch = self.pool.acquire()
                self._emit(scratch.name, in_slot(index - ARGUMENT_REGISTER_COUNT))
                self._emit(local_slot(location.offset), scratch.name)
                self.pool.release(scratch)
            else:
                self._emit(location.name, in_slot(index - ARGUMENT_REGISTER_COUNT))

    def _lower_instruction(self, index: int, instr: Instruction) -> None:
        if isinstance(instr, Assign):
            self._lower_assign(instr)
            return
        if isinstance(instr, Call):
            self._lower_call(index, instr)
            return
        if isinstance(instr, BuiltIn):
            self._lower_builtin(instr)
            return
        if isinstance(instr, MemWrite):
            self._lower_mem_write(instr)
            return
        if isinstance(instr, MemRead):
            self._lower_mem_read(instr)
            return
        if isinstance(instr, Branch):
            self._lower_branch(instr)
            return
        if isinstance(instr, Goto):
            self.out.write_line(f"goto {render_operand(instr.target)}")
            return
        if isinstance(instr, Return):
            self._lower_return(instr)
            return
        raise NotImplementedError(f"lowering not implemented for {type(instr).__name__}")

    def _lower_assign(self, instr: Assign) -> None:
        dst = self._load(instr.dest)

        source = self._load_operand(instr.source)
        self._emit(dst.name, render_value(source))
        self._release_if_pooled(source)

        self._store(dst, instr.dest)
        self._release_if_pooled(dst)

    def _lower_call(self, index: int, instr: Call) -> None:
        saves = caller_saved_live_across(index, self.allocation, self.liveness)
        save_base = self.allocation.stack_size()

        for offset, register in enumerate(saves):
            self._emit(local_slot(save_base + offset), register.name)

        for position, arg in enumerate(instr.args):
            if position < ARGUMENT_REGISTER_COUNT:
                target = ARGUMENT_REGISTERS[position].name
                if isinstance(arg, VarRef):
                    self._emit(target, render_location(self._location(arg)))
                else:
                    self._emit(target, render_operand(arg))
                continue

            slot = out_slot(position - ARGUMENT_REGISTER_COUNT)
            if isinstance(arg, VarRef):
                register = self._load(arg)
                self._emit(slot, register.name)
                self._release_if_pooled(register)
            else:
                self._emit(slot, render_operand(arg))

        if isinstance(instr.addr, LabelRef):
            self.out.write_line(f"call {render_operand(instr.addr)}")
        else:
            addr = self._load(instr.addr)
            self.out.write_line(f"call {addr.name}")
            self._release_if_pooled(addr)

        if instr.dest is not None:
            dst = self._load(instr.dest)
            self._emit(dst.name, RETURN_REGISTER.name)
            self._store(dst, instr.dest)
            self._release_if_pooled(dst)

        for offset, register in enumerate(saves):
            self._emit(register.name, local_slot(save_base + offset))

    def _lower_builtin(self, instr: BuiltIn) -> None:
        operands = [self._load_operand(arg) for arg in instr.args]
        rhs = render_builtin(instr.op_name, operands)

        if instr.dest is None:
            self.out.write_line(rhs)
        else:
            dst = self._load(instr.dest)
            self._emit(dst.name, rhs)
            self._store(dst, instr.dest)
            self._release_if_pooled(dst)

        for operand in operands:
            self._release_if_pooled(operand)

    def _lower_mem_write(self, instr: MemWrite) -> None:
        base = self._load(instr.dest.base)
        target = memory_reference(base, instr.dest.byte_offset)

        source = self._load_operand(instr.source)
        self._emit(target, render_value(source))
        self._release_if_pooled(source)

        self._release_if_pooled(base)

    def _lower_mem_read(self, instr: MemRead) -> None:
        dst = self._load(instr.dest)

        base = self._load(instr.source.base)
        self._emit(dst.name, memory_reference(base, instr.source.byte_offset))
        self._release_if_pooled(base)

        self._store(dst, instr.dest)
        self._release_if_pooled(dst)

    def _lower_branch(self, instr: Branch) -> None:
        test = self._load_operand(instr.value)
        self.out.write_line(render_branch(instr.positive, test, instr.target))
        self._release_if_pooled(test)

    def _lower_return(self, instr: Return) -> None:
        if instr.value is not None:
            value = self._load_operand(instr.value)
            self._emit(RETURN_REGISTER.name, render_value(value))
            self._release_if_pooled(value)

        for index, register in enumerate(self.callee_saved):
            self._emit(register.name, local_slot(index))

        self.out.write_line("ret")


class Converter:
    def __init__(self, *, indent_unit: str = "  ", allocator: LinearScanAllocator | None = None) -> None:
        self.out = Output(indent_unit=indent_unit)
        self.allocator = allocator if allocator is not None else LinearScanAllocator()

    def output_data_segments(self, segments: list[DataSegment]) -> None:
        for segment in segments:
            self.out.write_line(f"const {segment.name}")
            self.out.increase_indent()
            for value in segment.values:
                self.out.write_line(render_operand(value))
            self.out.decrease_indent()
            self.out.write_line()

    def output_function(self, fn: FunctionIr, allocation: AllocationMap, liveness: Liveness) -> FrameSizes:
        return FunctionLowering(fn, allocation, liveness, self.out).lower()

    def convert(self, program: ProgramIr) -> str:
        self.output_data_segments(program.data_segments)
        for index, fn in enumerate(program.functions):
            if index > 0:
                self.out.write_line()
            liveness = analyze_liveness(fn)
            allocation = self.allocator.allocate(fn, liveness)
            self.output_function(fn, allocation, liveness)
        return self.out.text()


def emit_vaporm(program: ProgramIr, *, indent_unit: str = "  ") -> str:
    return Converter(indent_unit=indent_unit).convert(program)
