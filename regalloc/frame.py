from __future__ import annotations

from dataclasses import dataclass

from regalloc.allocation import AllocationMap
from regalloc.ir_nodes import Call, FunctionIr
from regalloc.liveness import Liveness
from regalloc.registers import ARGUMENT_REGISTER_COUNT, Register


@dataclass(frozen=True)
class FrameSizes:
    in_: int
    out: int
    local: int


def caller_saved_live_across(index: int, allocation: AllocationMap, liveness: Liveness) -> list[Register]:
    """Caller-saved registers whose values must survive the call at ``index``."""
    registers: set[Register] = set()
    for name in liveness.live_across(index):
        register = allocation.lookup_register(name)
        if register is not None and register.is_caller_saved:
            registers.add(register)
    return sorted(registers, key=lambda register: register.name)


def compute_frame_sizes(fn: FunctionIr, allocation: AllocationMap, liveness: Liveness) -> FrameSizes:
    in_stack = max(len(fn.params) - ARGUMENT_REGISTER_COUNT, 0)
    out_stack = 0
    local_stack = allocation.stack_size()

    for index, instr in enumerate(fn.body):
        if not isinstance(instr, Call):
            continue
        out_stack = max(out_stack, len(instr.args) - ARGUMENT_REGISTER_COUNT)
        saves = len(caller_saved_live_across(index, allocation, liveness))
        local_stack = max(local_stack, allocation.stack_size() + saves)

    return FrameSizes(in_=in_stack, out=out_stack, local=local_stack)
