from __future__ import annotations

import bisect
from dataclasses import dataclass

from regalloc.ir_nodes import FunctionIr
from regalloc.lexer import SourceSpan
from regalloc.liveness import Liveness
from regalloc.registers import (
    CALLEE_SAVED_REGISTERS,
    CALLER_SAVED_REGISTERS,
    REGISTER_ORDER,
    Register,
)


class AllocationError(ValueError):
    def __init__(self, message: str, span: SourceSpan | None = None):
        if span is not None:
            super().__init__(f"{message} at {span.start.path}:{span.start.line}:{span.start.column}")
        else:
            super().__init__(message)
        self.message = message
        self.span = span


@dataclass(frozen=True)
class StackSlot:
    offset: int

    def __str__(self) -> str:
        return f"local[{self.offset}]"


Location = Register | StackSlot


def _register_sort_key(register: Register) -> int:
    return REGISTER_ORDER[register]


class AllocationMap:
    """Where every variable of one function lives.

    Local stack slots ``[0, len(used_callee_registers()))`` hold the callee-saved
    registers; spilled variables sit above them. ``stack_size()`` counts both
    regions.
    """

    def __init__(self, registers: dict[str, Register], stack_offsets: dict[str, int]) -> None:
        both = sorted(set(registers) & set(stack_offsets))
        if both:
            raise AllocationError(f"variable '{both[0]}' is both register-resident and spilled")

        for name, register in registers.items():
            if not (register.is_caller_saved or register.is_callee_saved):
                raise AllocationError(f"variable '{name}' assigned to reserved register '{register}'")

        self._registers = dict(registers)
        self._stack_offsets = dict(stack_offsets)
        self._used_callee = sorted(
            {register for register in registers.values() if register.is_callee_saved},
            key=_register_sort_key,
        )

        for name, offset in stack_offsets.items():
            if offset < len(self._used_callee):
                raise AllocationError(
                    f"variable '{name}' spilled to local[{offset}] inside the callee-save area"
                )

        slot_end = max(self._stack_offsets.values(), default=-1) + 1
        self._stack_size = max(len(self._used_callee), slot_end)

    def lookup(self, var: str) -> Location | None:
        register = self._registers.get(var)
        if register is not None:
            return register
        offset = self._stack_offsets.get(var)
        if offset is not None:
            return StackSlot(offset)
        return None

    def lookup_register(self, var: str) -> Register | None:
        return self._registers.get(var)

    def lookup_stack(self, var: str) -> int | None:
        return self._stack_offsets.get(var)

    def stack_size(self) -> int:
        return self._stack_size

    def used_callee_registers(self) -> list[Register]:
        return list(self._used_callee)

    def variables(self) -> list[str]:
        return sorted([*self._registers, *self._stack_offsets])

    def describe(self) -> list[str]:
        lines = []
        for name in self.variables():
            lines.append(f"{name} -> {self.lookup(name)}")
        return lines


@dataclass(frozen=True)
class LiveInterval:
    name: str
    start: int
    end: int
    crosses_call: bool


def build_live_intervals(fn: FunctionIr, liveness: Liveness) -> list[LiveInterval]:
    bounds: dict[str, tuple[int, int]] = {}

    def touch(name: str, index: int) -> None:
        current = bounds.get(name)
        if current is None:
            bounds[name] = (index, index)
        else:
            bounds[name] = (min(current[0], index), max(current[1], index))

    entry_live = liveness.entry_live()
    for param in fn.params:
        if param.name in entry_live:
            touch(param.name, 0)

    for index in range(len(liveness)):
        for name in liveness.live_in(index) | liveness.defs(index):
            touch(name, index)

    crossing: set[str] = set()
    for call_index in liveness.call_indices:
        crossing |= liveness.live_across(call_index)

    intervals = [
        LiveInterval(name=name, start=start, end=end, crosses_call=name in crossing)
        for name, (start, end) in bounds.items()
    ]
    intervals.sort(key=lambda interval: (interval.start, interval.end, interval.name))
    return intervals


class LinearScanAllocator:
    def __init__(
        self,
        *,
        caller_saved: tuple[Register, ...] = CALLER_SAVED_REGISTERS,
        callee_saved: tuple[Register, ...] = CALLEE_SAVED_REGISTERS,
    ) -> None:
        self.caller_saved = caller_saved
        self.callee_saved = callee_saved

    def allocate(self, fn: FunctionIr, liveness: Liveness) -> AllocationMap:
        free_caller = list(self.caller_saved)
        free_callee = list(self.callee_saved)
        assignments: dict[str, Register] = {}
        spilled: list[str] = []
        active: list[LiveInterval] = []

        def release(register: Register) -> None:
            pool = free_callee if register.is_callee_saved else free_caller
            pool.append(register)
            pool.sort(key=_register_sort_key)

        for interval in build_live_intervals(fn, liveness):
            still_active = []
            for other in active:
                if other.end < interval.start:
                    release(assignments[other.name])
                else:
                    still_active.append(other)
            active = still_active

            preferred, fallback = (free_callee, free_caller) if interval.crosses_call else (free_caller, free_callee)
            if preferred:
                register = preferred.pop(0)
            elif fallback:
                register = fallback.pop(0)
            else:
                victim = active[-1] if active else None
                if victim is None or victim.end <= interval.end:
                    spilled.append(interval.name)
                    continue
                register = assignments.pop(victim.name)
                spilled.append(victim.name)
                active.pop()

            assignments[interval.name] = register
            bisect.insort_right(active, interval, key=lambda item: (item.end, item.name))

        callee_count = len({register for register in assignments.values() if register.is_callee_saved})
        stack_offsets = {name: callee_count + index for index, name in enumerate(spilled)}
        return AllocationMap(assignments, stack_offsets)


def allocate_registers(fn: FunctionIr, liveness: Liveness) -> AllocationMap:
    return LinearScanAllocator().allocate(fn, liveness)
