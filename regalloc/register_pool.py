from __future__ import annotations

from regalloc.registers import LOCAL_SCRATCH_REGISTERS, Register


class RegisterPoolError(RuntimeError):
    pass


class RegisterPool:
    """Scratch registers checked out while lowering a single instruction.

    Registers are handed out in their declared order so that output is
    reproducible. Every acquisition must be released before the next
    instruction is lowered.
    """

    def __init__(self, registers: tuple[Register, ...] = LOCAL_SCRATCH_REGISTERS) -> None:
        self.registers = registers
        self._members = set(registers)
        self._free: list[Register] = list(registers)

    def acquire(self) -> Register:
        if not self._free:
            raise RegisterPoolError(
                "local register pool exhausted (checked out: "
                + ", ".join(register.name for register in self.in_use())
                + ")"
            )
        return self._free.pop(0)

    def release(self, register: Register) -> None:
        if register not in self._members:
            raise RegisterPoolError(f"register '{register}' does not belong to the local pool")
        if register in self._free:
            raise RegisterPoolError(f"register '{register}' released twice")
        self._free.append(register)
        self._free.sort(key=self.registers.index)

    def contains(self, register: Register) -> bool:
        return register in self._members

    def in_use(self) -> list[Register]:
        return [register for register in self.registers if register not in self._free]

    def is_idle(self) -> bool:
        return len(self._free) == len(self.registers)
