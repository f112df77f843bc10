from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RegisterRole(str, Enum):
    ARGUMENT = "ARGUMENT"
    RETURN_VALUE = "RETURN_VALUE"
    CALLER_SAVED = "CALLER_SAVED"
    CALLEE_SAVED = "CALLEE_SAVED"
    LOCAL_SCRATCH = "LOCAL_SCRATCH"


@dataclass(frozen=True)
class Register:
    name: str
    role: RegisterRole

    def __str__(self) -> str:
        return self.name

    @property
    def is_caller_saved(self) -> bool:
        return self.role == RegisterRole.CALLER_SAVED

    @property
    def is_callee_saved(self) -> bool:
        return self.role == RegisterRole.CALLEE_SAVED


def _registers(role: RegisterRole, *names: str) -> tuple[Register, ...]:
    return tuple(Register(name=name, role=role) for name in names)


ARGUMENT_REGISTERS = _registers(RegisterRole.ARGUMENT, "$a0", "$a1", "$a2", "$a3")
RETURN_REGISTER = Register(name="$v0", role=RegisterRole.RETURN_VALUE)
CALLER_SAVED_REGISTERS = _registers(
    RegisterRole.CALLER_SAVED, "$t0", "$t1", "$t2", "$t3", "$t4", "$t5", "$t6"
)
CALLEE_SAVED_REGISTERS = _registers(
    RegisterRole.CALLEE_SAVED, "$s0", "$s1", "$s2", "$s3", "$s4", "$s5", "$s6", "$s7"
)
# A single instruction holds at most three spilled values at once.
LOCAL_SCRATCH_REGISTERS = _registers(RegisterRole.LOCAL_SCRATCH, "$t7", "$t8", "$v1")

ARGUMENT_REGISTER_COUNT = len(ARGUMENT_REGISTERS)

ALL_REGISTERS: tuple[Register, ...] = (
    *ARGUMENT_REGISTERS,
    RETURN_REGISTER,
    *CALLER_SAVED_REGISTERS,
    *CALLEE_SAVED_REGISTERS,
    *LOCAL_SCRATCH_REGISTERS,
)
REGISTERS_BY_NAME: dict[str, Register] = {register.name: register for register in ALL_REGISTERS}
REGISTER_ORDER: dict[Register, int] = {register: index for index, register in enumerate(ALL_REGISTERS)}


def register_named(name: str) -> Register:
    register = REGISTERS_BY_NAME.get(name)
    if register is None:
        raise ValueError(f"Unknown register '{name}'")
    return register
