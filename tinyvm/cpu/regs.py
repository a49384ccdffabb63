"""
TinyVM CPU: Register File + FLAGS bits

Register model (17 word-sized slots):
  EAX EBX ECX EDX ESI EDI   general purpose (0-5)
  ESP                       stack pointer (6), cell index, grows downward
  EBP                       stack base (7), one cell past the stack region
  EIP                       instruction index (8), driven by the run loop
  R08 .. R15                general purpose (9-16)

Each slot holds a tagged value: Integer(value) or Address(cell). Nothing
inspects both interpretations at once. Reading an Address as an integer
yields its cell index, and the stack reads an Integer as a cell index, the
same reinterpretation an int/pointer union allows.

FLAGS (set only by cmp):
  bit 0: EQ  operand0 == operand1
  bit 1: GT  operand0 >  operand1
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Union

from .alu import wrap32

FLAG_EQ = 0x1
FLAG_GT = 0x2

NUM_REGISTERS = 17


class Reg(IntEnum):
    EAX = 0
    EBX = 1
    ECX = 2
    EDX = 3
    ESI = 4
    EDI = 5
    ESP = 6
    EBP = 7
    EIP = 8
    R08 = 9
    R09 = 10
    R10 = 11
    R11 = 12
    R12 = 13
    R13 = 14
    R14 = 15
    R15 = 16


# Source-text name -> register (case-sensitive, as the assembler expects)
REGISTER_NAMES: Dict[str, Reg] = {reg.name.lower(): reg for reg in Reg}


@dataclass(frozen=True)
class Integer:
    """32-bit signed integer held in a register slot."""
    value: int = 0

    def as_int(self) -> int:
        return self.value

    def as_cell(self) -> int:
        return self.value

    def __str__(self):
        return str(self.value)


@dataclass(frozen=True)
class Address:
    """Reference to a memory cell held in a register slot."""
    cell: int

    def as_int(self) -> int:
        return self.cell

    def as_cell(self) -> int:
        return self.cell

    def __str__(self):
        return f"@{self.cell}"


RegisterValue = Union[Integer, Address]


class RegisterFile:
    """The 17 register slots.

    Integer writes go through write_int() and are wrapped to 32 bits;
    set() stores a tagged value as-is (mov between registers keeps the tag).
    """

    __slots__ = ('_slots',)

    def __init__(self):
        self._slots = [Integer(0)] * NUM_REGISTERS

    def __len__(self):
        return NUM_REGISTERS

    def get(self, index: int) -> RegisterValue:
        return self._slots[index]

    def set(self, index: int, value: RegisterValue):
        self._slots[index] = value

    def read_int(self, index: int) -> int:
        return self._slots[index].as_int()

    def write_int(self, index: int, value: int):
        self._slots[index] = Integer(wrap32(value))

    # --- Reserved roles ---

    @property
    def sp(self) -> int:
        """Stack pointer as a cell index."""
        return self._slots[Reg.ESP].as_cell()

    @sp.setter
    def sp(self, cell: int):
        self._slots[Reg.ESP] = Address(cell)

    @property
    def bp(self) -> int:
        """Stack base as a cell index."""
        return self._slots[Reg.EBP].as_cell()

    @bp.setter
    def bp(self, cell: int):
        self._slots[Reg.EBP] = Address(cell)

    @property
    def ip(self) -> int:
        """Current instruction index."""
        return self._slots[Reg.EIP].as_int()

    @ip.setter
    def ip(self, index: int):
        self._slots[Reg.EIP] = Integer(wrap32(index))

    # --- Display ---

    def display(self) -> str:
        """One-line register dump for traces."""
        return ' '.join(f"{reg.name}={self._slots[reg]}" for reg in Reg)

    def reset(self):
        self._slots = [Integer(0)] * NUM_REGISTERS
