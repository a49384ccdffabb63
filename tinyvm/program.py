"""
TinyVM Program Store

A Program is what the front end hands the engine:

  instructions  immutable tuple of Instruction, always ending in the
                sentinel (Opcode.END)
  start         entry instruction index
  defines       name -> value table from preprocessing (kept, never read
                by the engine)
  labels        label -> instruction index, for listings and debugging

Operands are resolved once, before execution, into references:

  RegisterSlot(index)   a slot in the register file
  MemoryCell(index)     a 32-bit cell in the memory block
  Immediate(value)      a literal (labels resolve to these); read-only

Jump targets are plain instruction indices. The engine stores target - 1
in EIP and the run loop's increment lands on the target.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple, Union

from .config import TinyVMError
from .cpu.opcodes import Opcode, SIGNATURES, TARGET, decode_opcode
from .cpu.regs import NUM_REGISTERS, Reg
from .cpu.alu import INT32_MIN, INT32_MAX


class ProgramError(TinyVMError):
    """Raised when a Program breaks the front-end contract."""
    def __init__(self, message: str, index: Optional[int] = None):
        self.index = index
        super().__init__(f"Instruction {index}: {message}" if index is not None else message)


# ──────────────────────────────────────────────
# Operand references
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class RegisterSlot:
    index: int

    def __str__(self):
        if 0 <= self.index < NUM_REGISTERS:
            return Reg(self.index).name.lower()
        return f"reg{self.index}"


@dataclass(frozen=True)
class MemoryCell:
    index: int

    def __str__(self):
        return f"[{self.index}]"


@dataclass(frozen=True)
class Immediate:
    value: int

    def __str__(self):
        return str(self.value)


Operand = Union[RegisterSlot, MemoryCell, Immediate]


@dataclass(frozen=True)
class Instruction:
    opcode: Opcode
    operands: Tuple[Operand, ...] = ()

    def __post_init__(self):
        # hosts may build instructions from raw opcode numbers
        object.__setattr__(self, "opcode", decode_opcode(self.opcode))
        object.__setattr__(self, "operands", tuple(self.operands))

    def __str__(self):
        if not self.operands:
            return self.opcode.mnemonic
        return f"{self.opcode.mnemonic:<6s}" + ", ".join(str(op) for op in self.operands)


SENTINEL = Instruction(Opcode.END)


class Program:
    """Sentinel-terminated instruction sequence plus entry point."""

    def __init__(self, instructions: Iterable[Instruction] = (), start: int = 0,
                 defines: Optional[Dict[str, str]] = None,
                 labels: Optional[Dict[str, int]] = None):
        body = list(instructions)
        if not body or body[-1].opcode != Opcode.END:
            body.append(SENTINEL)
        self.instructions: Tuple[Instruction, ...] = tuple(body)
        self.start = start
        self.defines: Dict[str, str] = dict(defines or {})
        self.labels: Dict[str, int] = dict(labels or {})

    def __len__(self):
        """Number of instructions, sentinel included."""
        return len(self.instructions)

    def __getitem__(self, index: int) -> Instruction:
        return self.instructions[index]

    def validate(self):
        """Check the contract the engine relies on.

        Raises ProgramError on the first violation. Memory cell indices
        are not range-checked here: memory is unchecked by default.
        """
        count = len(self.instructions)
        if not 0 <= self.start < count:
            raise ProgramError(f"start index {self.start} outside program of {count}")
        for index, ins in enumerate(self.instructions):
            opcode = decode_opcode(ins.opcode)
            if opcode == Opcode.END:
                continue
            kinds = SIGNATURES[opcode]
            if len(ins.operands) != len(kinds):
                raise ProgramError(
                    f"{opcode.mnemonic} takes {len(kinds)} operand(s), "
                    f"got {len(ins.operands)}", index)
            for kind, op in zip(kinds, ins.operands):
                _check_operand(op, kind, opcode, index)

    def listing(self) -> str:
        """Human-readable dump: index, labels, instruction."""
        by_index: Dict[int, list] = {}
        for name, idx in sorted(self.labels.items(), key=lambda kv: kv[1]):
            by_index.setdefault(idx, []).append(name)
        lines = []
        for index, ins in enumerate(self.instructions):
            for name in by_index.get(index, ()):
                lines.append(f"      {name}:")
            marker = '>' if index == self.start else ' '
            text = "<end>" if ins.opcode == Opcode.END else str(ins)
            lines.append(f"{index:04d}{marker}     {text}")
        return '\n'.join(lines)

    def clear(self):
        """Release the instruction storage (context teardown)."""
        self.instructions = (SENTINEL,)
        self.start = 0
        self.defines.clear()
        self.labels.clear()


def _check_operand(op, kind: str, opcode: Opcode, index: int):
    if isinstance(op, RegisterSlot):
        if not 0 <= op.index < NUM_REGISTERS:
            raise ProgramError(f"register slot {op.index} does not exist", index)
    elif isinstance(op, MemoryCell):
        if op.index < 0:
            raise ProgramError(f"negative memory cell {op.index}", index)
    elif isinstance(op, Immediate):
        if kind == TARGET:
            raise ProgramError(f"{opcode.mnemonic} cannot write to an immediate", index)
        if not INT32_MIN <= op.value <= INT32_MAX:
            raise ProgramError(f"immediate {op.value} does not fit in 32 bits", index)
    else:
        raise ProgramError(f"unresolved operand {op!r}", index)
