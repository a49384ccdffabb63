"""
TinyVM Memory Model + Stack

One zero-initialized block of bytes, sized at creation and never resized,
viewed as native 32-bit signed cells. The same block backs data operands
([n] in source) and the stack.

Stack discipline (top of the block, growing downward):
  create_stack(size)  EBP = ESP = cell one past the end of the block
  push(item)          ESP -= 1, then cells[ESP] = item
  pop()               item = cells[ESP], then ESP += 1

Memory (the default) performs no bounds checks at all: overflowing the
stack walks into data cells, and indices past the block surface whatever
the underlying buffer does. CheckedMemory adds explicit checks for hosts
that want them; it does not change any in-range behaviour.
"""

from __future__ import annotations
import logging
from typing import Dict

from ..config import TinyVMError, WORD_SIZE
from ..cpu.alu import wrap32
from ..cpu.regs import Integer, RegisterFile, RegisterValue
from ..program import Immediate, MemoryCell, Operand, RegisterSlot

log = logging.getLogger(__name__)


class MemoryAccessError(TinyVMError):
    """Raised by CheckedMemory for a cell access outside the block."""
    def __init__(self, message: str, cell: int):
        self.cell = cell
        super().__init__(message)


class StackOverflowError(MemoryAccessError):
    pass


class StackUnderflowError(MemoryAccessError):
    pass


class Memory:
    """Register file + FLAGS/remainder + flat cell memory.

    FLAGS and remainder sit outside the register array: FLAGS is written
    only by cmp, remainder only by mod.
    """

    def __init__(self, size: int):
        if size <= 0 or size % WORD_SIZE:
            raise ValueError(f"memory size must be a positive multiple of {WORD_SIZE}")
        self.size = size
        self.registers = RegisterFile()
        self.flags = 0
        self.remainder = 0
        self.stack_size = 0

        self.space = bytearray(size)
        self.cells = memoryview(self.space).cast('i')

    @property
    def num_cells(self) -> int:
        return self.size // WORD_SIZE

    # --- Core cell access ---

    def read_cell(self, index: int) -> int:
        return self.cells[index]

    def write_cell(self, index: int, value: int):
        self.cells[index] = wrap32(value)

    # --- Operand accessors (engine side) ---

    def load(self, ref: Operand) -> int:
        """Read an operand reference as a 32-bit integer."""
        if isinstance(ref, RegisterSlot):
            return self.registers.read_int(ref.index)
        if isinstance(ref, MemoryCell):
            return self.read_cell(ref.index)
        return ref.value

    def store(self, ref: Operand, value: int):
        """Write a 32-bit integer through an operand reference."""
        if isinstance(ref, RegisterSlot):
            self.registers.write_int(ref.index, value)
        elif isinstance(ref, MemoryCell):
            self.write_cell(ref.index, value)
        else:
            raise TypeError(f"operand {ref} is not writable")

    def load_tagged(self, ref: Operand) -> RegisterValue:
        """Read an operand keeping a register's Integer/Address tag."""
        if isinstance(ref, RegisterSlot):
            return self.registers.get(ref.index)
        return Integer(self.load(ref))

    def store_tagged(self, ref: Operand, value: RegisterValue):
        """Write a tagged value; cells only keep its integer view."""
        if isinstance(ref, RegisterSlot):
            self.registers.set(ref.index, value)
        else:
            self.store(ref, value.as_int())

    # --- Stack ---

    def create_stack(self, size: int):
        """Reserve the top ``size`` bytes as an empty stack."""
        self.stack_size = size
        top = self.num_cells
        self.registers.bp = top
        self.registers.sp = top

    @property
    def stack_limit(self) -> int:
        """Lowest cell of the stack region."""
        return self.registers.bp - self.stack_size // WORD_SIZE

    def stack_depth(self) -> int:
        """Number of words currently on the stack."""
        return self.registers.bp - self.registers.sp

    def push(self, item: int):
        sp = self.registers.sp - 1
        self.registers.sp = sp
        self.write_cell(sp, item)

    def pop(self) -> int:
        sp = self.registers.sp
        item = self.read_cell(sp)
        self.registers.sp = sp + 1
        return item

    # --- Lifecycle ---

    def destroy(self):
        """Release the memory block. Safe to call more than once."""
        if self.cells is not None:
            self.cells.release()
            self.cells = None
        self.space = None
        log.debug("memory block of %d bytes released", self.size)

    # --- Snapshots / dumps ---

    def snapshot(self, start: int = 0, count: int = 64) -> bytes:
        """Copy ``count`` cells starting at ``start`` for later diffing."""
        return bytes(self.space[start * WORD_SIZE:(start + count) * WORD_SIZE])

    def diff_snapshots(self, snap_a: bytes, snap_b: bytes,
                       base_cell: int = 0) -> Dict[int, tuple]:
        """Compare two snapshots, return {cell: (old, new)} for changed cells."""
        view_a = memoryview(snap_a).cast('i')
        view_b = memoryview(snap_b).cast('i')
        changes = {}
        for i in range(min(len(view_a), len(view_b))):
            if view_a[i] != view_b[i]:
                changes[base_cell + i] = (view_a[i], view_b[i])
        return changes

    def dump_stack(self, limit: int = 16) -> str:
        """Top ``limit`` stack words, most recent first."""
        sp, bp = self.registers.sp, self.registers.bp
        lines = []
        for cell in range(sp, min(bp, sp + limit)):
            lines.append(f"{cell:08X}  {self.read_cell(cell):11d}")
        if not lines:
            return "(stack empty)"
        return '\n'.join(lines)

    def hexdump(self, start: int, count: int = 16) -> str:
        """Produce a cell dump for debugging, four cells per row."""
        lines = []
        for row in range(start, start + count, 4):
            cells = ' '.join(f'{self.read_cell(c) & 0xFFFFFFFF:08X}'
                             for c in range(row, min(row + 4, start + count)))
            lines.append(f'{row:08X}  {cells}')
        return '\n'.join(lines)


class CheckedMemory(Memory):
    """Memory with bounds checks on cells and on the stack region."""

    def _check(self, index: int):
        if not 0 <= index < self.num_cells:
            raise MemoryAccessError(
                f"cell {index} outside memory of {self.num_cells} cells", index)

    def read_cell(self, index: int) -> int:
        self._check(index)
        return self.cells[index]

    def write_cell(self, index: int, value: int):
        self._check(index)
        self.cells[index] = wrap32(value)

    def push(self, item: int):
        sp = self.registers.sp - 1
        if sp < self.stack_limit:
            raise StackOverflowError(
                f"push to cell {sp} below stack limit {self.stack_limit}", sp)
        super().push(item)

    def pop(self) -> int:
        sp = self.registers.sp
        if sp >= self.registers.bp:
            raise StackUnderflowError(f"pop at cell {sp} past stack base", sp)
        return super().pop()
