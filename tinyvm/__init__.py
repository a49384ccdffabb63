"""
TinyVM
======
A small register/stack virtual machine with a line-oriented assembly
language. Programs are assembled once into resolved instruction sequences
and executed by a fetch/dispatch loop over a flat block of 32-bit cells.

Architecture:
    ┌──────────┐    ┌──────────────┐    ┌─────────┐    ┌─────────┐    ┌──────────┐
    │ .vm file │───>│ Preprocessor │───>│  Lexer  │───>│ Parser  │───>│  TinyVM  │
    │          │    │ %include/def │    │ (lines) │    │(Program)│    │ run loop │
    └──────────┘    └──────────────┘    └─────────┘    └─────────┘    └──────────┘

    - source.py:           open with retry + ".vm" extension fallback
    - asm/preprocessor.py: %include / %define expansion
    - asm/lexer.py:        comment stripping, token splitting, define substitution
    - asm/parser.py:       two-pass label resolver -> Program
    - program.py:          operand references, Instruction, sentinel-terminated Program
    - cpu/:                registers, opcode table, 32-bit ALU
    - mem/memory.py:       flat memory + stack (optionally bounds-checked)
    - emu.py:              VM context: create / interpret / run / destroy
"""

__version__ = "0.3.0"

from .config import TinyVMError, VM_PROFILES, MIN_MEMORY_SIZE, MIN_STACK_SIZE
from .cpu.opcodes import Opcode, IllegalOpcode
from .cpu.regs import Reg, Integer, Address, FLAG_EQ, FLAG_GT
from .program import (
    Program, ProgramError, Instruction, RegisterSlot, MemoryCell, Immediate,
)
from .mem.memory import (
    Memory, CheckedMemory, MemoryAccessError, StackOverflowError, StackUnderflowError,
)
from .source import read_source, SourceError
from .asm import compile_source, PreprocessError, ParseError
from .emu import TinyVM, ExecutionError
