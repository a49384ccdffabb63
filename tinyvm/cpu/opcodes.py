"""
TinyVM CPU: Opcode Numbering + Operand Signatures

Numeric encodings are fixed: programs built by other front ends use the
same values. The sentinel END (-1) marks the end of the instruction
sequence and is the run loop's only termination condition.

Operand kinds:
  T   target: register or memory cell (written)
  S   source: register, memory cell or immediate (read)
"""

from enum import IntEnum
from typing import Dict, Tuple

from ..config import TinyVMError

TARGET = 'T'
SOURCE = 'S'


class Opcode(IntEnum):
    END   = -0x1
    NOP   = 0x0
    INT   = 0x1
    MOV   = 0x2
    PUSH  = 0x3
    POP   = 0x4
    PUSHF = 0x5
    POPF  = 0x6
    INC   = 0x7
    DEC   = 0x8
    ADD   = 0x9
    SUB   = 0xA
    MUL   = 0xB
    DIV   = 0xC
    MOD   = 0xD
    REM   = 0xE
    NOT   = 0xF
    XOR   = 0x10
    OR    = 0x11
    AND   = 0x12
    SHL   = 0x13
    SHR   = 0x14
    CMP   = 0x15
    JMP   = 0x16
    CALL  = 0x17
    RET   = 0x18
    JE    = 0x19
    JNE   = 0x1A
    JG    = 0x1B
    JGE   = 0x1C
    JL    = 0x1D
    JLE   = 0x1E
    PRN   = 0x1F

    @property
    def mnemonic(self) -> str:
        return self.name.lower()


# ──────────────────────────────────────────────
# Signature table
# ──────────────────────────────────────────────
# Format: opcode -> tuple of operand kinds, in operand order

SIGNATURES: Dict[Opcode, Tuple[str, ...]] = {}


def _op(opcode: Opcode, *kinds: str):
    """Register an opcode's operand signature."""
    SIGNATURES[opcode] = kinds


# ── Control / misc ──
_op(Opcode.NOP)
_op(Opcode.INT)
_op(Opcode.RET)
_op(Opcode.PRN,   SOURCE)

# ── Data movement / stack ──
_op(Opcode.MOV,   TARGET, SOURCE)
_op(Opcode.PUSH,  SOURCE)
_op(Opcode.POP,   TARGET)
_op(Opcode.PUSHF)
_op(Opcode.POPF,  TARGET)   # pops into a general operand, not into FLAGS

# ── Arithmetic ──
_op(Opcode.INC,   TARGET)
_op(Opcode.DEC,   TARGET)
_op(Opcode.ADD,   TARGET, SOURCE)
_op(Opcode.SUB,   TARGET, SOURCE)
_op(Opcode.MUL,   TARGET, SOURCE)
_op(Opcode.DIV,   TARGET, SOURCE)
_op(Opcode.MOD,   SOURCE, SOURCE)
_op(Opcode.REM,   TARGET)

# ── Logic / shifts ──
_op(Opcode.NOT,   TARGET)
_op(Opcode.XOR,   TARGET, SOURCE)
_op(Opcode.OR,    TARGET, SOURCE)
_op(Opcode.AND,   TARGET, SOURCE)
_op(Opcode.SHL,   TARGET, SOURCE)
_op(Opcode.SHR,   TARGET, SOURCE)

# ── Compare / branch ──
_op(Opcode.CMP,   SOURCE, SOURCE)
_op(Opcode.JMP,   SOURCE)
_op(Opcode.CALL,  SOURCE)
_op(Opcode.JE,    SOURCE)
_op(Opcode.JNE,   SOURCE)
_op(Opcode.JG,    SOURCE)
_op(Opcode.JGE,   SOURCE)
_op(Opcode.JL,    SOURCE)
_op(Opcode.JLE,   SOURCE)

# Mnemonic lookup for the assembler (sentinel excluded: not writable in source)
MNEMONICS: Dict[str, Opcode] = {op.mnemonic: op for op in SIGNATURES}


class IllegalOpcode(TinyVMError):
    """Raised when an instruction carries an opcode outside the table."""
    pass


def decode_opcode(value: int) -> Opcode:
    """Map a raw opcode value to Opcode, or raise IllegalOpcode."""
    try:
        return Opcode(value)
    except ValueError:
        raise IllegalOpcode(f"Unknown opcode {value:#x}") from None
