"""
TinyVM Front End: Two-Pass Parser

  Pass 1: split each line into labels + instruction, register every label
          at the index of the next successfully parsed instruction.
  Pass 2: resolve label operands and build the Program, stopping at the
          first error in line order.

Operand syntax:
  eax .. r15        register (case-sensitive)
  [n]               memory cell n (n >= 0, any value syntax)
  123 / -0x1F       integer literal
  1Fh / 1F|h        hex, suffix form (sign allowed: -1Fh)
  101b / 101|b      binary, suffix form
  name              label; resolves to its instruction index
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ..config import TinyVMError
from ..cpu.alu import INT32_MIN, INT32_MAX
from ..cpu.opcodes import MNEMONICS, SIGNATURES, TARGET
from ..cpu.regs import REGISTER_NAMES
from ..program import Immediate, Instruction, MemoryCell, Program, RegisterSlot

START_LABEL = "start"

_LABEL_RE = re.compile(r'[$@_A-Za-z][$@_A-Za-z0-9]*\Z')
_DIGITS = {
    16: re.compile(r'[+-]?[0-9A-Fa-f]+\Z'),
    10: re.compile(r'[+-]?[0-9]+\Z'),
    2:  re.compile(r'[+-]?[01]+\Z'),
}


class ParseErrorKind(Enum):
    DUPLICATE_LABEL = "duplicate label"
    UNDEFINED_LABEL = "undefined label"
    INVALID_INSTRUCTION = "invalid instruction"
    MISSING_OPERAND = "missing operand"
    INVALID_OPERAND = "invalid operand"
    EXTRA_TOKEN = "extra token"


class ParseError(TinyVMError):
    """Parse failure. ``line_index`` is 0-based; messages show it 1-based."""
    def __init__(self, kind: ParseErrorKind, line_index: int, detail=None):
        self.kind = kind
        self.line_index = line_index
        self.detail = detail
        msg = f"Line {line_index + 1}: {kind.value}"
        if detail is not None:
            msg += f" '{detail}'" if isinstance(detail, str) else f" {detail}"
        super().__init__(msg)


class _LineError(Exception):
    """Instruction-level failure, tagged with its line by the caller."""
    def __init__(self, kind: ParseErrorKind, detail=None):
        self.kind = kind
        self.detail = detail
        super().__init__(kind.value)


# ──────────────────────────────────────────────
# Token analysis
# ──────────────────────────────────────────────

def is_valid_label(name: str) -> bool:
    return bool(_LABEL_RE.match(name))


def _int_radix(text: str, radix: int) -> int:
    if not _DIGITS[radix].match(text):
        raise ValueError(f"not a base-{radix} integer: {text!r}")
    return int(text, radix)


def parse_value(text: str) -> int:
    """Parse an integer literal in any of the accepted notations.

    Suffix forms are checked first, so "0x1b" reads as binary and fails.
    Raises ValueError for malformed text or values outside signed 32 bits.
    """
    if text.endswith('|h'):
        value = _int_radix(text[:-2], 16)
    elif text.endswith('h'):
        value = _int_radix(text[:-1], 16)
    elif text.endswith('|b'):
        value = _int_radix(text[:-2], 2)
    elif text.endswith('b'):
        value = _int_radix(text[:-1], 2)
    elif text.startswith('0x'):
        value = _int_radix(text[2:], 16)
    elif text.startswith('-0x'):
        value = -_int_radix(text[3:], 16)
    else:
        value = _int_radix(text, 10)
    if not INT32_MIN <= value <= INT32_MAX:
        raise ValueError(f"value out of 32-bit range: {text!r}")
    return value


@dataclass(frozen=True)
class LabelRef:
    """Unresolved label operand, replaced by an Immediate in pass 2."""
    name: str


def parse_source(tokens: List[str], index: int):
    """Parse tokens[index] as a source operand."""
    if index >= len(tokens):
        raise _LineError(ParseErrorKind.MISSING_OPERAND, index)
    token = tokens[index]

    if token in REGISTER_NAMES:
        return RegisterSlot(int(REGISTER_NAMES[token]))

    if token.startswith('[') and token.endswith(']') and len(token) >= 2:
        try:
            cell = parse_value(token[1:-1].strip())
        except ValueError:
            raise _LineError(ParseErrorKind.INVALID_OPERAND, token) from None
        if cell < 0:
            raise _LineError(ParseErrorKind.INVALID_OPERAND, token)
        return MemoryCell(cell)

    try:
        return Immediate(parse_value(token))
    except ValueError:
        pass
    if is_valid_label(token):
        return LabelRef(token)
    raise _LineError(ParseErrorKind.INVALID_OPERAND, token)


def parse_target(tokens: List[str], index: int):
    """Parse tokens[index] as a target operand: register or memory cell."""
    op = parse_source(tokens, index)
    if not isinstance(op, (RegisterSlot, MemoryCell)):
        raise _LineError(ParseErrorKind.INVALID_OPERAND, tokens[index])
    return op


def parse_instruction(tokens: List[str]) -> Instruction:
    """Parse mnemonic + operands. Label operands stay as LabelRef."""
    opcode = MNEMONICS.get(tokens[0])
    if opcode is None:
        raise _LineError(ParseErrorKind.INVALID_INSTRUCTION, tokens[0])

    operands = []
    for position, kind in enumerate(SIGNATURES[opcode], 1):
        if kind == TARGET:
            operands.append(parse_target(tokens, position))
        else:
            operands.append(parse_source(tokens, position))

    if len(tokens) > len(operands) + 1:
        raise _LineError(ParseErrorKind.EXTRA_TOKEN, tokens[len(operands) + 1])
    return Instruction(opcode, tuple(operands))


@dataclass
class ParsedLine:
    """One source line after pass 1."""
    line_index: int
    labels: List[str] = field(default_factory=list)
    instruction: Optional[Instruction] = None
    error: Optional[_LineError] = None


def parse_line(tokens: List[str], line_index: int = 0) -> ParsedLine:
    result = ParsedLine(line_index)
    for i, token in enumerate(tokens):
        if token.endswith(':') and is_valid_label(token[:-1]):
            result.labels.append(token[:-1])
            continue
        try:
            result.instruction = parse_instruction(tokens[i:])
        except _LineError as e:
            result.error = e
        break
    return result


# ──────────────────────────────────────────────
# Parser
# ──────────────────────────────────────────────

class Parser:
    """Two-pass TinyVM parser.

    Usage:
        lines = Lexer(source, defines).tokenize()
        program = Parser(lines).parse()
    """

    def __init__(self, lines: List[List[str]]):
        self.lines = lines
        self.labels: Dict[str, int] = {}
        self._parsed: List[ParsedLine] = []

    def parse(self, defines: Optional[Dict[str, str]] = None) -> Program:
        self._parsed = [parse_line(tokens, i) for i, tokens in enumerate(self.lines)]
        self._pass1()
        instructions = self._pass2()
        start = self.labels.get(START_LABEL, 0)
        return Program(instructions, start=start, defines=defines, labels=self.labels)

    def _pass1(self):
        """Pass 1: assign each label the index of the next instruction."""
        self.labels = {}
        index = 0
        for line in self._parsed:
            for label in line.labels:
                if label in self.labels:
                    raise ParseError(ParseErrorKind.DUPLICATE_LABEL, line.line_index, label)
                self.labels[label] = index
            # lines that failed to parse do not advance the index
            if line.instruction is not None:
                index += 1

    def _pass2(self) -> List[Instruction]:
        """Pass 2: resolve label operands, first error in line order wins."""
        instructions = []
        for line in self._parsed:
            if line.error is not None:
                raise ParseError(line.error.kind, line.line_index, line.error.detail)
            if line.instruction is None:
                continue
            instructions.append(self._resolve(line.instruction, line.line_index))
        return instructions

    def _resolve(self, ins: Instruction, line_index: int) -> Instruction:
        if not any(isinstance(op, LabelRef) for op in ins.operands):
            return ins
        operands = []
        for op in ins.operands:
            if isinstance(op, LabelRef):
                if op.name not in self.labels:
                    raise ParseError(ParseErrorKind.UNDEFINED_LABEL, line_index, op.name)
                op = Immediate(self.labels[op.name])
            operands.append(op)
        return Instruction(ins.opcode, tuple(operands))

