"""
Parser tests: value syntax, labels, operand resolution and error reporting.
"""

import pytest

from tinyvm.asm import compile_source
from tinyvm.asm.lexer import Lexer
from tinyvm.asm.parser import (
    ParseError, ParseErrorKind, Parser, is_valid_label, parse_line, parse_value,
)
from tinyvm.cpu.opcodes import Opcode
from tinyvm.cpu.regs import Reg
from tinyvm.program import Immediate, Instruction, MemoryCell, RegisterSlot

EAX = RegisterSlot(Reg.EAX)
EBX = RegisterSlot(Reg.EBX)


def _parse(source: str):
    return Parser(Lexer(source).tokenize()).parse()


def _error(source: str) -> ParseError:
    with pytest.raises(ParseError) as exc:
        _parse(source)
    return exc.value


# ─── Values / labels ─────────────────────

class TestValues:
    def test_notations(self):
        """Decimal, 0x, -0x, h/|h and b/|b suffix forms."""
        cases = [
            ("42", 42),
            ("-42", -42),
            ("0x12a", 0x12a),
            ("-0x12a", -0x12a),
            ("12ah", 0x12a),
            ("12a|h", 0x12a),
            ("-12ah", -0x12a),
            ("01001010111b", 0b01001010111),
            ("01001010111|b", 0b01001010111),
            ("-01001010111b", -0b01001010111),
            ("2147483647", 2147483647),
            ("-2147483648", -2147483648),
        ]
        for text, expected in cases:
            assert parse_value(text) == expected, text

    def test_invalid(self):
        for text in ("", "abc", "12 3", "2147483648", "0xZZ", "h", "102b", "1_000"):
            with pytest.raises(ValueError):
                parse_value(text)

    def test_suffix_checked_before_prefix(self):
        """'0x1b' is read as a binary literal and rejected."""
        with pytest.raises(ValueError):
            parse_value("0x1b")

    def test_label_names(self):
        for name in ("label1", "$x", "@y", "_z", "Start"):
            assert is_valid_label(name), name
        for name in ("1abc", "", "wef(#)", "a-b", "x:"):
            assert not is_valid_label(name), name


# ─── Line parsing ─────────────────────

class TestParseLine:
    def test_empty_line(self):
        line = parse_line([])
        assert line.labels == [] and line.instruction is None and line.error is None

    def test_only_labels(self):
        assert parse_line(["label1:", "label2:"]).labels == ["label1", "label2"]

    def test_labels_and_instruction(self):
        line = parse_line(["label1:", "label2:", "inc", "eax"])
        assert line.labels == ["label1", "label2"]
        assert line.instruction == Instruction(Opcode.INC, (EAX,))

    def test_labels_kept_on_error(self):
        line = parse_line(["label1:", "bad"])
        assert line.labels == ["label1"]
        assert line.error.kind is ParseErrorKind.INVALID_INSTRUCTION

    def test_garbage_with_colon_is_not_a_label(self):
        line = parse_line(["wef(#):", "inc", "eax"])
        assert line.labels == []
        assert line.error.kind is ParseErrorKind.INVALID_INSTRUCTION
        assert line.error.detail == "wef(#):"


# ─── Whole programs ─────────────────────

class TestParser:
    def test_label_indices(self):
        """Labels take the index of the next instruction."""
        prog = _parse("label1: add eax, ebx\nstart: inc ebx \n\ndec eax\n"
                      "label2: sub eax, ebx\nlabel3:\nlabel4:\ninc eax")
        assert prog.labels == {"label1": 0, "start": 1, "label2": 3,
                               "label3": 4, "label4": 4}
        assert prog.start == 1

    def test_resolved_labels(self):
        prog = _parse("label1: add eax, ebx\njmp label4\nstart: inc ebx \n\ndec eax\n"
                      "label2: sub eax, label1\nlabel3:\nlabel4:\ninc eax\n"
                      "jmp start\njmp label3")
        assert list(prog.instructions) == [
            Instruction(Opcode.ADD, (EAX, EBX)),
            Instruction(Opcode.JMP, (Immediate(5),)),
            Instruction(Opcode.INC, (EBX,)),
            Instruction(Opcode.DEC, (EAX,)),
            Instruction(Opcode.SUB, (EAX, Immediate(0))),
            Instruction(Opcode.INC, (EAX,)),
            Instruction(Opcode.JMP, (Immediate(2),)),
            Instruction(Opcode.JMP, (Immediate(5),)),
            Instruction(Opcode.END),
        ]
        assert prog.start == 2

    def test_start_defaults_to_zero(self):
        assert _parse("nop\nnop").start == 0

    def test_operand_kinds(self):
        prog = _parse("mov [0x10], -3\nmov r15, [7h]\npush 0")
        assert prog[0] == Instruction(Opcode.MOV, (MemoryCell(16), Immediate(-3)))
        assert prog[1] == Instruction(Opcode.MOV, (RegisterSlot(Reg.R15), MemoryCell(7)))
        assert prog[2] == Instruction(Opcode.PUSH, (Immediate(0),))

    def test_failed_lines_do_not_count(self):
        """Pass 1 skips lines whose instruction did not parse."""
        parser = Parser(Lexer("add eax, ebx\n\nbad\nlabel: inc ebx").tokenize())
        with pytest.raises(ParseError) as exc:
            parser.parse()
        assert exc.value.kind is ParseErrorKind.INVALID_INSTRUCTION
        assert exc.value.line_index == 2
        assert parser.labels == {"label": 1}

    def test_compile_source_keeps_defines(self):
        prog = compile_source("%define X 9\nstart: mov eax, X\n")
        assert prog.defines == {"X": "9"}
        assert prog[0] == Instruction(Opcode.MOV, (EAX, Immediate(9)))
        assert prog.start == 0


class TestParseErrors:
    def test_error_kinds(self):
        """Each malformed line reports its kind and offending token."""
        cases = [
            ("push label1:", ParseErrorKind.INVALID_OPERAND, "label1:"),
            ("pop label1:", ParseErrorKind.INVALID_OPERAND, "label1:"),
            ("bad", ParseErrorKind.INVALID_INSTRUCTION, "bad"),
            ("add eax", ParseErrorKind.MISSING_OPERAND, 2),
            ("nop eax", ParseErrorKind.EXTRA_TOKEN, "eax"),
            ("inc eax ebx", ParseErrorKind.EXTRA_TOKEN, "ebx"),
            ("mov 5, eax", ParseErrorKind.INVALID_OPERAND, "5"),
            ("mov [-1], eax", ParseErrorKind.INVALID_OPERAND, "[-1]"),
            ("mov [x], eax", ParseErrorKind.INVALID_OPERAND, "[x]"),
            ("inc EAX", ParseErrorKind.INVALID_OPERAND, "EAX"),
            ("jmp nowhere", ParseErrorKind.UNDEFINED_LABEL, "nowhere"),
            ("push 99999999999", ParseErrorKind.INVALID_OPERAND, "99999999999"),
        ]
        for source, kind, detail in cases:
            err = _error(source)
            assert err.kind is kind, source
            assert err.detail == detail, source
            assert err.line_index == 0

    def test_duplicate_label(self):
        err = _error("label1: add eax, ebx\nlabel1: inc ebx")
        assert err.kind is ParseErrorKind.DUPLICATE_LABEL
        assert err.line_index == 1

    def test_first_error_in_line_order(self):
        err = _error("nop\nbad\njmp nowhere")
        assert err.kind is ParseErrorKind.INVALID_INSTRUCTION
        assert err.line_index == 1

    def test_message_is_one_based(self):
        assert "Line 3" in str(_error("nop\n\nbad"))
