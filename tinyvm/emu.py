"""
TinyVM: VM Context + Execution Engine

Integrates:
  - Memory model, register file and stack (mem/memory.py, cpu/regs.py)
  - Program store (program.py)
  - Opcode table and ALU (cpu/opcodes.py, cpu/alu.py)
  - Front end for interpret() (asm/)

Execution model:
  1. run() sets EIP to the program's start index
  2. While the instruction at EIP is not the sentinel:
       step()    execute the instruction at EIP
       EIP += 1
  3. Jumps store target - 1 in EIP, so the increment in (2) lands on the
     target. ret restores the index of the call, and the increment resumes
     at the instruction after it.

Nothing here suspends or times out: a program that loops forever runs
forever. One context is driven by one thread.
"""

from __future__ import annotations
import logging
import sys
from collections import deque
from pathlib import Path
from typing import Callable, Dict, Optional, TextIO, Union

from .config import (
    TinyVMError, MIN_MEMORY_SIZE, MIN_STACK_SIZE, resolve_profile, validate_sizes,
)
from .cpu import alu
from .cpu.opcodes import Opcode
from .cpu.regs import FLAG_EQ, FLAG_GT
from .mem.memory import Memory, CheckedMemory
from .program import Instruction, Program
from .source import read_source, SourceError

log = logging.getLogger(__name__)

# Executed steps kept by the trace; older entries are dropped first
TRACE_LIMIT = 10000


class ExecutionError(TinyVMError):
    """Raised when EIP leaves the instruction sequence."""
    def __init__(self, message: str, index: int):
        self.index = index
        super().__init__(message)


class TinyVM:
    """A VM context: one Memory plus one Program, exclusively owned.

    Usage:
        vm = TinyVM()
        if vm.interpret('fact.vm') == 0:
            vm.run()
        vm.destroy()

    or, building the Program directly:
        with TinyVM(memory_size=64 * 1024, stack_size=16 * 1024) as vm:
            vm.load_program(program)
            vm.run()
    """

    def __init__(self, memory_size: int = MIN_MEMORY_SIZE,
                 stack_size: int = MIN_STACK_SIZE,
                 bounds_check: bool = False,
                 output: Optional[TextIO] = None):
        validate_sizes(memory_size, stack_size)
        self.mem: Optional[Memory] = None
        self.prog: Optional[Program] = None

        try:
            memory_cls = CheckedMemory if bounds_check else Memory
            self.mem = memory_cls(memory_size)
            self.prog = Program()
        except MemoryError:
            log.error("Unable to allocate VM context (%d bytes of memory)", memory_size)
            self.destroy()
            raise

        self.mem.create_stack(stack_size)
        self.bounds_check = bounds_check
        self._output = output

        # Trace output
        self._trace = False
        self._trace_output: deque = deque(maxlen=TRACE_LIMIT)

        self._dispatch = self._build_dispatch()
        log.debug("VM context created: memory=%d stack=%d checked=%s",
                  memory_size, stack_size, bounds_check)

    @classmethod
    def from_profile(cls, name: str = "default", output: Optional[TextIO] = None,
                     **overrides) -> "TinyVM":
        """Create a context from a VM_PROFILES entry plus overrides."""
        profile = resolve_profile(name, **overrides)
        return cls(memory_size=profile["memory_size"],
                   stack_size=profile["stack_size"],
                   bounds_check=profile["bounds_check"],
                   output=output)

    # ══════════════════════════════════════════════
    # Loading
    # ══════════════════════════════════════════════

    def load_program(self, program: Program):
        """Validate and install a private copy of a resolved program."""
        program.validate()
        self.prog = Program(program.instructions, program.start,
                            program.defines, program.labels)
        log.debug("program loaded: %d instructions, start=%d",
                  len(program) - 1, program.start)

    def interpret_source(self, source: str, base_dir: Optional[Union[str, Path]] = None):
        """Preprocess, lex and parse ``source``, then load the result.

        Raises PreprocessError / ParseError / ProgramError on failure.
        """
        from .asm import compile_source
        self.load_program(compile_source(source, base_dir=base_dir))

    def interpret(self, filename: Union[str, Path]) -> int:
        """Load a program from a source file.

        Returns 0 on success and 1 on any failure to read, preprocess or
        parse it. The failure is logged; nothing is executed.
        """
        try:
            source, path = read_source(filename)
        except SourceError as e:
            log.error("%s", e)
            return 1

        try:
            self.interpret_source(source, base_dir=path.parent)
        except TinyVMError as e:
            log.error("%s: %s", filename, e)
            return 1
        return 0

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    def run(self) -> int:
        """Run from the start index to the sentinel. Returns steps executed."""
        regs = self.mem.registers
        regs.ip = self.prog.start
        steps = 0

        while True:
            if self._fetch(regs.ip).opcode == Opcode.END:
                break
            self.step()
            steps += 1
            regs.ip = regs.ip + 1

        return steps

    def step(self):
        """Execute the single instruction at EIP."""
        index = self.mem.registers.ip
        ins = self._fetch(index)
        if ins.opcode == Opcode.END:
            raise ExecutionError(f"instruction {index} is the end of the program", index)

        if self._trace:
            self._record_trace(index, ins)

        self._dispatch[ins.opcode](ins.operands)

    def _fetch(self, index: int) -> Instruction:
        instructions = self.prog.instructions
        if not 0 <= index < len(instructions):
            raise ExecutionError(
                f"instruction index {index} outside program of "
                f"{len(instructions)} instructions", index)
        return instructions[index]

    # ══════════════════════════════════════════════
    # Instruction handlers
    # ══════════════════════════════════════════════
    # Handler signature: handler(ops), ops = the instruction's resolved
    # operand references (operand 0, operand 1)

    def _build_dispatch(self) -> Dict[Opcode, Callable]:
        """Build opcode -> handler dispatch table."""
        return {
            # ── Control ──
            Opcode.NOP:   self._op_nop,
            Opcode.INT:   self._op_int,

            # ── Data movement / stack ──
            Opcode.MOV:   self._op_mov,
            Opcode.PUSH:  self._op_push,
            Opcode.POP:   self._op_pop,
            Opcode.PUSHF: self._op_pushf,
            Opcode.POPF:  self._op_popf,

            # ── Arithmetic ──
            Opcode.INC:   self._op_inc,
            Opcode.DEC:   self._op_dec,
            Opcode.ADD:   self._binary(alu.add32),
            Opcode.SUB:   self._binary(alu.sub32),
            Opcode.MUL:   self._binary(alu.mul32),
            Opcode.DIV:   self._binary(alu.div32),
            Opcode.MOD:   self._op_mod,
            Opcode.REM:   self._op_rem,

            # ── Logic ──
            Opcode.NOT:   self._op_not,
            Opcode.XOR:   self._binary(alu.xor32),
            Opcode.OR:    self._binary(alu.or32),
            Opcode.AND:   self._binary(alu.and32),
            Opcode.SHL:   self._binary(alu.shl32),
            Opcode.SHR:   self._binary(alu.shr32),

            # ── Compare / branch ──
            Opcode.CMP:   self._op_cmp,
            Opcode.JMP:   self._op_jmp,
            Opcode.CALL:  self._op_call,
            Opcode.RET:   self._op_ret,
            Opcode.JE:    self._jump_if(lambda f: f & FLAG_EQ),
            Opcode.JNE:   self._jump_if(lambda f: not f & FLAG_EQ),
            Opcode.JG:    self._jump_if(lambda f: f & FLAG_GT),
            Opcode.JGE:   self._jump_if(lambda f: f & (FLAG_EQ | FLAG_GT)),
            Opcode.JL:    self._jump_if(lambda f: not f & (FLAG_EQ | FLAG_GT)),
            Opcode.JLE:   self._jump_if(lambda f: not f & FLAG_GT),

            # ── Output ──
            Opcode.PRN:   self._op_prn,
        }

    def _binary(self, fn: Callable[[int, int], int]) -> Callable:
        """operand0 := fn(operand0, operand1)"""
        def handler(ops):
            mem = self.mem
            mem.store(ops[0], fn(mem.load(ops[0]), mem.load(ops[1])))
        return handler

    def _jump_if(self, taken: Callable[[int], int]) -> Callable:
        """Conditional jump on FLAGS; EIP is untouched when not taken."""
        def handler(ops):
            if taken(self.mem.flags):
                self._transfer(ops[0])
        return handler

    def _transfer(self, target):
        """Shared control transfer for jmp, call and the conditional jumps."""
        self.mem.registers.ip = self.mem.load(target) - 1

    def _op_nop(self, ops):
        pass

    def _op_int(self, ops):
        pass   # reserved

    def _op_mov(self, ops):
        self.mem.store_tagged(ops[0], self.mem.load_tagged(ops[1]))

    def _op_push(self, ops):
        self.mem.push(self.mem.load(ops[0]))

    def _op_pop(self, ops):
        self.mem.store(ops[0], self.mem.pop())

    def _op_pushf(self, ops):
        self.mem.push(self.mem.flags)

    def _op_popf(self, ops):
        self.mem.store(ops[0], self.mem.pop())

    def _op_inc(self, ops):
        self.mem.store(ops[0], alu.add32(self.mem.load(ops[0]), 1))

    def _op_dec(self, ops):
        self.mem.store(ops[0], alu.sub32(self.mem.load(ops[0]), 1))

    def _op_mod(self, ops):
        self.mem.remainder = alu.mod32(self.mem.load(ops[0]), self.mem.load(ops[1]))

    def _op_rem(self, ops):
        self.mem.store(ops[0], self.mem.remainder)

    def _op_not(self, ops):
        self.mem.store(ops[0], alu.not32(self.mem.load(ops[0])))

    def _op_cmp(self, ops):
        self.mem.flags = alu.compare(self.mem.load(ops[0]), self.mem.load(ops[1]))

    def _op_jmp(self, ops):
        self._transfer(ops[0])

    def _op_call(self, ops):
        self.mem.push(self.mem.registers.ip)
        self._transfer(ops[0])

    def _op_ret(self, ops):
        self.mem.registers.ip = self.mem.pop()

    def _op_prn(self, ops):
        out = self._output if self._output is not None else sys.stdout
        out.write(f"{self.mem.load(ops[0])}\n")

    # ══════════════════════════════════════════════
    # Trace / Debug
    # ══════════════════════════════════════════════

    def enable_trace(self, enable: bool = True):
        """Record executed instructions (and log them at DEBUG).

        Only the most recent TRACE_LIMIT steps are kept.
        """
        self._trace = enable

    def get_trace(self) -> str:
        return '\n'.join(self._trace_output)

    def clear_trace(self):
        self._trace_output.clear()

    def _record_trace(self, index: int, ins: Instruction):
        line = f"{index:04d}: {str(ins):<24s} | {self.mem.registers.display()}"
        self._trace_output.append(line)
        log.debug("%s", line)

    # ══════════════════════════════════════════════
    # Lifecycle
    # ══════════════════════════════════════════════

    def destroy(self):
        """Release the program store, then memory. Idempotent."""
        if self.prog is not None:
            self.prog.clear()
            self.prog = None
        if self.mem is not None:
            self.mem.destroy()
            self.mem = None
        log.debug("VM context destroyed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.destroy()
        return False
