"""
tvmi: TinyVM interpreter CLI

Usage:
    tvmi <program.vm> [--profile default|small|checked]
                      [--memory-size 64M] [--stack-size 2M] [--checked]
                      [--trace] [--dump-regs] [--verbose] [--log-file PATH]

The ".vm" extension may be left off: "tvmi fact" runs fact.vm.

Exit status:
    0  program ran to the end
    1  source could not be read, preprocessed or parsed
    2  runtime fault (bad instruction index, bounds violation, division by zero)

Examples:
    tvmi programs/fact.vm
    tvmi fact --profile small --trace
    tvmi fact --listing
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .asm import compile_source, Lexer, Preprocessor
from .config import TinyVMError, VM_PROFILES, parse_size_arg, resolve_profile
from .emu import TinyVM, ExecutionError
from .log import setup_logging
from .mem.memory import MemoryAccessError
from .source import read_source, SourceError

RUNTIME_ERRORS = (ExecutionError, MemoryAccessError, ZeroDivisionError)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tvmi",
        description="TinyVM bytecode interpreter",
        epilog="Profiles: " + ", ".join(VM_PROFILES.keys()),
    )
    parser.add_argument("input", help="Program source file (.vm extension optional)")
    parser.add_argument("--profile", default="default",
                        choices=list(VM_PROFILES.keys()),
                        help="VM layout profile (default: default)")
    parser.add_argument("--memory-size", default=None,
                        help="Memory block size in bytes (e.g. 65536, 0x10000, 64K, 64M)")
    parser.add_argument("--stack-size", default=None,
                        help="Stack size in bytes (e.g. 16K, 2M)")
    parser.add_argument("--checked", action="store_true",
                        help="Bounds-check memory and stack accesses")
    parser.add_argument("--trace", action="store_true",
                        help="Print every executed instruction to stderr")
    parser.add_argument("--dump-regs", action="store_true",
                        help="Print registers and FLAGS to stderr after the run")
    parser.add_argument("--tokens", action="store_true",
                        help="Dump lexed lines and exit (debug)")
    parser.add_argument("--listing", action="store_true",
                        help="Dump the resolved program and exit (debug)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Print run details to stderr")
    parser.add_argument("--log-file", default=None,
                        help="Also write a DEBUG log to this file")
    parser.add_argument("--version", action="version",
                        version=f"tvmi {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    setup_logging(console_level=logging.INFO if args.verbose else logging.WARNING,
                  log_file=args.log_file)

    # Debug dump modes work on the source alone; no VM is created
    if args.tokens or args.listing:
        return _dump(args)

    try:
        profile = resolve_profile(
            args.profile,
            memory_size=parse_size_arg(args.memory_size) if args.memory_size else None,
            stack_size=parse_size_arg(args.stack_size) if args.stack_size else None,
            bounds_check=True if args.checked else None,
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.verbose:
        print(f"[tvmi] Input:   {args.input}", file=sys.stderr)
        print(f"[tvmi] Profile: {args.profile}: {profile['description']}", file=sys.stderr)
        print(f"[tvmi] Memory:  {profile['memory_size']} bytes, "
              f"stack {profile['stack_size']} bytes"
              f"{', checked' if profile['bounds_check'] else ''}", file=sys.stderr)

    try:
        vm = TinyVM(profile["memory_size"], profile["stack_size"],
                    bounds_check=profile["bounds_check"])
    except MemoryError:
        print("Error: unable to allocate the VM context", file=sys.stderr)
        return 1

    try:
        if vm.interpret(args.input) != 0:
            return 1
        if args.trace:
            vm.enable_trace()

        try:
            steps = vm.run()
        except RUNTIME_ERRORS as e:
            print(f"Runtime error: {e}", file=sys.stderr)
            return 2
        finally:
            sys.stdout.flush()
            if args.trace:
                print(vm.get_trace(), file=sys.stderr)
            if args.dump_regs:
                _dump_registers(vm)

        if args.verbose:
            print(f"[tvmi] Executed {steps} instructions", file=sys.stderr)
        return 0
    finally:
        vm.destroy()


def _dump(args) -> int:
    try:
        source, path = read_source(args.input)
        if args.tokens:
            pp = Preprocessor(source, base_dir=path.parent)
            lexer = Lexer(pp.process(), pp.defines)
            lexer.tokenize()
            print(lexer.dump())
        else:
            program = compile_source(source, base_dir=path.parent)
            print(program.listing())
    except SourceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except TinyVMError as e:
        print(f"Error: {args.input}: {e}", file=sys.stderr)
        return 1
    return 0


def _dump_registers(vm: TinyVM):
    mem = vm.mem
    print(mem.registers.display(), file=sys.stderr)
    print(f"FLAGS={mem.flags:#x} REM={mem.remainder} stack depth={mem.stack_depth()}",
          file=sys.stderr)


if __name__ == "__main__":
    sys.exit(main())
