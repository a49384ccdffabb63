"""
TinyVM: Sizes, Constants and Named VM Profiles

Memory layout (one flat block, addressed as 32-bit cells):

    cell 0                                   stack limit        stack base
    |----------- general data -----------|-------- stack --------|
                                          <- grows downward --- ESP = EBP (empty)

The stack region is the top ``stack_size`` bytes of the block. ESP and EBP
both start one cell past the end of the block.

Profiles are plain dicts keyed by name; CLI overrides are applied on top
by resolve_profile().
"""

from typing import Dict, Optional


class TinyVMError(Exception):
    """Base class for every error raised by the tinyvm package."""
    pass


# ──────────────────────────────────────────────
# Sizes
# ──────────────────────────────────────────────

WORD_SIZE = 4                           # bytes per memory cell / stack slot
MIN_MEMORY_SIZE = 64 * 1024 * 1024      # 64 MB
MIN_STACK_SIZE = 2 * 1024 * 1024        # 2 MB

# ──────────────────────────────────────────────
# Source files
# ──────────────────────────────────────────────

SOURCE_EXTENSION = '.vm'
OPEN_ATTEMPTS = 2


VM_PROFILES: Dict[str, dict] = {
    "default": {
        "memory_size": MIN_MEMORY_SIZE,
        "stack_size": MIN_STACK_SIZE,
        "bounds_check": False,
        "description": "Reference layout: 64 MB block, 2 MB stack, unchecked",
    },
    "small": {
        "memory_size": 64 * 1024,
        "stack_size": 16 * 1024,
        "bounds_check": False,
        "description": "64 KB block, 16 KB stack, for embedding and tests",
    },
    "checked": {
        "memory_size": MIN_MEMORY_SIZE,
        "stack_size": MIN_STACK_SIZE,
        "bounds_check": True,
        "description": "Reference layout with bounds-checked memory and stack",
    },
}


def validate_sizes(memory_size: int, stack_size: int):
    """Reject layouts the memory model cannot be carved into."""
    if memory_size <= 0 or memory_size % WORD_SIZE:
        raise ValueError(
            f"memory size must be a positive multiple of {WORD_SIZE}, got {memory_size}")
    if stack_size < 0 or stack_size % WORD_SIZE:
        raise ValueError(
            f"stack size must be a non-negative multiple of {WORD_SIZE}, got {stack_size}")
    if stack_size > memory_size:
        raise ValueError(
            f"stack size {stack_size} does not fit in memory size {memory_size}")


def resolve_profile(name: str = "default", memory_size: Optional[int] = None,
                    stack_size: Optional[int] = None,
                    bounds_check: Optional[bool] = None) -> dict:
    """Return a copy of profile ``name`` with any non-None overrides applied."""
    if name not in VM_PROFILES:
        raise KeyError(f"unknown VM profile {name!r} "
                       f"(choose from {', '.join(VM_PROFILES)})")
    profile = dict(VM_PROFILES[name])
    if memory_size is not None:
        profile["memory_size"] = memory_size
    if stack_size is not None:
        profile["stack_size"] = stack_size
    if bounds_check is not None:
        profile["bounds_check"] = bounds_check
    validate_sizes(profile["memory_size"], profile["stack_size"])
    return profile


def parse_size_arg(value: str) -> int:
    """Parse a size that may be hex (0x...), decimal, or carry a K/M suffix."""
    value = value.strip()
    scale = 1
    if value[-1:] in ('K', 'k'):
        scale, value = 1024, value[:-1]
    elif value[-1:] in ('M', 'm'):
        scale, value = 1024 * 1024, value[:-1]
    if value.startswith("0x") or value.startswith("0X"):
        return int(value, 16) * scale
    return int(value) * scale
