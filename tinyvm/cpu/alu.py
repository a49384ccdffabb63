"""
TinyVM CPU: 32-bit ALU

All results wrap to signed 32 bits, like native C int arithmetic.
Nothing traps on overflow.

  div  truncates toward zero          (-7 / 2 = -3)
  mod  takes the sign of the dividend (-7 % 2 = -1)
  shl/shr use the low 5 bits of the count; shr is arithmetic

Division and modulo by zero raise ZeroDivisionError.
"""

INT32_MIN = -0x80000000
INT32_MAX = 0x7FFFFFFF


def wrap32(value: int) -> int:
    """Wrap an arbitrary Python int to a signed 32-bit value."""
    value &= 0xFFFFFFFF
    if value & 0x80000000:
        return value - 0x100000000
    return value


def add32(a: int, b: int) -> int:
    return wrap32(a + b)


def sub32(a: int, b: int) -> int:
    return wrap32(a - b)


def mul32(a: int, b: int) -> int:
    return wrap32(a * b)


def div32(a: int, b: int) -> int:
    """Signed division truncating toward zero. INT32_MIN / -1 wraps."""
    if b == 0:
        raise ZeroDivisionError("integer division by zero")
    q = abs(a) // abs(b)
    if (a < 0) != (b < 0):
        q = -q
    return wrap32(q)


def mod32(a: int, b: int) -> int:
    """Remainder with the sign of the dividend (C ``%``)."""
    if b == 0:
        raise ZeroDivisionError("integer modulo by zero")
    r = abs(a) % abs(b)
    if a < 0:
        r = -r
    return wrap32(r)


def not32(a: int) -> int:
    return wrap32(~a)


def xor32(a: int, b: int) -> int:
    return wrap32(a ^ b)


def or32(a: int, b: int) -> int:
    return wrap32(a | b)


def and32(a: int, b: int) -> int:
    return wrap32(a & b)


def shl32(a: int, count: int) -> int:
    return wrap32(a << (count & 0x1F))


def shr32(a: int, count: int) -> int:
    """Arithmetic shift right (sign bit is replicated)."""
    return wrap32(wrap32(a) >> (count & 0x1F))


def compare(a: int, b: int) -> int:
    """FLAGS for cmp: bit 0 = equal, bit 1 = greater."""
    return (1 if a == b else 0) | ((1 if a > b else 0) << 1)
