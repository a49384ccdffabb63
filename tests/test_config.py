"""
Configuration tests: profiles, size validation, size arguments.
"""

import pytest

from tinyvm.config import (
    MIN_MEMORY_SIZE, MIN_STACK_SIZE, VM_PROFILES, parse_size_arg, resolve_profile,
    validate_sizes,
)


class TestProfiles:
    def test_default_layout(self):
        profile = resolve_profile()
        assert profile["memory_size"] == MIN_MEMORY_SIZE == 64 * 1024 * 1024
        assert profile["stack_size"] == MIN_STACK_SIZE == 2 * 1024 * 1024
        assert profile["bounds_check"] is False

    def test_checked(self):
        assert resolve_profile("checked")["bounds_check"] is True

    def test_overrides_do_not_touch_table(self):
        profile = resolve_profile("small", stack_size=1024)
        assert profile["stack_size"] == 1024
        assert VM_PROFILES["small"]["stack_size"] == 16 * 1024

    def test_unknown(self):
        with pytest.raises(KeyError):
            resolve_profile("nope")

    def test_invalid_override(self):
        with pytest.raises(ValueError):
            resolve_profile("small", memory_size=1000, stack_size=2000)


class TestSizes:
    def test_validate(self):
        validate_sizes(1024, 0)
        validate_sizes(1024, 1024)
        for memory, stack in ((0, 0), (1022, 4), (1024, 6), (1024, -4), (1024, 2048)):
            with pytest.raises(ValueError):
                validate_sizes(memory, stack)

    def test_parse_size_arg(self):
        cases = [
            ("4096", 4096),
            ("0x1000", 4096),
            ("64K", 64 * 1024),
            ("2m", 2 * 1024 * 1024),
            (" 16k ", 16 * 1024),
        ]
        for text, expected in cases:
            assert parse_size_arg(text) == expected, text

    def test_parse_size_arg_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_size_arg("lots")
