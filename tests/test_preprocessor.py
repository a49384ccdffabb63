"""
Preprocessor tests: %include / %define expansion and its errors.
"""

import pytest

from tinyvm.asm.preprocessor import PreprocessError, PreprocessErrorKind, Preprocessor


def _pp(source: str, **kwargs) -> Preprocessor:
    pp = Preprocessor(source, **kwargs)
    pp.result = pp.process()
    return pp


class TestDefines:
    def test_find_all_defines(self):
        """Each %define line collapses to a newline and is recorded."""
        pp = _pp("%define true 1\nsome random text\n%define FOO_BAR -42\n")
        assert pp.result == "\nsome random text\n\n"
        assert pp.defines == {"true": "1", "FOO_BAR": "-42"}

    def test_value_is_rest_of_line(self):
        pp = _pp("%define greeting   hello there  \n")
        assert pp.defines["greeting"] == "hello there"

    def test_define_on_last_line_without_newline(self):
        pp = _pp("nop\n%define K 3")
        assert pp.result == "nop\n\n"
        assert pp.defines == {"K": "3"}

    def test_empty_source(self):
        pp = _pp("")
        assert pp.result == ""
        assert pp.defines == {}

    def test_stray_percent_is_not_a_directive(self):
        src = "this string contains a % symbol"
        assert _pp(src).result == src

    def test_empty_define(self):
        with pytest.raises(PreprocessError) as exc:
            _pp("%define\n")
        assert exc.value.kind is PreprocessErrorKind.EMPTY_DEFINE

    def test_define_without_value(self):
        with pytest.raises(PreprocessError) as exc:
            _pp("%define key\n")
        assert exc.value.kind is PreprocessErrorKind.DEFINE_WITHOUT_VALUE
        assert exc.value.detail == "key"

    def test_duplicate_define(self):
        with pytest.raises(PreprocessError) as exc:
            _pp("%define A 1\n%define A 2\n")
        assert exc.value.kind is PreprocessErrorKind.DUPLICATE_DEFINE

    def test_seeded_defines(self):
        """Caller-supplied defines count toward duplicate detection."""
        assert _pp("nop\n", defines={"A": "1"}).defines == {"A": "1"}
        with pytest.raises(PreprocessError):
            _pp("%define A 2\n", defines={"A": "1"})


class TestIncludes:
    def test_nested_includes(self, tmp_path):
        """Included files are expanded in place, recursively."""
        really = tmp_path / "really.vm"
        really.write_text("really nested\n")
        nested = tmp_path / "nested.vm"
        nested.write_text(f"first nested\n%include {really}\nlast nested\n")

        pp = _pp(f"first line\n%include {nested}\nlast line\n")
        assert pp.result == "first line\nfirst nested\nreally nested\nlast nested\nlast line\n"

    def test_included_defines_are_collected(self, tmp_path):
        inc = tmp_path / "consts.inc"
        inc.write_text("%define LIMIT 5\n")
        pp = _pp(f"%include {inc}\nprn LIMIT\n")
        assert pp.defines == {"LIMIT": "5"}
        assert pp.result == "\nprn LIMIT\n"

    def test_relative_to_base_dir(self, tmp_path):
        (tmp_path / "lib.vm").write_text("nop\n")
        pp = _pp("%include lib.vm\n", base_dir=tmp_path)
        assert pp.result == "nop\n"

    def test_failed_include(self, tmp_path):
        with pytest.raises(PreprocessError) as exc:
            _pp(f"%include {tmp_path / 'missing.vm'}\n")
        assert exc.value.kind is PreprocessErrorKind.FAILED_INCLUDE
