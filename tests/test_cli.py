"""
tvmi command-line tests: output, dump modes and exit status.
"""

import pytest

from tinyvm.cli import main

SMALL = ["--profile", "small"]


def _write(tmp_path, text: str, name: str = "prog.vm") -> str:
    path = tmp_path / name
    path.write_text(text)
    return str(path)


class TestRun:
    def test_runs_program(self, programs_dir, capsys):
        assert main([str(programs_dir / "fact.vm")] + SMALL) == 0
        out = capsys.readouterr().out.split()
        assert out[0] == "1" and out[-1] == "3628800"

    def test_extension_optional(self, programs_dir, capsys):
        assert main([str(programs_dir / "fib")] + SMALL) == 0
        assert capsys.readouterr().out.split()[-1] == "144"

    def test_verbose(self, programs_dir, capsys):
        assert main([str(programs_dir / "fact.vm"), "-v"] + SMALL) == 0
        assert "[tvmi] Executed" in capsys.readouterr().err

    def test_trace_and_registers(self, tmp_path, capsys):
        path = _write(tmp_path, "mov eax, 2\ncmp eax, 2\n")
        assert main([path, "--trace", "--dump-regs"] + SMALL) == 0
        err = capsys.readouterr().err
        assert "0000: mov" in err
        assert "EAX=2" in err
        assert "FLAGS=0x1" in err

    def test_log_file(self, tmp_path, programs_dir):
        log_file = tmp_path / "logs" / "tvmi.log"
        assert main([str(programs_dir / "fact.vm"), "--log-file", str(log_file)] + SMALL) == 0
        assert "program loaded" in log_file.read_text()

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--version"])
        assert exc.value.code == 0
        assert "tvmi" in capsys.readouterr().out


class TestExitStatus:
    def test_missing_file(self, tmp_path):
        assert main([str(tmp_path / "missing.vm")] + SMALL) == 1

    def test_parse_error(self, programs_dir, capsys):
        assert main([str(programs_dir / "bad_label.vm")] + SMALL) == 1
        assert capsys.readouterr().out == ""

    def test_bad_size(self, tmp_path):
        path = _write(tmp_path, "nop\n")
        assert main([path, "--memory-size", "1000", "--stack-size", "2000"]) == 1
        assert main([path, "--memory-size", "lots"]) == 1

    def test_division_by_zero(self, tmp_path, capsys):
        path = _write(tmp_path, "prn 1\nmov eax, 1\ndiv eax, 0\n")
        assert main([path] + SMALL) == 2
        captured = capsys.readouterr()
        assert captured.out == "1\n"
        assert "Runtime error" in captured.err

    def test_checked_underflow(self, tmp_path):
        path = _write(tmp_path, "pop eax\n")
        assert main([path, "--checked"] + SMALL) == 2

    def test_runaway_jump(self, tmp_path):
        path = _write(tmp_path, "jmp 1000\n")
        assert main([path] + SMALL) == 2


class TestDumpModes:
    def test_tokens(self, tmp_path, capsys):
        path = _write(tmp_path, "%define V 3\nmov eax, V # set\n")
        assert main([path, "--tokens"]) == 0
        assert "'mov' 'eax' '3'" in capsys.readouterr().out

    def test_listing(self, programs_dir, capsys):
        assert main([str(programs_dir / "fact.vm"), "--listing"]) == 0
        out = capsys.readouterr().out
        assert "loop:" in out
        assert "0000>" in out

    def test_listing_parse_error(self, programs_dir):
        assert main([str(programs_dir / "bad_label.vm"), "--listing"]) == 1
