import io
from pathlib import Path

import pytest

from tinyvm.emu import TinyVM

PROGRAMS_DIR = Path(__file__).parent / "programs"


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def vm(output):
    """Small unchecked VM context printing into ``output``."""
    ctx = TinyVM.from_profile("small", output=output)
    yield ctx
    ctx.destroy()


@pytest.fixture
def checked_vm(output):
    ctx = TinyVM.from_profile("small", output=output, bounds_check=True)
    yield ctx
    ctx.destroy()


@pytest.fixture
def programs_dir():
    return PROGRAMS_DIR
