# tests/test_compiler.py
import pytest

from qcsim.compiler import CompilerOptions, ErrorCorrectionCode
from qcsim.errors import InvalidArgument
from qcsim.settings import Settings


def test_defaults():
    opts = CompilerOptions()
    assert opts.optimization_level == 2
    assert opts.optimize_gates and opts.optimize_depth and opts.use_hardware_layout
    assert opts.error_correction == ErrorCorrectionCode.NONE
    assert not opts.needs_error_correction


@pytest.mark.parametrize("level", [0, 1, 2, 3])
def test_levels_accepted(level):
    assert CompilerOptions(optimization_level=level).optimization_level == level


@pytest.mark.parametrize("level", [-1, 4, 2.0, True, "2", None])
def test_bad_level_rejected(level):
    with pytest.raises(InvalidArgument, match="optimization_level"):
        CompilerOptions(optimization_level=level)


def test_error_correction_coerced_from_string():
    opts = CompilerOptions(error_correction=" Surface ")
    assert opts.error_correction is ErrorCorrectionCode.SURFACE
    assert opts.needs_error_correction


def test_unknown_error_correction_rejected():
    with pytest.raises(InvalidArgument, match="Unknown error-correction code"):
        CompilerOptions(error_correction="color")


def test_frozen_and_with_revalidates():
    opts = CompilerOptions()
    with pytest.raises(AttributeError):
        opts.optimization_level = 3
    assert opts.with_(optimization_level=0).optimization_level == 0
    with pytest.raises(InvalidArgument):
        opts.with_(optimization_level=7)


def test_from_settings():
    s = Settings(COMPILER_OPTIMIZATION_LEVEL=3, COMPILER_OPTIMIZE_DEPTH=False, ERROR_CORRECTION="steane")
    opts = CompilerOptions.from_settings(s)
    assert opts.optimization_level == 3
    assert not opts.optimize_depth
    assert opts.optimize_gates
    assert opts.error_correction == ErrorCorrectionCode.STEANE


def test_from_settings_validates_level():
    with pytest.raises(InvalidArgument):
        CompilerOptions.from_settings(Settings(COMPILER_OPTIMIZATION_LEVEL=9))
