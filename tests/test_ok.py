import sys

import pytest

from cmd_dsl import ok
from cmd_dsl.model import Command
from cmd_dsl.output import Output


def test_ok_returns_successful_output():
    out = Output(returncode=0, stdout=b"fine\n")
    assert ok.ok(out) is out
    assert ok.ok_no_msg(out) is out


def test_ok_attaches_stderr():
    out = Output(returncode=3, stderr=b"boom\n")
    with pytest.raises(ok.StatusFailure) as info:
        ok.ok(out)
    assert info.value.status == 3
    assert info.value.msg == "boom"
    assert str(info.value) == "Failed with code 3 boom"


def test_ok_no_msg_leaves_stderr_out():
    out = Output(returncode=3, stderr=b"boom\n")
    with pytest.raises(ok.StatusFailure) as info:
        ok.ok_no_msg(out)
    assert info.value.msg is None
    assert str(info.value) == "Failed with code 3"


def test_ok_on_bare_status():
    assert ok.ok(0) == 0
    with pytest.raises(ok.StatusFailure) as info:
        ok.ok(1)
    assert info.value.msg is None


def test_failures_share_a_base_class():
    assert issubclass(ok.StatusFailure, ok.CommandFailed)
    assert issubclass(ok.IOFailure, ok.CommandFailed)


def test_check_success():
    code = "print('hi')"
    out = ok.check("(python) -c (code)", python=sys.executable, code=code)
    assert out.stdout_text() == "hi"


def test_check_status_failure():
    code = "import sys; sys.stderr.write('bad things\\n'); sys.exit(4)"
    with pytest.raises(ok.StatusFailure) as info:
        ok.check("(python) -c (code)", python=sys.executable, code=code)
    assert info.value.status == 4
    assert info.value.msg == "bad things"

    with pytest.raises(ok.StatusFailure) as info:
        ok.check("(python) -c (code)", python=sys.executable, code=code, message=False)
    assert info.value.msg is None


def test_check_io_failure(tmp_path):
    missing = tmp_path / "does-not-exist"
    with pytest.raises(ok.IOFailure) as info:
        ok.check(Command(str(missing)))
    assert isinstance(info.value.error, OSError)
    assert info.value.__cause__ is info.value.error
