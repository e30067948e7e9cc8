import pathlib
from types import SimpleNamespace

import pytest

from cmd_dsl import builder
from cmd_dsl.builder import Builder
from cmd_dsl.model import Command
from cmd_dsl.parser import parse


def test_plain_words():
    command = builder.build("echo Hello World", values={})
    assert command == Command("echo", ("Hello", "World"))
    assert command.argv == ["echo", "Hello", "World"]


def test_interpolate():
    command = builder.build("echo Hello (name)", name="Steve")
    assert command.args == ("Hello", "Steve")


def test_flagged_optional():
    assert builder.build('echo Hello ("Lord" name ?)', name="Steve").args == ("Hello", "Lord", "Steve")
    assert builder.build('echo Hello ("Lord" name ?)', name=None).args == ("Hello",)


def test_flagged_list():
    line = 'echo Installing ("-p" packages ?)'
    assert builder.build(line, packages=["cowsay", "emacs"]).args == ("Installing", "-p", "cowsay", "emacs")
    assert builder.build(line, packages=[]).args == ("Installing",)


def test_flagged_list_from_generator():
    packages = (p for p in ["cowsay", "emacs"])
    assert builder.build('echo ("-p" packages ?)', packages=packages).args == ("-p", "cowsay", "emacs")


def test_plain_optional():
    assert builder.build("echo Hello (name ?) !", name="Steve").args == ("Hello", "Steve", "!")
    assert builder.build("echo Hello (name ?) !", name=None).args == ("Hello", "!")


def test_spread():
    worlds = ["overworld", "nether", "end"]
    assert builder.build("echo Hello (worlds..) !", worlds=worlds).args == ("Hello", "overworld", "nether", "end", "!")
    assert builder.build("echo Hello (worlds..) !", worlds=[]).args == ("Hello", "!")


def test_spread_refuses_strings():
    with pytest.raises(TypeError):
        builder.build("echo (word..)", word="abc")


def test_env_interpolation():
    environ = {"MY_VAR": "my_value"}
    assert builder.build("echo (var(MY_VAR))", values={}, environ=environ).args == ("my_value",)
    assert builder.build("echo (var(MY_VAR)) x", values={}, environ={}).args == ("", "x")


def test_env_interpolation_uses_process_environment(monkeypatch):
    monkeypatch.setenv("CMD_DSL_TEST_VAR", "from_env")
    assert builder.build("echo (var(CMD_DSL_TEST_VAR))", values={}).args == ("from_env",)
    monkeypatch.delenv("CMD_DSL_TEST_VAR")
    assert builder.build("echo (var(CMD_DSL_TEST_VAR))", values={}).args == ("",)


def test_env_flag():
    line = "git commit (var(MSG_FLAG) message ?)"
    command = builder.build(line, values={"message": "wip"}, environ={"MSG_FLAG": "-m"})
    assert command.args == ("commit", "-m", "wip")


def test_program_is_one_token():
    assert builder.build("(tool) --help", tool="ls").argv == ["ls", "--help"]
    assert builder.build("(var(EDITOR)) f", values={}, environ={"EDITOR": "vi"}).argv == ["vi", "f"]
    assert builder.build('"my tool" x', values={}).program == "my tool"


def test_dotted_reference():
    opts = SimpleNamespace(user=SimpleNamespace(name="Steve"), branch=None)
    command = builder.build("git (opts.user.name) (-b opts.branch ?)", opts=opts)
    assert command.args == ("Steve",)


def test_values_are_converted():
    command = builder.build("ls (path) (count)", path=pathlib.PurePosixPath("/tmp"), count=3)
    assert command.args == ("/tmp", "3")


def test_unbound_name():
    with pytest.raises(KeyError) as info:
        builder.build("echo (missing)", values={})
    assert "missing" in str(info.value)


def test_keyword_values_override_mapping():
    command = builder.build("echo (a) (b)", values={"a": "1", "b": "2"}, b="3")
    assert command.args == ("1", "3")


def test_captures_caller_names():
    name = "Steve"
    others = ["Mike", "Paul"]
    command = builder.build("echo Hello (name) (others..)")
    assert command.args == ("Hello", "Steve", "Mike", "Paul")


def test_args_iterates_program_and_arguments():
    name = "Steve"
    argv = ["prefix"]
    argv.extend(builder.args("Hello (name) (and other ?)", other="Paul", name=name))
    assert argv == ["prefix", "Hello", "Steve", "and", "Paul"]


def test_plan_reused_with_different_values():
    plan = parse('echo ("-p" packages ?)')
    assert Builder({"packages": ["a"]}).build(plan).args == ("-p", "a")
    assert Builder({"packages": []}).build(plan).args == ()


def test_order_is_preserved_and_nothing_deduplicated():
    command = builder.build("cmd a (x) a (xs..) (f x ?) a", x="a", xs=["a", "a"], f="a")
    assert command.args == ("a", "a", "a", "a", "a", "f", "a", "a")


def test_str_renders_shell_line():
    command = builder.build('echo "Hello World!" plain', values={})
    assert str(command) == "echo 'Hello World!' plain"


class _CountingIterable:
    def __init__(self, items):
        self.items = list(items)
        self.iterations = 0

    def __iter__(self):
        self.iterations += 1
        return iter(self.items)


def test_flagged_list_value_is_iterated_once():
    seq = _CountingIterable(["a", "b"])
    assert builder.build('echo ("-x" seq ?)', seq=seq).args == ("-x", "a", "b")
    assert seq.iterations == 1

    empty = _CountingIterable([])
    assert builder.build('echo before ("-x" empty ?) after', empty=empty).args == ("before", "after")
    assert empty.iterations == 1
