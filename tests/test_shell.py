from pathlib import Path

import pytest

from drudock.shell import ShellCommand


def test_to_shell_quotes_arguments() -> None:
    cmd = ShellCommand(["echo", "hello world", "it's"])
    assert cmd.to_shell() == "echo 'hello world' 'it'\"'\"'s'"


def test_to_shell_redirections() -> None:
    cmd = ShellCommand(["mysql", "db"], stdin_file=Path("/tmp/my dump.sql"))
    assert cmd.to_shell() == "mysql db < '/tmp/my dump.sql'"

    cmd = ShellCommand(["mysqldump", "db"], stdout_file=Path("/tmp/out.sql"))
    assert cmd.to_shell() == "mysqldump db > /tmp/out.sql"


def test_extend_keeps_original() -> None:
    base = ShellCommand(["docker-compose", "-f", "x.yml"])
    cmd = base.extend("ps", "-q")
    assert base.argv == ("docker-compose", "-f", "x.yml")
    assert cmd.argv == ("docker-compose", "-f", "x.yml", "ps", "-q")


def test_empty_argv_rejected() -> None:
    with pytest.raises(ValueError):
        ShellCommand([])


def test_command_is_immutable_and_hashable() -> None:
    argv = ["redis-cli", "ping"]
    cmd = ShellCommand(argv)
    argv.append("extra")
    assert cmd.argv == ("redis-cli", "ping")
    assert hash(cmd) == hash(ShellCommand(("redis-cli", "ping")))
    assert len({cmd, ShellCommand(["redis-cli", "ping"])}) == 1
