"""process runner のテスト（sh で実際に子プロセスを起動する）。"""

import io
import time
from pathlib import Path

import pytest

from drudock.errors import ProcessExecutionError
from drudock.process import ProcessOutcome, ProcessRunner, ProcessSpec
from drudock.shell import ShellCommand


def test_success_streams_all_output(reporter) -> None:
    runner = ProcessRunner()
    outcome = runner.run("printf 'one\\ntwo\\nthree\\n'", reporter)
    assert outcome.success
    assert outcome.exit_code == 0
    assert outcome.output == "one\ntwo\nthree\n"
    assert "".join(reporter.infos) == outcome.output
    assert len(reporter.infos) == 3


def test_stderr_is_merged(reporter) -> None:
    outcome = ProcessRunner().run("echo out; echo err 1>&2", reporter)
    assert "out\n" in outcome.output
    assert "err\n" in outcome.output


def test_tolerated_exit_code_129(reporter) -> None:
    outcome = ProcessRunner().run("echo bye; exit 129", reporter)
    assert outcome.success
    assert outcome.exit_code == 129
    assert reporter.infos == ["bye\n"]


@pytest.mark.parametrize("code", [1, 2, 127, 128, 130])
def test_other_exit_codes_raise(code: int) -> None:
    with pytest.raises(ProcessExecutionError) as exc:
        ProcessRunner().run(f"echo failed; exit {code}")
    assert exc.value.exit_code == code
    assert exc.value.reason == "exit"
    assert exc.value.output == "failed\n"


def test_tolerated_codes_are_overridable() -> None:
    runner = ProcessRunner(tolerated_exit_codes=frozenset({3}))
    assert runner.run("exit 3").success
    with pytest.raises(ProcessExecutionError):
        runner.run("exit 129")


def test_shell_command_is_serialized(reporter) -> None:
    outcome = ProcessRunner().run(ShellCommand(["echo", "hello world"]), reporter)
    assert outcome.output == "hello world\n"


def test_idle_timeout_kills_silent_process(reporter) -> None:
    with pytest.raises(ProcessExecutionError) as exc:
        ProcessRunner(poll_interval=0.05).run(
            "echo start; sleep 5", reporter, timeout=10, idle_timeout=0.5
        )
    assert exc.value.reason == "idle timeout"
    assert exc.value.output == "start\n"
    assert reporter.infos == ["start\n"]


def test_timeout_kills_chatty_process() -> None:
    with pytest.raises(ProcessExecutionError) as exc:
        ProcessRunner(poll_interval=0.05).run(
            "while true; do echo tick; sleep 0.1; done", timeout=0.5, idle_timeout=5
        )
    assert exc.value.reason == "timeout"
    assert "tick" in exc.value.output


def test_outcome_success_policy() -> None:
    assert ProcessOutcome(exit_code=0).success
    assert ProcessOutcome(exit_code=129).success
    assert not ProcessOutcome(exit_code=1).success
    assert not ProcessOutcome(exit_code=129, tolerated_exit_codes=frozenset()).success


def test_spec_defaults() -> None:
    spec = ProcessSpec(command="true")
    assert spec.timeout == 3600
    assert spec.idle_timeout == 600
    assert spec.tty is False
    assert spec.shell_line == "true"


def test_partial_line_output_keeps_process_alive(reporter) -> None:
    # 改行なしのドットでも無出力扱いにならない
    outcome = ProcessRunner(poll_interval=0.05).run(
        "for i in 1 2 3 4 5 6 7 8 9 10; do printf .; sleep 0.2; done; echo",
        reporter,
        timeout=10,
        idle_timeout=1,
    )
    assert outcome.success
    assert outcome.output == "..........\n"
    assert "".join(reporter.infos) == outcome.output


def test_carriage_return_progress_is_forwarded(reporter) -> None:
    outcome = ProcessRunner().run("printf '10%%\\r50%%\\r100%%\\n'", reporter)
    assert outcome.output == "10%\r50%\r100%\n"
    assert reporter.infos == ["10%\r", "50%\r", "100%\n"]


def _grandchild_alive(pid: int) -> bool:
    stat = Path(f"/proc/{pid}/stat")
    try:
        state = stat.read_text().rsplit(")", 1)[1].split()[0]
    except FileNotFoundError:
        return False
    return state != "Z"


def _wait_gone(pid: int, limit: float = 2.0) -> bool:
    deadline = time.monotonic() + limit
    while time.monotonic() < deadline:
        if not _grandchild_alive(pid):
            return True
        time.sleep(0.05)
    return False


needs_proc = pytest.mark.skipif(not Path("/proc/self/stat").exists(), reason="/proc required")


@needs_proc
def test_timeout_kills_background_children() -> None:
    with pytest.raises(ProcessExecutionError) as exc:
        ProcessRunner(poll_interval=0.05).run(
            "sleep 30 & echo $!; wait", timeout=0.5, idle_timeout=0
        )
    assert exc.value.reason == "timeout"
    pid = int(exc.value.output.split()[0])
    assert _wait_gone(pid)


@needs_proc
def test_interrupt_kills_process_group() -> None:
    pids: list[int] = []

    class InterruptingReporter:
        def info(self, text: str) -> None:
            pids.append(int(text))
            raise KeyboardInterrupt

    with pytest.raises(KeyboardInterrupt):
        ProcessRunner(poll_interval=0.05).run(
            "sleep 30 & echo $!; wait", InterruptingReporter(), timeout=10, idle_timeout=0
        )
    assert pids
    assert _wait_gone(pids[0])


# -- TTY モード --------------------------------------------------------------


def test_tty_mode_allocates_terminal() -> None:
    terminal = io.BytesIO()
    outcome = ProcessRunner(terminal=terminal).run("tty", tty=True, timeout=10)
    assert outcome.success
    assert "/dev/" in outcome.output
    assert b"/dev/" in terminal.getvalue()


def test_tty_mode_exit_codes() -> None:
    runner = ProcessRunner(terminal=io.BytesIO())
    assert runner.run("exit 129", tty=True, timeout=10).exit_code == 129
    with pytest.raises(ProcessExecutionError) as exc:
        runner.run("exit 3", tty=True, timeout=10)
    assert exc.value.exit_code == 3


def test_tty_mode_idle_timeout() -> None:
    runner = ProcessRunner(terminal=io.BytesIO(), poll_interval=0.05)
    with pytest.raises(ProcessExecutionError) as exc:
        runner.run("sleep 5", tty=True, timeout=10, idle_timeout=0.5)
    assert exc.value.reason == "idle timeout"
