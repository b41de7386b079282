"""Process runner: 外部コマンドを実行し、出力を reporter へ逐次流す。

- パイプモード: stdout/stderr をまとめて、届いた分からすぐ reporter.info へ渡す
  （ビルドやDBインポートは長いので、完了まで溜め込まない）
- TTYモード: 疑似端末 (pty) を割り当てて子プロセスを動かし、入出力を端末へ中継する
  （mysql シェル、exec など対話用）
- timeout（全体）と idle_timeout（無出力）のどちらかを超えたらプロセスグループごと kill
- 終了コード 0、または許容コード（既定 {129}）なら成功。それ以外は ProcessExecutionError

出力の読み取りは行単位ではなくバイト単位。改行なしの進捗表示（`\\r` のプログレスバー、
pv、ドット）でも idle timeout は延長される。

129 は docker-compose exec を TTY 付きで使ったときに返る既知の終了コード。
https://github.com/docker/compose/issues/3379
"""

from __future__ import annotations

import codecs
import fcntl
import logging
import os
import pty
import queue
import re
import selectors
import signal
import struct
import subprocess
import sys
import termios
import threading
import time
import tty as ttymode
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

from drudock.errors import ProcessExecutionError
from drudock.reporter import Reporter
from drudock.shell import ShellCommand

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 3600.0
DEFAULT_IDLE_TIMEOUT = 600.0
TOLERATED_EXIT_CODES: frozenset[int] = frozenset({129})

READ_SIZE = 4096

_EOF = object()
_SEGMENT = re.compile(r"[^\r\n]*(?:\r\n|\r|\n)")


@dataclass(frozen=True)
class ProcessSpec:
    command: ShellCommand | str
    timeout: float | None = DEFAULT_TIMEOUT
    idle_timeout: float | None = DEFAULT_IDLE_TIMEOUT
    tty: bool = False
    cwd: Path | None = None

    @property
    def shell_line(self) -> str:
        if isinstance(self.command, ShellCommand):
            return self.command.to_shell()
        return self.command


@dataclass(frozen=True)
class ProcessOutcome:
    exit_code: int
    output: str = ""
    tolerated_exit_codes: frozenset[int] = TOLERATED_EXIT_CODES

    @property
    def success(self) -> bool:
        return self.exit_code == 0 or self.exit_code in self.tolerated_exit_codes


class _Timers:
    """全体 timeout と idle timeout の判定。"""

    def __init__(self, spec: ProcessSpec) -> None:
        self.timeout = spec.timeout
        self.idle_timeout = spec.idle_timeout
        self.start = time.monotonic()
        self.last_output = self.start

    def touch(self) -> None:
        self.last_output = time.monotonic()

    def expired(self) -> str | None:
        now = time.monotonic()
        if self.timeout and now - self.start > self.timeout:
            return "timeout"
        if self.idle_timeout and now - self.last_output > self.idle_timeout:
            return "idle timeout"
        return None

    def remaining(self) -> float | None:
        if not self.timeout:
            return None
        return max(self.timeout - (time.monotonic() - self.start), 0.0)


class _Forwarder:
    """デコード済みテキストを行（`\\n` / `\\r` 区切り）単位で reporter へ渡す。

    改行待ちの端数は次のチャンクか、出力が途切れたところで流す。
    """

    def __init__(self, reporter: Reporter | None) -> None:
        self.reporter = reporter
        self.decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.chunks: list[str] = []
        self.pending = ""

    def feed(self, data: bytes) -> None:
        text = self.decoder.decode(data)
        if not text:
            return
        self.chunks.append(text)
        self.pending += text
        end = 0
        for m in _SEGMENT.finditer(self.pending):
            self._emit(m.group(0))
            end = m.end()
        self.pending = self.pending[end:]

    def flush(self) -> None:
        if self.pending:
            self._emit(self.pending)
            self.pending = ""

    def close(self) -> None:
        tail = self.decoder.decode(b"", final=True)
        if tail:
            self.chunks.append(tail)
            self.pending += tail
        self.flush()

    def _emit(self, text: str) -> None:
        if self.reporter is not None:
            self.reporter.info(text)

    @property
    def output(self) -> str:
        return "".join(self.chunks)


@dataclass
class ProcessRunner:
    tolerated_exit_codes: frozenset[int] = field(
        default_factory=lambda: TOLERATED_EXIT_CODES
    )
    default_timeout: float | None = DEFAULT_TIMEOUT
    default_idle_timeout: float | None = DEFAULT_IDLE_TIMEOUT
    poll_interval: float = 0.1
    # TTYモードの出力先（None なら sys.stdout）
    terminal: BinaryIO | None = None

    def run(
        self,
        command: ShellCommand | str,
        reporter: Reporter | None = None,
        *,
        tty: bool = False,
        timeout: float | None = None,
        idle_timeout: float | None = None,
        cwd: Path | None = None,
    ) -> ProcessOutcome:
        """コマンドを実行して ProcessOutcome を返す。

        timeout / idle_timeout を省略した場合はランナーの既定値を使う。
        明示的に無効にしたい場合は 0 を渡す。
        """
        spec = ProcessSpec(
            command=command,
            timeout=self.default_timeout if timeout is None else timeout,
            idle_timeout=(
                self.default_idle_timeout if idle_timeout is None else idle_timeout
            ),
            tty=tty,
            cwd=cwd,
        )
        return self.execute(spec, reporter)

    def execute(self, spec: ProcessSpec, reporter: Reporter | None = None) -> ProcessOutcome:
        line = spec.shell_line
        logger.debug(
            "run: %s (tty=%s timeout=%s idle=%s)",
            line, spec.tty, spec.timeout, spec.idle_timeout,
        )

        if spec.tty:
            exit_code, output, reason = self._run_tty(spec)
        else:
            exit_code, output, reason = self._run_piped(spec, reporter)

        if reason is not None:
            logger.warning("killed (%s): %s", reason, line)
            raise ProcessExecutionError(line, exit_code, output, reason=reason)

        outcome = ProcessOutcome(
            exit_code=exit_code,
            output=output,
            tolerated_exit_codes=self.tolerated_exit_codes,
        )
        logger.debug("exit=%s: %s", exit_code, line)
        if not outcome.success:
            raise ProcessExecutionError(line, exit_code, output)
        return outcome

    def _run_piped(
        self, spec: ProcessSpec, reporter: Reporter | None
    ) -> tuple[int, str, str | None]:
        proc = subprocess.Popen(
            spec.shell_line,
            shell=True,
            cwd=spec.cwd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            start_new_session=True,  # killpg 用
        )
        assert proc.stdout is not None
        fd = proc.stdout.fileno()

        data_queue: queue.Queue[object] = queue.Queue()

        def _read_output() -> None:
            while True:
                data = os.read(fd, READ_SIZE)
                if not data:
                    break
                data_queue.put(data)
            data_queue.put(_EOF)

        reader = threading.Thread(target=_read_output, name="drudock-reader", daemon=True)
        reader.start()

        timers = _Timers(spec)
        out = _Forwarder(reporter)
        reason: str | None = None

        try:
            while True:
                try:
                    item = data_queue.get(timeout=self.poll_interval)
                except queue.Empty:
                    item = None
                    out.flush()

                if item is _EOF:
                    break
                if isinstance(item, bytes):
                    timers.touch()
                    out.feed(item)

                reason = timers.expired()
                if reason is not None:
                    break

            if reason is None:
                # stdout が閉じても子プロセスが残ることがある
                try:
                    proc.wait(timeout=timers.remaining())
                except subprocess.TimeoutExpired:
                    reason = "timeout"
        finally:
            # timeout / idle timeout / Ctrl-C のどれでも子プロセスを残さない
            if proc.poll() is None:
                _kill_process_group(proc)
                proc.wait()

        reader.join(timeout=1)
        proc.stdout.close()
        out.close()
        return int(proc.returncode), out.output, reason

    def _run_tty(self, spec: ProcessSpec) -> tuple[int, str, str | None]:
        # 出力は端末へ中継する。reporter は経由しない（プロンプト等をそのまま見せるため）。
        terminal = self.terminal or sys.stdout.buffer
        stdin_fd = _stdin_tty_fd()

        master, slave = pty.openpty()
        if stdin_fd is not None:
            _copy_winsize(stdin_fd, slave)
        try:
            proc = subprocess.Popen(
                spec.shell_line,
                shell=True,
                cwd=spec.cwd,
                stdin=slave,
                stdout=slave,
                stderr=slave,
                start_new_session=True,
                preexec_fn=_acquire_controlling_tty,
            )
        finally:
            os.close(slave)

        timers = _Timers(spec)
        out = _Forwarder(None)
        reason: str | None = None
        saved_attrs = None
        sel = selectors.DefaultSelector()
        sel.register(master, selectors.EVENT_READ)
        if stdin_fd is not None:
            saved_attrs = termios.tcgetattr(stdin_fd)
            ttymode.setraw(stdin_fd)
            sel.register(stdin_fd, selectors.EVENT_READ)

        try:
            done = False
            while not done:
                for key, _ in sel.select(timeout=self.poll_interval):
                    if key.fd == master:
                        try:
                            data = os.read(master, READ_SIZE)
                        except OSError:
                            # Linux: 子が slave を閉じると EIO
                            data = b""
                        if not data:
                            done = True
                            break
                        timers.touch()
                        out.feed(data)
                        terminal.write(data)
                        terminal.flush()
                    else:
                        data = os.read(key.fd, READ_SIZE)
                        if data:
                            os.write(master, data)
                        else:
                            sel.unregister(key.fd)
                if done:
                    break
                reason = timers.expired()
                if reason is not None:
                    break

            if reason is None:
                try:
                    proc.wait(timeout=timers.remaining())
                except subprocess.TimeoutExpired:
                    reason = "timeout"
        finally:
            if proc.poll() is None:
                _kill_process_group(proc)
                proc.wait()
            if saved_attrs is not None:
                termios.tcsetattr(stdin_fd, termios.TCSADRAIN, saved_attrs)
            sel.close()
            os.close(master)

        out.close()
        return int(proc.returncode), out.output, reason


def _stdin_tty_fd() -> int | None:
    try:
        fd = sys.stdin.fileno()
    except (AttributeError, OSError, ValueError):
        return None
    return fd if os.isatty(fd) else None


def _copy_winsize(src_fd: int, dst_fd: int) -> None:
    size = fcntl.ioctl(src_fd, termios.TIOCGWINSZ, struct.pack("HHHH", 0, 0, 0, 0))
    fcntl.ioctl(dst_fd, termios.TIOCSWINSZ, size)


def _acquire_controlling_tty() -> None:
    # start_new_session の setsid 後に呼ばれる。pty を制御端末にして Ctrl-C を子へ届ける
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)


def _kill_process_group(proc: subprocess.Popen[bytes]) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        return
    except OSError as e:
        logger.debug("killpg failed, falling back to kill: %s", e)
        proc.kill()
