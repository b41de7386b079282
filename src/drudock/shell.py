"""シェルコマンドの構造化表現。

コマンドは argv のタプルとして組み立て、実行直前に `to_shell()` で
1行のシェル文字列にする。組み立て部分はプロセスを起動せずにテストできる。
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ShellCommand:
    argv: tuple[str, ...]
    stdin_file: Path | None = None
    stdout_file: Path | None = None

    def __post_init__(self) -> None:
        # リストで渡されても不変（hash 可能）にする
        object.__setattr__(self, "argv", tuple(self.argv))
        if not self.argv:
            raise ValueError("ShellCommand.argv must not be empty")

    def extend(self, *args: str) -> ShellCommand:
        return ShellCommand(
            (*self.argv, *args),
            stdin_file=self.stdin_file,
            stdout_file=self.stdout_file,
        )

    def to_shell(self) -> str:
        parts = [shlex.join(self.argv)]
        if self.stdin_file is not None:
            parts.append(f"< {shlex.quote(str(self.stdin_file))}")
        if self.stdout_file is not None:
            parts.append(f"> {shlex.quote(str(self.stdout_file))}")
        return " ".join(parts)

    def __str__(self) -> str:
        return self.to_shell()
